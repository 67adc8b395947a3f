import logging
from pathlib import Path
from typing import List, Optional, Tuple

from models.image import Image
from models.trackability import AnalysisResult
from repositories.artwork_score_repository import ArtworkScoreRepository

logger = logging.getLogger(__name__)

STATUS_WEAK = "Analysis complete. Tracking is weak. Improve artwork before continuing."
STATUS_OK = "Analysis complete. You can continue."


class ArtworkScoreService:
    """
    Business rules around stored artwork scores: persistence, the
    continue gate, and result logging.
    """

    def __init__(self, repository: ArtworkScoreRepository | None = None):
        self.repository = repository or ArtworkScoreRepository()

    @staticmethod
    def artwork_meta(img: Image, size_bytes: int | None = None) -> dict:
        return {
            "name": img.name or (Path(img.path).name if img.path else "Artwork"),
            "type": img.mime_type,
            "size": size_bytes,
            "width": img.width,
            "height": img.height,
        }

    def save(self, artwork_id: str, img: Image, result: AnalysisResult, size_bytes: int | None = None) -> None:
        self.repository.save(artwork_id, result, self.artwork_meta(img, size_bytes))

    def get(self, artwork_id: str) -> Optional[dict]:
        return self.repository.get(artwork_id)

    def delete(self, artwork_id: str) -> bool:
        return self.repository.delete(artwork_id)

    @staticmethod
    def status_message(result: AnalysisResult) -> str:
        return STATUS_OK if result.passes_gate else STATUS_WEAK

    @staticmethod
    def log_scoring_results(scored: List[Tuple[Image, AnalysisResult]], title: str = "TRACKABILITY RESULTS") -> None:
        if not scored:
            logger.info("No images were scored.")
            return

        ranked = sorted(scored, key=lambda pair: pair[1].score, reverse=True)
        logger.info("=" * 80)
        logger.info(f"{title} - ALL {len(ranked)} IMAGES:")
        for i, (img, result) in enumerate(ranked, 1):
            filename = img.name or (Path(img.path).name if img.path else "Unknown")
            m = result.debug
            logger.info(
                f"{i:2d}. Score: {result.score:3d} | Sharp: {m.sharpness:8.1f} | "
                f"Contrast: {m.contrast_std:5.1f} | Features: {m.feature_density:.3f} | "
                f"Flat: {m.flat_ratio:.2f} | MinDim: {m.min_dim:5d} | File: {filename}"
            )
        passed = sum(1 for _, r in ranked if r.passes_gate)
        logger.info(f"{passed}/{len(ranked)} images pass the tracking gate")
        logger.info("=" * 80)
