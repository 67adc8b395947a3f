# pipeline/batch_scorer.py
import logging
import uuid
from typing import Iterable, List, Tuple

from models.image import Image
from models.trackability import AnalysisResult
from services.artwork_score_service import ArtworkScoreService
from services.trackability_service import TrackabilityService, InvalidInputError

logger = logging.getLogger(__name__)


def score_gallery(
    gallery: Iterable[Image],
    *,
    trackability_service: TrackabilityService | None = None,
    score_service: ArtworkScoreService | None = None,
    persist: bool = False,
) -> List[Tuple[Image, AnalysisResult]]:
    """
    For every Image in *gallery*:
        • compute its trackability analysis
        • optionally persist {score, label, debug} under a fresh artwork id
    Images too small to analyse are logged and skipped.
    Results are logged ranked by score and returned in input order.
    """
    trackability_service = trackability_service or TrackabilityService()
    if persist and score_service is None:
        score_service = ArtworkScoreService()

    scored: List[Tuple[Image, AnalysisResult]] = []
    for img in gallery:
        try:
            result = trackability_service.analyze(img)
        except InvalidInputError as e:
            logger.warning(f"Skipping {img.name or img.path}: {e}")
            continue

        if persist:
            artwork_id = uuid.uuid4().hex
            score_service.save(artwork_id, img, result)
            logger.debug(f"Stored score for {img.name} as {artwork_id}")

        scored.append((img, result))

    ArtworkScoreService.log_scoring_results(scored)
    return scored
