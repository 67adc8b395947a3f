from typing import Tuple

from models.image import Image
from models.trackability import AnalysisResult
from services.image_service import ImageService
from services.trackability_service import TrackabilityService, InvalidInputError


def check_artwork(
    img: Image,
    declared_type: str | None = None,
    trackability_service: TrackabilityService | None = None,
    image_service: ImageService | None = None,
) -> Tuple[bool, dict]:
    """
    Decides whether an uploaded artwork may proceed to target generation:
      - Format is PNG/JPEG
      - Dimensions are large enough to analyse
      - Trackability score reaches the gate

    Args:
        img (Image): The decoded artwork.
        declared_type (str): MIME type the client declared, defaults to the decoded one.
        trackability_service (TrackabilityService): Scores the artwork.
        image_service (ImageService): Handles format checks.

    Returns:
        Tuple[bool, dict]:
            - True if the artwork passes the gate, False otherwise.
            - The analysis record, or a rejection reason.
    """
    trackability_service = trackability_service or TrackabilityService()
    image_service = image_service or ImageService()

    ok, message = image_service.check_artwork_type(declared_type or img.mime_type, img)
    if not ok:
        return False, {"reason": "invalid_type", "message": message}

    try:
        result: AnalysisResult = trackability_service.analyze(img)
    except InvalidInputError as e:
        return False, {"reason": "too_small", "message": str(e)}

    details = result.to_record()
    details["suggestions"] = list(result.suggestions)
    if not result.passes_gate:
        return False, {"reason": "weak_tracking", **details}

    return True, details
