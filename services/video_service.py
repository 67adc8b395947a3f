from __future__ import annotations
from pathlib import Path
from typing import List, Tuple, Union
import logging
import os

import cv2
from dotenv import load_dotenv

from models.video_meta import VideoMeta

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class VideoService:
    """
    Validation and advisory checks for the overlay video.
    """

    def __init__(self):
        self.ALLOWED_TYPES = [
            t.strip() for t in
            os.getenv("ALLOWED_VIDEO_TYPES", "video/mp4,video/webm,video/quicktime").split(",")
            if t.strip()
        ]
        self.max_duration = float(os.getenv("VIDEO_MAX_DURATION_SEC", "15"))
        self.max_size_mb = float(os.getenv("VIDEO_MAX_SIZE_MB", "20"))

    def validate_type(self, mime_type: str | None) -> Tuple[bool, str]:
        if mime_type not in self.ALLOWED_TYPES:
            return False, "Unsupported format. Upload MP4 or WebM."
        return True, ""

    @staticmethod
    def probe_duration(path: Union[str, Path]) -> float | None:
        """
        Duration in seconds from frame count / fps, or None if OpenCV
        cannot read the container.
        """
        cap = cv2.VideoCapture(str(path))
        try:
            if not cap.isOpened():
                return None
            fps = cap.get(cv2.CAP_PROP_FPS)
            frames = cap.get(cv2.CAP_PROP_FRAME_COUNT)
        finally:
            cap.release()

        if not fps or fps <= 0 or frames <= 0:
            return None
        return float(frames) / float(fps)

    def build_meta(self, path: Union[str, Path], name: str, mime_type: str) -> VideoMeta:
        path = Path(path)
        duration = self.probe_duration(path)
        if duration is None:
            logger.warning(f"Could not read video duration for {name}")
        return VideoMeta(name=name, type=mime_type, size=path.stat().st_size, duration=duration)

    def build_warnings(self, meta: VideoMeta) -> List[str]:
        warnings: List[str] = []
        if meta.duration is not None and meta.duration > self.max_duration:
            warnings.append(f"Video is longer than {self.max_duration:g} seconds. Shorter videos load faster.")
        if meta.size > self.max_size_mb * 1024 * 1024:
            warnings.append(f"Video is larger than {self.max_size_mb:g} MB. Consider compressing for faster loading.")
        if "mp4" not in (meta.type or ""):
            warnings.append("MP4 is recommended for best compatibility.")
        return warnings
