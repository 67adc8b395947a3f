from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import numpy as np


@dataclass
class Image:
    """
    Simple data object: decoded pixels (+ optional source info for bookkeeping).
    No OpenCV logic outside the repository/service layer.
    """
    pixels: np.ndarray  # Shape (H, W, 3|4) uint8 RGB(A), or (H, W) grayscale.
    path: Path | None = None  # Source of the image.
    name: str | None = None  # Original upload file name.
    mime_type: str | None = None  # e.g. "image/png"

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])
