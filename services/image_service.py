from pathlib import Path
from typing import Iterable, Tuple, Union, Iterator
import os

import cv2
import numpy as np
from dotenv import load_dotenv

from models.image import Image
from repositories.image_repository import ImageRepository

# Load environment variables
load_dotenv()

# ITU-R BT.601 luma weights
_LUMA_R, _LUMA_G, _LUMA_B = 0.299, 0.587, 0.114


class ImageService:
    """I/O helpers and pixel-level conversions.  No scoring logic."""
    def __init__(self):
        self.ALLOWED_TYPES = {
            t.strip() for t in os.getenv("ALLOWED_ARTWORK_TYPES", "image/png,image/jpeg").split(",")
            if t.strip()
        }
        self.image_repository = ImageRepository()

    def decode(self, data: bytes, name: str | None = None) -> Image:
        """Decode uploaded bytes into an Image object."""
        return self.image_repository.decode(data, name)

    def encode_png(self, image: Image) -> bytes:
        return self.image_repository.encode_png(image)

    def stream_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield images lazily instead of returning a gigantic list.
        """
        return self.image_repository.iter_dir(folder,
                                              recursive=recursive,
                                              exts=exts)

    def check_artwork_type(self, declared_type: str | None, img: Image | None = None) -> Tuple[bool, str]:
        """
        Accept only the configured artwork formats (PNG/JPEG by default).
        Both the declared upload type and, when given, the decoded content
        type must be allowed.

        Returns:
            Tuple[bool, str]: ok flag and a user-facing message ("" when ok).
        """
        if declared_type not in self.ALLOWED_TYPES:
            return False, "Invalid file type. Upload a JPG or PNG."
        if img is not None and img.mime_type not in self.ALLOWED_TYPES:
            return False, "Invalid file type. Upload a JPG or PNG."
        return True, ""

    @staticmethod
    def downscale(pixels: np.ndarray, max_side: int) -> np.ndarray:
        """
        Uniformly shrink *pixels* so the longer side equals *max_side*.
        Images already within the bound are returned as-is.
        """
        h, w = pixels.shape[:2]
        longest = max(w, h)
        if longest <= max_side:
            return pixels

        scale = max_side / longest
        new_w = int(np.floor(w * scale + 0.5))
        new_h = int(np.floor(h * scale + 0.5))
        return cv2.resize(pixels, (max(new_w, 1), max(new_h, 1)), interpolation=cv2.INTER_NEAREST)

    @staticmethod
    def to_grayscale(pixels: np.ndarray) -> np.ndarray:
        """
        Luminance buffer (float32, shape (H, W)) using 0.299/0.587/0.114.
        Alpha, if present, is ignored.
        """
        if pixels.ndim == 2:
            return pixels.astype(np.float32)

        rgb = pixels[..., :3].astype(np.float32)
        gray = _LUMA_R * rgb[..., 0] + _LUMA_G * rgb[..., 1] + _LUMA_B * rgb[..., 2]
        return gray.astype(np.float32)
