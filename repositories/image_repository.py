from pathlib import Path
from typing import Union, Iterable, Iterator
from io import BytesIO
import logging
import os

import numpy as np
import cv2
from PIL import Image as PILImage, UnidentifiedImageError
from dotenv import load_dotenv

from models.image import Image

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Pillow format name → MIME type of the decoded content
_FORMAT_MIME = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "BMP": "image/bmp",
}

_SUFFIX_MIME = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}


class ImageRepository:
    """
    Handles file I/O and decoding for Image entities.
    """
    def __init__(self):
        exts = os.getenv("VALID_IMAGE_EXTENSIONS", ".png,.jpg,.jpeg")
        self.VALID_EXTS = {ext.strip().lower() for ext in exts.split(",") if ext.strip()}

    @staticmethod
    def load(path: Union[str, Path], rgb: bool = True) -> Image:
        path = Path(path)
        arr_bgr = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if arr_bgr is None:
            raise FileNotFoundError(f"Image not found or unreadable: {path}")

        arr = np.ascontiguousarray(arr_bgr[:, :, ::-1]) if rgb else arr_bgr
        mime = _SUFFIX_MIME.get(path.suffix.lower())
        return Image(pixels=arr, path=path, name=path.name, mime_type=mime)

    @staticmethod
    def decode(data: bytes, name: str | None = None) -> Image:
        """
        Decode uploaded bytes. The MIME type is taken from the decoded
        content, not from whatever the client declared.
        """
        try:
            with PILImage.open(BytesIO(data)) as pil_img:
                fmt = pil_img.format
                pixels = np.asarray(pil_img.convert("RGB"))
        except (UnidentifiedImageError, OSError) as err:
            raise ValueError(f"Could not decode image {name or ''}: {err}") from err
        return Image(pixels=pixels, name=name, mime_type=_FORMAT_MIME.get(fmt))

    @staticmethod
    def encode_png(image: Image) -> bytes:
        buffer = BytesIO()
        PILImage.fromarray(image.pixels).save(buffer, format="PNG")
        return buffer.getvalue()

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield Image objects one at a time.  Nothing accumulates in memory.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if p.suffix.lower() not in allowed:
                logger.debug(f"Skipping due to extension: {p}")
                continue
            if not p.is_file():
                continue
            try:
                yield self.load(p)
            except FileNotFoundError as err:
                logger.warning(f"Skipping {p.name}: {err}")
