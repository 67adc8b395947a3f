import os
import tempfile
from io import BytesIO

import numpy as np
import pytest
from PIL import Image as PILImage

# Keep every store the services create out of the working tree.
_TMP_ROOT = tempfile.mkdtemp(prefix="artwork-tests-")
os.environ.setdefault("SCORES_DIR_PATH", os.path.join(_TMP_ROOT, "scores"))
os.environ.setdefault("UPLOAD_FOLDER", os.path.join(_TMP_ROOT, "uploads"))
os.environ.setdefault("TARGET_COMPILER_URL", "http://compiler.invalid")

from models.image import Image


def _rgb(gray: np.ndarray) -> np.ndarray:
    return np.repeat(gray[:, :, None], 3, axis=2).astype(np.uint8)


@pytest.fixture
def make_image():
    def _make(pixels: np.ndarray, name: str = "art.png", mime_type: str = "image/png") -> Image:
        return Image(pixels=pixels, name=name, mime_type=mime_type)
    return _make


@pytest.fixture
def flat_gray():
    return _rgb(np.full((1000, 1000), 128))


@pytest.fixture
def checkerboard():
    yy, xx = np.indices((1200, 1200))
    return _rgb(((xx + yy) % 2) * 255)


@pytest.fixture
def black_small():
    return np.zeros((100, 100, 3), dtype=np.uint8)


@pytest.fixture
def noise():
    rng = np.random.default_rng(1234)
    return rng.integers(0, 256, size=(850, 850, 3), dtype=np.uint8)


@pytest.fixture
def to_png():
    def _encode(pixels: np.ndarray, fmt: str = "PNG") -> bytes:
        buffer = BytesIO()
        PILImage.fromarray(pixels).save(buffer, format=fmt)
        return buffer.getvalue()
    return _encode
