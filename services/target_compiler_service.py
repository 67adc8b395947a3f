from __future__ import annotations
import base64
import binascii
import logging
import os
from datetime import datetime, timezone

import requests
from dotenv import load_dotenv

from models.image import Image
from models.target_artifact import TargetArtifact
from services.image_service import ImageService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class TargetCompilerError(RuntimeError):
    """The compiler backend was unreachable or rejected the request."""


class TargetCompilerService:
    """
    HTTP client for the external tracking-target compiler.
    The compiler turns an artwork image into a binary ``.mind`` target.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None,
                 session: requests.Session | None = None):
        self.base_url = (base_url or os.getenv("TARGET_COMPILER_URL", "http://localhost:3001")).rstrip("/")
        self.timeout = timeout or float(os.getenv("TARGET_COMPILER_TIMEOUT", "120"))
        self.session = session or requests.Session()
        self.image_service = ImageService()

    def is_healthy(self) -> bool:
        """True when GET /health answers with {"ok": true}."""
        try:
            res = self.session.get(f"{self.base_url}/health", timeout=5)
        except requests.RequestException as e:
            logger.warning(f"Compiler health check failed: {e}")
            return False
        if not res.ok:
            return False
        try:
            data = res.json()
        except ValueError:
            return False
        return isinstance(data, dict) and bool(data.get("ok"))

    def _image_data_url(self, img: Image) -> str:
        png = self.image_service.encode_png(img)
        return "data:image/png;base64," + base64.b64encode(png).decode("ascii")

    @staticmethod
    def _error_details(res: requests.Response) -> str:
        try:
            body = res.json()
            details = (body.get("details") or body.get("error") or "") if isinstance(body, dict) else ""
        except ValueError:
            details = res.text or ""
        return details or f"Backend error ({res.status_code})"

    def compile(self, img: Image, image_name: str | None = None) -> TargetArtifact:
        endpoint = f"{self.base_url}/api/mindar/compile"
        payload = {
            "imageDataUrl": self._image_data_url(img),
            "imageName": image_name or img.name or "artwork.png",
        }
        logger.info(f"Compiling target for {payload['imageName']} via {endpoint}")

        try:
            res = self.session.post(endpoint, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise TargetCompilerError(f"Target compiler not reachable at {self.base_url}: {e}") from e

        if not res.ok:
            raise TargetCompilerError(self._error_details(res))

        try:
            data = res.json()
        except ValueError as e:
            raise TargetCompilerError("Invalid backend response. Expected JSON.") from e

        mind_b64 = data.get("mindBase64") if isinstance(data, dict) else None
        if not mind_b64:
            raise TargetCompilerError("Invalid backend response. mindBase64 missing.")

        try:
            mind = base64.b64decode(mind_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise TargetCompilerError("Invalid backend response. mindBase64 is not valid base64.") from e

        return TargetArtifact(
            filename=data.get("filename") or "target.mind",
            data=mind,
            size_bytes=round(len(mind_b64) * 3 / 4),
            created_at=datetime.now(timezone.utc).isoformat(),
            api_base=self.base_url,
        )
