from __future__ import annotations
from dataclasses import dataclass


@dataclass
class TargetArtifact:
    """
    Compiled tracking target returned by the external compiler.
    """
    filename: str
    data: bytes
    size_bytes: int  # Estimated from the base64 payload length.
    created_at: str  # ISO-8601, UTC
    api_base: str | None = None

    def to_meta(self) -> dict:
        return {
            "filename": self.filename,
            "sizeBytes": self.size_bytes,
            "createdAt": self.created_at,
            "placeholder": False,
            "apiBase": self.api_base,
        }
