from __future__ import annotations
from dataclasses import dataclass


@dataclass
class VideoMeta:
    """Descriptive info about an attached video; the bytes live elsewhere."""
    name: str
    type: str  # MIME type as declared by the upload
    size: int  # bytes
    duration: float | None = None  # seconds, None when it could not be probed

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.type,
            "size": self.size,
            "duration": self.duration,
        }
