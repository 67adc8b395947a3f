import json
import os
import re
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

from models.trackability import AnalysisResult

# Load environment variables
load_dotenv()

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class ArtworkScoreRepository:
    """
    Durable key-value store for artwork score records.
    One JSON file per artwork id: {score, label, debug, meta}.
    """

    def __init__(self, root: Union[str, Path, None] = None):
        self.root = Path(root or os.getenv("SCORES_DIR_PATH", "data/artwork_scores"))
        self.root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, artwork_id: str) -> Path:
        key = _SAFE_KEY.sub("_", artwork_id)
        if not key:
            raise ValueError("artwork_id must not be empty")
        return self.root / f"{key}.json"

    def save(self, artwork_id: str, result: AnalysisResult, meta: dict | None = None) -> Path:
        record = result.to_record()
        record["meta"] = meta or {}
        path = self._path_for(artwork_id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(record, indent=2), encoding="utf-8")
        tmp.replace(path)
        return path

    def get(self, artwork_id: str) -> Optional[dict]:
        """Stored record, or None when missing or unreadable."""
        path = self._path_for(artwork_id)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return None

    def delete(self, artwork_id: str) -> bool:
        path = self._path_for(artwork_id)
        if path.exists():
            path.unlink()
            return True
        return False

    def list_ids(self) -> list:
        return sorted(p.stem for p in self.root.glob("*.json"))
