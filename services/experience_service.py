from __future__ import annotations
import os
from urllib.parse import urlsplit, urlunsplit

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

EXPERIENCE_PAGE = "experience.html"


class ExperienceService:
    """Builds the shareable link to the AR playback page."""

    def __init__(self, base_url: str | None = None):
        self.base_url = base_url or os.getenv("EXPERIENCE_BASE_URL", "http://localhost:5000/")

    def build_url(self, page_url: str | None = None) -> str | None:
        """
        Link to the experience page next to *page_url*.
        None unless the page is served over http(s).
        """
        parts = urlsplit(page_url or self.base_url)
        if parts.scheme not in ("http", "https"):
            return None
        directory = parts.path.rsplit("/", 1)[0] + "/"
        return urlunsplit((parts.scheme, parts.netloc, directory + EXPERIENCE_PAGE, "", ""))

    @staticmethod
    def is_ready(has_artwork: bool, has_video: bool) -> bool:
        return has_artwork and has_video
