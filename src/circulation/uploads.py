"""Cover image storage.

Stores uploaded cover payloads on disk and hands back the filename that is
saved on the book record. Image content is not inspected.
"""

import logging
import time
from pathlib import Path
from typing import Optional

from .config import get_config

logger = logging.getLogger(__name__)


class CoverStorage:
    """Writes cover images into the upload directory."""

    def __init__(self, upload_dir: Optional[Path] = None):
        self.upload_dir = Path(upload_dir) if upload_dir else get_config().upload_dir

    def _ensure_directory(self) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def _unique_name(self, extension: str) -> str:
        """Millisecond timestamp name, bumped until it is free."""
        stamp = int(time.time() * 1000)
        while (self.upload_dir / f"{stamp}{extension}").exists():
            stamp += 1
        return f"{stamp}{extension}"

    def save(self, payload: bytes, original_name: str) -> str:
        """Store a cover image.

        Args:
            payload: Raw file bytes
            original_name: Client-side filename; only its extension is kept

        Returns:
            Filename relative to the upload directory
        """
        self._ensure_directory()
        extension = Path(original_name).suffix.lower()
        filename = self._unique_name(extension)
        (self.upload_dir / filename).write_bytes(payload)
        logger.info("Stored cover %s (%d bytes)", filename, len(payload))
        return filename

    def path_for(self, filename: str) -> Path:
        """Absolute path of a stored cover."""
        return self.upload_dir / filename
