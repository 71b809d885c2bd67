"""
Local-disk attachment storage backend.
"""
from pathlib import Path
from typing import Optional

from core.logger import logger


class LocalStorage:
    """Stores attachments under a root directory; the reference is the path relative to it."""

    def __init__(self, root: Path, base_url: str = "/uploads"):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Local attachment storage at {self.root}")

    def _path(self, ref: str) -> Path:
        path = (self.root / ref).resolve()
        # Refuse references that escape the storage root
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Invalid attachment reference: {ref}")
        return path

    def save(self, folder: str, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
        ref = f"{folder}/{filename}"
        path = self._path(ref)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        logger.info(f"Stored attachment: {ref} ({len(content)} bytes)")
        return ref

    def delete(self, ref: str) -> bool:
        path = self._path(ref)
        if not path.exists():
            logger.warning(f"Attachment already missing: {ref}")
            return False
        path.unlink()
        logger.info(f"Deleted attachment: {ref}")
        return True

    def exists(self, ref: str) -> bool:
        return self._path(ref).exists()

    def url(self, ref: str) -> Optional[str]:
        if not ref:
            return None
        return f"{self.base_url}/{ref}"
