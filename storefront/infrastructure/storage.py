"""Media store for uploaded catalog images."""

import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from storefront.application.errors import UploadFailed
from storefront.core.logging_config import get_logger

logger = get_logger(__name__)


class MediaStoreError(Exception):
    """Raised when a stored file can not be removed."""


@dataclass(frozen=True)
class Upload:
    filename: str
    content_type: Optional[str]
    content: bytes


class MediaStore(Protocol):
    def upload(self, upload: Upload) -> str: ...

    def remove(self, filename: Optional[str]) -> None: ...

    def url_for(self, filename: Optional[str]) -> Optional[str]: ...


def random_filename(original: str, nbytes: int = 32) -> str:
    """Generate an unguessable filename that keeps the original extension."""
    suffix = Path(original or "").suffix.lower()
    return f"{secrets.token_hex(nbytes)}{suffix}"


class LocalMediaStore:
    """Filesystem backed media store serving files under ``base_url``."""

    def __init__(self, root: str, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def upload(self, upload: Upload) -> str:
        if not upload.content:
            raise UploadFailed("Uploaded file is empty")
        filename = random_filename(upload.filename)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / filename).write_bytes(upload.content)
        except OSError as e:
            logger.error(f"Failed to store upload {upload.filename}: {e}")
            raise UploadFailed() from e
        logger.info(
            "Stored upload",
            extra={'extra_fields': {'filename': filename, 'size': len(upload.content)}}
        )
        return filename

    def remove(self, filename: Optional[str]) -> None:
        if not filename:
            return
        path = self.root / os.path.basename(filename)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise MediaStoreError(f"Failed to remove {filename}: {e}") from e

    def url_for(self, filename: Optional[str]) -> Optional[str]:
        if not filename:
            return None
        return f"{self.base_url}/{filename}"
