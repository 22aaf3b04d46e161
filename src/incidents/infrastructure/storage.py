"""
Attachment Storage
==================

Writes uploads to the local upload directory, served under /uploads.
"""

import asyncio
import os
import time
from pathlib import Path

from src.core import UploadException
from src.incidents.application import IAttachmentStorage
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class LocalAttachmentStorage(IAttachmentStorage):
    """Stores files as `<epoch-ms>-<original name>`."""

    def __init__(self, upload_dir: Path, url_prefix: str = "/uploads"):
        self._upload_dir = Path(upload_dir)
        self._url_prefix = url_prefix.rstrip("/")

    def _write(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    async def save(self, filename: str, content: bytes) -> str:
        stored_name = f"{int(time.time() * 1000)}-{os.path.basename(filename)}"
        path = self._upload_dir / stored_name

        try:
            await asyncio.to_thread(self._write, path, content)
        except OSError as e:
            logger.error(
                "Attachment write failed",
                extra={"path": str(path), "error": str(e)}
            )
            raise UploadException("Upload failed", details={"filename": filename}) from e

        return f"{self._url_prefix}/{stored_name}"
