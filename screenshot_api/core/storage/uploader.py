"""
Storage Uploader
================

Stores screenshots on the local filesystem and returns their public URL.
"""

import asyncio
from pathlib import Path
from typing import Union

from screenshot_api.config.logging import get_logger

logger = get_logger(__name__)


class StorageError(Exception):
    """Exception raised when a screenshot cannot be stored."""

    code = "UPLOAD_FAILED"


class LocalStorageUploader:
    """Writes screenshots below ``<root>/screenshots``."""

    def __init__(self, root: Union[str, Path], public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self.logger = logger.bind(component="storage_uploader")

    def path_for(self, job_id: str, format: str = "png") -> Path:
        return self.root / "screenshots" / f"{job_id}.{format}"

    async def upload(self, job_id: str, data: bytes, format: str = "png") -> str:
        """
        Store screenshot bytes.

        Returns:
            Public URL of the stored screenshot

        Raises:
            StorageError: If the file cannot be written
        """
        path = self.path_for(job_id, format)
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            self.logger.error("Upload to storage failed", job_id=job_id, error=str(e))
            raise StorageError("Failed to upload image to storage") from e

        url = f"{self.public_base_url}/screenshots/{path.name}"
        self.logger.info("Screenshot stored", job_id=job_id, size=len(data), url=url)
        return url

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
