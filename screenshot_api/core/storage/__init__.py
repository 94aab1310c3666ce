"""
Storage
=======

Upload of finished screenshots.
"""

from screenshot_api.core.storage.uploader import LocalStorageUploader, StorageError

__all__ = ["LocalStorageUploader", "StorageError"]
