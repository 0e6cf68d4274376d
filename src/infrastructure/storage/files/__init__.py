"""Raw document storage."""

from src.config import get_settings
from src.infrastructure.storage.files.local_file_storage import LocalFileStorage

_file_storage: LocalFileStorage | None = None


def get_file_storage() -> LocalFileStorage:
    """Get singleton file storage rooted at the configured upload directory."""
    global _file_storage
    if _file_storage is None:
        _file_storage = LocalFileStorage(get_settings().storage.upload_dir)
    return _file_storage


def reset_file_storage() -> None:
    global _file_storage
    _file_storage = None


__all__ = ["LocalFileStorage", "get_file_storage", "reset_file_storage"]
