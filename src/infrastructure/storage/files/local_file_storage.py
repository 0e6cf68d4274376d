"""
Local filesystem storage for uploaded documents.

Files are written under a single directory with generated names so that
uploads with the same original name never collide.
"""

import asyncio
import hashlib
import io
from pathlib import Path
from typing import BinaryIO
from uuid import uuid4

from src.config import get_logger
from src.core.exceptions import StoredFileNotFoundError
from src.core.interfaces import IFileStorage

logger = get_logger(__name__)

_HASH_CHUNK_SIZE = 64 * 1024


class LocalFileStorage(IFileStorage):
    """Stores documents as ``{uuid}{ext}`` files in ``base_dir``."""

    def __init__(self, base_dir: Path | str):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def _resolve(self, path: str) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.base_dir / candidate
        return candidate

    async def save(self, content: bytes | BinaryIO, file_name: str) -> str:
        extension = Path(file_name).suffix.lower()
        target = self.base_dir / f"{uuid4()}{extension}"

        if isinstance(content, (bytes, bytearray)):
            data = bytes(content)
        else:
            content.seek(0)
            data = content.read()
            content.seek(0)

        await self._run(target.write_bytes, data)
        logger.debug("file_saved", file_name=file_name, path=str(target), size=len(data))
        return str(target)

    async def read(self, path: str) -> BinaryIO:
        target = self._resolve(path)
        if not target.is_file():
            raise StoredFileNotFoundError(path)
        data = await self._run(target.read_bytes)
        return io.BytesIO(data)

    async def delete(self, path: str) -> bool:
        target = self._resolve(path)
        if not target.is_file():
            return False
        await self._run(target.unlink)
        logger.debug("file_deleted", path=str(target))
        return True

    async def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def hash_content(self, content: bytes | BinaryIO) -> str:
        digest = hashlib.sha256()
        if isinstance(content, (bytes, bytearray)):
            digest.update(content)
            return digest.hexdigest()

        content.seek(0)
        for chunk in iter(lambda: content.read(_HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
        content.seek(0)
        return digest.hexdigest()
