"""
Content-addressed byte storage for uploaded files.

The share-link core only needs ``put`` and ``get``; bytes arrive already
encrypted by the client and are stored and returned untouched.
"""
import hashlib
import logging
import os
import tempfile
from typing import Protocol

from sharevault.core.errors import BlobNotFound

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    def put(self, data: bytes) -> str: ...

    def get(self, path: str) -> bytes: ...


class LocalBlobStore:
    """Stores blobs under ``root`` as ``<hash[:2]>/<hash>``."""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)
        os.makedirs(self.root, exist_ok=True)

    def _resolve(self, path: str) -> str:
        full_path = os.path.abspath(os.path.join(self.root, path))
        if os.path.commonpath([self.root, full_path]) != self.root:
            raise BlobNotFound(path)
        return full_path

    def put(self, data: bytes) -> str:
        file_hash = hashlib.sha256(data).hexdigest()
        path = os.path.join(file_hash[:2], file_hash)
        final_path = self._resolve(path)
        if os.path.exists(final_path):
            # Same content already stored
            return path

        os.makedirs(os.path.dirname(final_path), exist_ok=True)
        fd, temp_file_path = tempfile.mkstemp(dir=os.path.dirname(final_path), prefix="temp_")
        try:
            with os.fdopen(fd, "wb") as buffer:
                buffer.write(data)
            os.replace(temp_file_path, final_path)
        except OSError:
            if os.path.exists(temp_file_path):
                os.remove(temp_file_path)
            raise
        logger.debug("Stored blob %s (%d bytes)", path, len(data))
        return path

    def get(self, path: str) -> bytes:
        full_path = self._resolve(path)
        try:
            with open(full_path, mode="rb") as file_like:
                return file_like.read()
        except FileNotFoundError:
            raise BlobNotFound(path) from None
