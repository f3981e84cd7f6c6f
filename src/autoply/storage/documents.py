"""Summary: Object storage for uploaded CV documents.

Importance: Keeps the original bytes as the durable artifact; text is always re-derived.
Alternatives: Use S3-compatible storage through boto3.
"""

from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[0-9a-f]{32}$")


class LocalDocumentStore:
    """Summary: UUID-keyed document store on the local filesystem.

    Importance: Provides upload and download of CV bytes without cloud credentials.
    Alternatives: Store blobs in SQLite or a managed bucket.
    """

    def __init__(self, root: str) -> None:
        self._root = Path(root)

    def put(self, data: bytes, media_type: str) -> str:
        """Summary: Store bytes and return an opaque key.

        Importance: Callers only ever hold the key; bytes come back unchanged.
        Alternatives: Content-address the bytes by SHA-256.
        """

        key = uuid.uuid4().hex
        self._root.mkdir(parents=True, exist_ok=True)
        self._path(key).write_bytes(data)
        logger.info("Stored %s document %s (%s bytes).", media_type, key, len(data))
        return key

    def get(self, key: str) -> bytes:
        path = self._path(key)
        if not path.exists():
            raise FileNotFoundError(f"Document not found: {key}")
        return path.read_bytes()

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid document key: {key}")
        return self._root / key
