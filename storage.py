# storage.py
from __future__ import annotations

import hashlib
import hmac
import logging
import os
import time
import uuid
from collections.abc import Iterable
from urllib.parse import urlencode

from errors import StorageError

logger = logging.getLogger(__name__)

SIGNED_URL_TTL = 60  # seconds


class LocalBucketStorage:
    """
    Object storage bucket on the local disk. Blobs are stored under random
    names (the original extension is kept); downloads for the browser go
    through short-lived HMAC-signed URLs.
    """

    def __init__(self, root: str, secret: str, *, bucket: str = "documents",
                 url_prefix: str = "/files") -> None:
        if not secret:
            raise ValueError("Storage secret must not be empty")
        self.root = os.path.join(root, bucket)
        self.bucket = bucket
        self.url_prefix = url_prefix
        self._secret = secret.encode("utf-8")
        os.makedirs(self.root, exist_ok=True)

    def _full_path(self, path: str) -> str:
        name = os.path.basename(path or "")
        if not name or name != path or name in (".", ".."):
            raise StorageError(f"Invalid object path: {path!r}")
        return os.path.join(self.root, name)

    @staticmethod
    def object_name(original_name: str) -> str:
        _, ext = os.path.splitext(original_name or "")
        return f"{uuid.uuid4().hex}{ext.lower()}"

    def upload(self, data: bytes, original_name: str) -> str:
        path = self.object_name(original_name)
        try:
            with open(self._full_path(path), "xb") as f:
                f.write(data)
        except OSError as e:
            logger.error("upload of %s failed: %s", original_name, e)
            raise StorageError(f"Upload failed: {e}") from e
        logger.info("stored %s (%d bytes) as %s", original_name, len(data), path)
        return path

    def exists(self, path: str) -> bool:
        return os.path.isfile(self._full_path(path))

    def download(self, path: str) -> bytes:
        try:
            with open(self._full_path(path), "rb") as f:
                return f.read()
        except FileNotFoundError:
            raise StorageError(f"Object not found: {path}") from None
        except OSError as e:
            logger.error("download of %s failed: %s", path, e)
            raise StorageError(f"Download failed: {e}") from e

    def remove(self, paths: Iterable[str]) -> list[str]:
        """Delete objects; missing ones are skipped. Returns the removed paths."""
        removed: list[str] = []
        for path in paths:
            try:
                os.remove(self._full_path(path))
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error("remove of %s failed: %s", path, e)
                raise StorageError(f"Remove failed: {e}") from e
            removed.append(path)
        if removed:
            logger.info("removed %s", ", ".join(removed))
        return removed

    # ===== signed URLs =====

    def _signature(self, path: str, expires: int) -> str:
        msg = f"{self.bucket}/{path}:{expires}".encode("utf-8")
        return hmac.new(self._secret, msg, hashlib.sha256).hexdigest()

    def create_signed_url(self, path: str, expires_in: int = SIGNED_URL_TTL,
                          *, now: float | None = None) -> str:
        if expires_in <= 0:
            raise ValueError("expires_in must be positive")
        self._full_path(path)
        expires = int(now if now is not None else time.time()) + expires_in
        query = urlencode({"path": path, "expires": expires,
                           "signature": self._signature(path, expires)})
        return f"{self.url_prefix}?{query}"

    def verify_signed_url(self, path: str, expires: str | int, signature: str,
                          *, now: float | None = None) -> bool:
        try:
            exp = int(expires)
        except (TypeError, ValueError):
            return False
        if exp < int(now if now is not None else time.time()):
            return False
        return hmac.compare_digest(self._signature(path, exp), signature or "")
