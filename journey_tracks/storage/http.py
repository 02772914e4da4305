"""Object storage over HTTP.

The service follows the usual two-step upload handshake: ask for a
single-use upload URL, POST the bytes to it and receive a storage id. Stored
files are then read and deleted by id under ``/files/<id>``.
"""

from __future__ import annotations

import logging
from threading import RLock
from typing import Any, Dict, Optional

import requests
from cachetools import TTLCache
from requests import Response, Session

from ..config import (
    OBJECT_STORAGE_BASE_URL,
    OBJECT_STORAGE_TOKEN,
    REQUEST_TIMEOUT,
    STORAGE_READ_CACHE_SIZE,
    STORAGE_READ_CACHE_TTL_SECONDS,
)
from ..errors import StorageError, TransportError
from .session import create_default_session

LOGGER = logging.getLogger(__name__)


class HttpObjectStorage:
    """:class:`~journey_tracks.storage.base.ObjectStorage` backed by a REST service."""

    def __init__(
        self,
        base_url: str = OBJECT_STORAGE_BASE_URL,
        *,
        session: Optional[Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        cache_size: int = STORAGE_READ_CACHE_SIZE,
        cache_ttl: int = STORAGE_READ_CACHE_TTL_SECONDS,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required (set OBJECT_STORAGE_BASE_URL)")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or create_default_session(OBJECT_STORAGE_TOKEN or None)
        self._cache: TTLCache[str, bytes] = TTLCache(maxsize=max(1, cache_size), ttl=cache_ttl)
        self._cache_lock = RLock()

    def create_upload_url(self) -> str:
        payload = self._json(self._request("POST", f"{self.base_url}/upload-urls"))
        upload_url = payload.get("uploadUrl")
        if not isinstance(upload_url, str) or not upload_url:
            raise StorageError("Upload URL response did not include 'uploadUrl'")
        return upload_url

    def upload(self, upload_url: str, data: bytes, content_type: str) -> str:
        response = self._request(
            "POST", upload_url, data=data, headers={"Content-Type": content_type}
        )
        storage_id = self._json(response).get("storageId")
        if not isinstance(storage_id, str) or not storage_id:
            raise StorageError("Upload response did not include 'storageId'")
        LOGGER.debug("Uploaded %d bytes as %s", len(data), storage_id)
        return storage_id

    def read(self, file_ref: str) -> bytes:
        with self._cache_lock:
            cached = self._cache.get(file_ref)
        if cached is not None:
            return cached
        content = self._request("GET", self._file_url(file_ref)).content
        with self._cache_lock:
            self._cache[file_ref] = content
        return content

    def delete(self, file_ref: str) -> None:
        with self._cache_lock:
            self._cache.pop(file_ref, None)
        self._request("DELETE", self._file_url(file_ref))

    def _file_url(self, file_ref: str) -> str:
        return f"{self.base_url}/files/{file_ref}"

    def _request(self, method: str, url: str, **kwargs: Any) -> Response:
        LOGGER.debug("%s %s", method, url)
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        if response.status_code >= 400:
            raise StorageError(
                f"{method} {url} returned HTTP {response.status_code}: {response.text[:200]}"
            )
        return response

    @staticmethod
    def _json(response: Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise StorageError("Object storage returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise StorageError(f"Unexpected response type: {type(payload).__name__}")
        return payload


__all__ = ["HttpObjectStorage"]
