"""HTTP session factory for object-storage calls."""

from __future__ import annotations

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import HTTP_POOL_CONNECTIONS, HTTP_POOL_MAXSIZE, STORAGE_MAX_RETRIES

__all__ = ["create_default_session"]


def _build_retry() -> Retry:
    # Uploads are POSTs to single-use URLs; only retry them on connection
    # errors, never on a status code that may mean the bytes already landed.
    return Retry(
        total=STORAGE_MAX_RETRIES,
        backoff_factor=1.0,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["GET", "DELETE"],
    )


def create_default_session(token: str | None = None) -> Session:
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=HTTP_POOL_CONNECTIONS,
        pool_maxsize=HTTP_POOL_MAXSIZE,
        max_retries=_build_retry(),
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"Accept-Encoding": "gzip, deflate"})
    if token:
        session.headers["Authorization"] = f"Bearer {token}"
    return session
