"""Central configuration for the journey track pipeline.

All values are constants imported by the rest of the package. Adjust as needed
for your environment. Every value can be overridden through an environment
variable of the same name (optionally via a local `.env`).
"""

from __future__ import annotations

import os

from dotenv import load_dotenv


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env from the current directory or any parent folder.
load_dotenv()


# ---------------------------------------------------------------------------
# File ingestion
# ---------------------------------------------------------------------------
# Uploads larger than this are rejected before decoding.
MAX_FILE_SIZE_BYTES = _env_int("MAX_FILE_SIZE_BYTES", 50 * 1024 * 1024)

# Worker threads used to process a batch of uploaded files.
INGEST_MAX_WORKERS = _env_int("INGEST_MAX_WORKERS", 4)

# A job still running after this many seconds is abandoned and marked failed.
PROCESSING_TIMEOUT_SECONDS = _env_float("PROCESSING_TIMEOUT_SECONDS", 30.0)

# How often (seconds) the batch runner checks running jobs against the timeout.
PROCESSING_POLL_INTERVAL_SECONDS = _env_float("PROCESSING_POLL_INTERVAL_SECONDS", 0.25)

# Activity type assigned to uploads when the caller does not provide one.
DEFAULT_ACTIVITY_TYPE = os.getenv("DEFAULT_ACTIVITY_TYPE", "other")

# Adopt the sport declared inside TCX/FIT files when the caller left the
# activity type at its default.
USE_DECLARED_ACTIVITY_TYPE = _env_bool("USE_DECLARED_ACTIVITY_TYPE", True)


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------
# Mean Earth radius (metres) used by the Haversine distance.
EARTH_RADIUS_M = 6_371_000.0

# Maximum deviation (metres) allowed when simplifying stored route geometry.
SIMPLIFICATION_TOLERANCE_M = _env_float("SIMPLIFICATION_TOLERANCE_M", 5.0)

# Safety cap on the number of points kept in the simplified route.
MAX_SIMPLIFIED_POINTS = _env_int("MAX_SIMPLIFIED_POINTS", 1000)

# Segments shorter than this (seconds) are ignored when computing max speed so
# GPS jitter between near-identical timestamps cannot produce absurd spikes.
MIN_SPEED_SEGMENT_SECONDS = _env_float("MIN_SPEED_SEGMENT_SECONDS", 1.0)

# Optional ceiling for per-segment speeds (m/s). Set to 0 to disable.
MAX_PLAUSIBLE_SPEED_MPS = _env_float("MAX_PLAUSIBLE_SPEED_MPS", 0.0)

# Body weight used by the calorie estimate when none is supplied.
DEFAULT_BODY_WEIGHT_KG = _env_float("DEFAULT_BODY_WEIGHT_KG", 70.0)


# ---------------------------------------------------------------------------
# Object storage
# ---------------------------------------------------------------------------
# Base URL of the HTTP object-storage service. Only used by HttpObjectStorage.
OBJECT_STORAGE_BASE_URL = os.getenv("OBJECT_STORAGE_BASE_URL", "")

# Bearer token sent to the object-storage service, if it requires one.
OBJECT_STORAGE_TOKEN = os.getenv("OBJECT_STORAGE_TOKEN", "")

# HTTP session pool sizes for concurrent uploads.
HTTP_POOL_CONNECTIONS = 20
HTTP_POOL_MAXSIZE = 20

# Request timeout in seconds.
REQUEST_TIMEOUT = _env_int("REQUEST_TIMEOUT", 15)

# Retries for transient storage failures (5xx, connection resets).
STORAGE_MAX_RETRIES = _env_int("STORAGE_MAX_RETRIES", 3)

# Blobs read back from object storage are cached briefly so a file processed
# right after upload does not hit the network twice.
STORAGE_READ_CACHE_SIZE = _env_int("STORAGE_READ_CACHE_SIZE", 32)
STORAGE_READ_CACHE_TTL_SECONDS = _env_int("STORAGE_READ_CACHE_TTL_SECONDS", 300)
