"""Central error types used across the application."""

from __future__ import annotations

from enum import Enum


class JourneyTracksError(RuntimeError):
    """Base error for the track pipeline."""


class ParseErrorKind(str, Enum):
    UNSUPPORTED_FORMAT = "unsupported-format"
    MALFORMED = "malformed"
    EMPTY_TRACK = "empty-track"


class ParseError(JourneyTracksError):
    """Raised when a track file cannot be decoded into points."""

    def __init__(self, kind: ParseErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.args[0]}"


class ValidationError(JourneyTracksError):
    """Raised when an edit request is rejected before any mutation happens."""


class StorageError(JourneyTracksError):
    """Raised when the persistence layer or object storage rejects a request."""


class ActivityNotFoundError(StorageError):
    """Raised when an activity id does not exist."""


class JourneyNotFoundError(StorageError):
    """Raised when a journey id does not exist."""


class TransportError(JourneyTracksError):
    """Raised when bytes could not be moved to or from object storage."""


class InvalidTransitionError(JourneyTracksError):
    """Raised when a processing job is asked to make an illegal state change."""


class ProcessingTimeoutError(JourneyTracksError):
    """Raised when a processing job exceeds its time budget."""


__all__ = [
    "JourneyTracksError",
    "ParseErrorKind",
    "ParseError",
    "ValidationError",
    "StorageError",
    "ActivityNotFoundError",
    "JourneyNotFoundError",
    "TransportError",
    "InvalidTransitionError",
    "ProcessingTimeoutError",
]
