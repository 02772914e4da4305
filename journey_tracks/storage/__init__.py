"""Persistence and object-storage collaborators."""

from .base import ActivityStore, ObjectStorage
from .http import HttpObjectStorage
from .memory import InMemoryActivityStore, InMemoryObjectStorage

__all__ = [
    "ActivityStore",
    "ObjectStorage",
    "HttpObjectStorage",
    "InMemoryActivityStore",
    "InMemoryObjectStorage",
]
