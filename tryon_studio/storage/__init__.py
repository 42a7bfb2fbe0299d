"""Durable storage for saved artifacts."""

from .artifact_store import ArtifactStore, LOOKS, MEASUREMENTS, DEFAULT_COLLECTIONS

__all__ = [
    "ArtifactStore",
    "LOOKS",
    "MEASUREMENTS",
    "DEFAULT_COLLECTIONS",
]
