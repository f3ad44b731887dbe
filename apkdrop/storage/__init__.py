"""Storage collaborators for APKdrop."""

from .interface import BlobEntry, BlobStore, SessionStore, UploadOptions, bounded_wait
from .local import LocalBlobStore
from .sessions import LocalSessionStore

__all__ = [
    "BlobEntry",
    "BlobStore",
    "SessionStore",
    "UploadOptions",
    "bounded_wait",
    "LocalBlobStore",
    "LocalSessionStore",
]
