from student_sync.shared.exceptions.base import SyncException
from student_sync.shared.exceptions.sync import (
    AuthError,
    ConfigError,
    EmptySourceError,
    FetchError,
    StorageError,
)

__all__ = [
    "SyncException",
    "AuthError",
    "ConfigError",
    "EmptySourceError",
    "FetchError",
    "StorageError",
]
