"""
Object storage protocol and types for terraform-module-cosign.

Defines the ObjectStore Protocol that storage backends must satisfy, along
with the location type decoded from module URLs and shared exceptions.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable

# --- Data Types ---


@dataclass(frozen=True)
class ObjectLocation:
    """Where a module archive lives in an S3-compatible object store.

    `endpoint_url` is only set for non-AWS endpoints, so that transfers go to
    the host named in the URL rather than to AWS.
    """

    region: str
    bucket: str
    key: str
    version: str = ""
    endpoint_url: str = ""


@dataclass(frozen=True)
class ObjectMeta:
    """Metadata about a stored object."""

    key: str
    size_bytes: int
    content_type: str
    etag: str
    last_modified: datetime
    metadata: dict[str, str] = field(default_factory=dict)


# --- Exceptions ---


class ObjectStoreError(Exception):
    """Base exception for object store operations."""


class ObjectNotFoundError(ObjectStoreError):
    """Raised when a requested object does not exist."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Object not found: {key}")


class ObjectStorePermissionError(ObjectStoreError):
    """Raised when the caller lacks permission for the operation."""


class ObjectStoreTimeoutError(ObjectStoreError):
    """Raised when a transfer exceeds the configured deadline."""

    def __init__(self, key: str, timeout_seconds: float) -> None:
        self.key = key
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Timed out after {timeout_seconds:g}s: {key}")


# --- Protocol ---


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol defining the object storage interface.

    A store is bound to one bucket (and region/endpoint). All methods are
    async. Implementations must satisfy this interface structurally.
    """

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> ObjectMeta:
        """Store an object.

        Args:
            key: Object key (path).
            data: Object content.
            content_type: MIME type.

        Returns:
            Metadata of the stored object.
        """
        ...

    async def get(self, key: str, version_id: str = "") -> bytes:
        """Retrieve an object's content.

        Args:
            key: Object key.
            version_id: Specific object version. Latest if empty.

        Returns:
            Object content as bytes.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the backend."""
        ...
