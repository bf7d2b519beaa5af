"""
Blob binding interface.

Mirrors the edge platform's key-addressed object store binding. Keys have
the form "{collection}/{identifier}":

- tts_files/<id>.mp3       synthesized speech cache (read/write)
- <source>_files/<file>    source audio corpus (read-only)

get() returns None when there is no such object, so a cache miss is never
an error.
"""
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

AUDIO_MPEG = "audio/mpeg"


@dataclass(frozen=True)
class MediaBlob:
    """Bytes tagged with a media type, like a Fetch API Blob."""

    data: bytes
    type: str = ""

    @property
    def size(self) -> int:
        return len(self.data)

    async def array_buffer(self) -> bytes:
        return self.data

    async def text(self) -> str:
        return self.data.decode("utf-8")


@dataclass(frozen=True)
class HttpMetadata:
    content_type: str = AUDIO_MPEG


@dataclass(frozen=True)
class BlobObject:
    """A stored object, readable as raw bytes or as a typed MediaBlob."""

    key: str
    body: bytes
    http_metadata: HttpMetadata = field(default_factory=HttpMetadata)

    @property
    def size(self) -> int:
        return len(self.body)

    async def array_buffer(self) -> bytes:
        return self.body

    async def blob(self) -> MediaBlob:
        return MediaBlob(self.body, self.http_metadata.content_type)

    async def text(self) -> str:
        return self.body.decode("utf-8")

    async def json(self) -> Any:
        return json.loads(self.body)


@dataclass(frozen=True)
class PutAck:
    key: str
    size: int


class BlobBinding(ABC):
    """Object store binding handed to the router."""

    @abstractmethod
    async def get(self, key: str) -> Optional[BlobObject]:
        """
        Fetch an object by key.

        Args:
            key: Object key (e.g., "tts_files/abc123.mp3")

        Returns:
            BlobObject, or None if no such object exists

        Raises:
            StorageIOError: If the object exists but cannot be read
        """
        pass

    @abstractmethod
    async def put(self, key: str, value: Any) -> Optional[PutAck]:
        """
        Store an object.

        Args:
            key: Object key
            value: bytes-like, str, MediaBlob, or anything with an async array_buffer()

        Returns:
            PutAck for stored objects, None if the key is not writable

        Raises:
            StorageIOError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete an object. Deleting a missing object is not an error."""
        pass
