"""
Filesystem implementation of the blob binding.

Layout under the data directory:
- {source}_files/{file}       source audio, read-only
- tts_files/{identifier}.mp3  synthesized speech cache

No locking is done: cache writes land in a temp file and are moved into
place with os.replace, so concurrent writes of the same identifier leave
one complete file.
"""
import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Optional, Union

import aiofiles
import aiofiles.os

from yomitan_local.core.errors import BlobNotFoundError, StorageIOError
from yomitan_local.ports.blob import BlobBinding, BlobObject, MediaBlob, PutAck

logger = logging.getLogger(__name__)

TTS_COLLECTION = "tts_files"
TTS_KEY = re.compile(r"^tts_files/(?P<identifier>[^/]+)\.mp3$")
SOURCE_KEY = re.compile(r"^(?P<source>[^/]+?)_files/(?P<file>.+)$")


def _is_safe_relative(path: str) -> bool:
    if not path or "\x00" in path or PurePosixPath(path).is_absolute():
        return False
    # PurePosixPath drops "." and empty parts, so check the raw segments
    return all(part not in ("", ".", "..") for part in path.split("/"))


@dataclass(frozen=True)
class BlobKey:
    """A parsed object key: kind is "tts" or "source"."""

    kind: str
    collection: str
    name: str
    source: Optional[str] = None


def parse_key(key: str) -> Optional[BlobKey]:
    """
    Route an object key to a collection.

    Returns:
        BlobKey, or None for any key shape that names no object
    """
    if key.startswith(f"{TTS_COLLECTION}/"):
        match = TTS_KEY.match(key)
        if not match or not _is_safe_relative(match.group("identifier")):
            return None
        return BlobKey("tts", TTS_COLLECTION, match.group("identifier"))

    match = SOURCE_KEY.match(key)
    if not match or not _is_safe_relative(match.group("file")):
        return None
    source = match.group("source")
    return BlobKey("source", f"{source}_files", match.group("file"), source=source)


class LocalAudioStorage:
    """Reads source audio and reads/writes the speech cache on disk."""

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)

    def audio_path(self, source: str, file: str) -> Path:
        return self.data_dir / f"{source}_files" / file

    def tts_path(self, tts_identifier: str) -> Path:
        return self.data_dir / TTS_COLLECTION / f"{tts_identifier}.mp3"

    async def _read(self, path: Path) -> bytes:
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    async def fetch_audio(self, source: str, file: str) -> bytes:
        """
        Read one source audio file.

        Raises:
            BlobNotFoundError: If the file does not exist
            StorageIOError: For any other filesystem failure
        """
        path = self.audio_path(source, file)
        try:
            return await self._read(path)
        except (FileNotFoundError, NotADirectoryError) as e:
            raise BlobNotFoundError("File not found") from e
        except OSError as e:
            raise StorageIOError(f"Failed to read audio file: {e}") from e

    async def fetch_tts(self, tts_identifier: str) -> Optional[bytes]:
        """Read a cached synthesized file, or None if it has not been made yet."""
        path = self.tts_path(tts_identifier)
        try:
            return await self._read(path)
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as e:
            raise StorageIOError(f"Failed to read TTS file: {e}") from e

    async def save_tts(self, tts_identifier: str, mp3: bytes) -> Path:
        """Write a synthesized file into the cache, creating the directory if needed."""
        path = self.tts_path(tts_identifier)
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(mp3)
            await aiofiles.os.replace(tmp_path, path)
        except OSError as e:
            await self._discard(tmp_path)
            raise StorageIOError(f"Failed to save TTS file: {e}") from e
        return path

    async def delete_tts(self, tts_identifier: str) -> bool:
        """Remove a cached file. Returns whether a file existed."""
        try:
            await aiofiles.os.remove(self.tts_path(tts_identifier))
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageIOError(f"Failed to delete TTS file: {e}") from e
        return True

    async def _discard(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(f"Could not remove temp file {path}: {e}")


async def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, MediaBlob):
        return value.data
    if hasattr(value, "array_buffer"):
        return bytes(await value.array_buffer())
    raise TypeError(f"Cannot store value of type {type(value).__name__}")


class FilesystemBlobBinding(BlobBinding):
    """Edge object store binding emulated over LocalAudioStorage."""

    def __init__(self, storage: LocalAudioStorage):
        self.storage = storage

    async def get(self, key: str) -> Optional[BlobObject]:
        parsed = parse_key(key)
        if parsed is None:
            logger.debug(f"No such object for key shape: {key}")
            return None

        if parsed.kind == "tts":
            data = await self.storage.fetch_tts(parsed.name)
            if data is None:
                logger.debug(f"TTS cache miss: {key}")
                return None
        else:
            try:
                data = await self.storage.fetch_audio(parsed.source, parsed.name)
            except BlobNotFoundError:
                logger.debug(f"Audio file not found: {key}")
                return None

        return BlobObject(key=key, body=data)

    async def put(self, key: str, value: Any) -> Optional[PutAck]:
        parsed = parse_key(key)
        if parsed is None or parsed.kind != "tts":
            logger.warning(f"Ignoring write to read-only key: {key}")
            return None

        data = await _to_bytes(value)
        await self.storage.save_tts(parsed.name, data)
        logger.info(f"Cached TTS file {key} ({len(data)} bytes)")
        return PutAck(key=key, size=len(data))

    async def delete(self, key: str) -> None:
        parsed = parse_key(key)
        if parsed is None or parsed.kind != "tts":
            logger.warning(f"Ignoring delete of read-only key: {key}")
            return

        await self.storage.delete_tts(parsed.name)
