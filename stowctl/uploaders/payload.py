"""Immutable upload payloads backed by memory or a file."""

from __future__ import annotations

import mimetypes
import os
import threading
from pathlib import Path


class Payload:
    """Bytes to upload. Size is fixed at creation."""

    content_type: str | None = None

    @property
    def size(self) -> int:
        raise NotImplementedError

    def slice(self, start: int, end: int) -> bytes:
        """Return bytes ``[start, end)``, clamped to the payload size."""
        raise NotImplementedError

    def read_all(self) -> bytes:
        return self.slice(0, self.size)

    @classmethod
    def from_bytes(
        cls, data: bytes | bytearray | memoryview, content_type: str | None = None
    ) -> "BytesPayload":
        return BytesPayload(data, content_type)

    @classmethod
    def from_path(
        cls, path: str | os.PathLike[str], content_type: str | None = None
    ) -> "FilePayload":
        return FilePayload(Path(path), content_type)


class BytesPayload(Payload):
    """Payload held in memory."""

    def __init__(
        self, data: bytes | bytearray | memoryview, content_type: str | None = None
    ) -> None:
        self._data = bytes(data)
        self.content_type = content_type

    @property
    def size(self) -> int:
        return len(self._data)

    def slice(self, start: int, end: int) -> bytes:
        return self._data[max(start, 0):min(end, len(self._data))]

    def __repr__(self) -> str:
        return f"BytesPayload(size={self.size})"


class FilePayload(Payload):
    """Payload read lazily from a file.

    The size is captured when the payload is created. Reads past that size
    are clamped so a file that grows during the upload cannot change it.
    """

    def __init__(self, path: Path, content_type: str | None = None) -> None:
        if not path.is_file():
            raise FileNotFoundError(f"Not a file: {path}")
        self.path = path
        self._size = path.stat().st_size
        self._lock = threading.Lock()
        self.content_type = content_type or mimetypes.guess_type(path.name)[0]

    @property
    def size(self) -> int:
        return self._size

    def slice(self, start: int, end: int) -> bytes:
        start = max(start, 0)
        end = min(end, self._size)
        if end <= start:
            return b""
        with self._lock, self.path.open("rb") as f:
            f.seek(start)
            return f.read(end - start)

    def __repr__(self) -> str:
        return f"FilePayload(path={str(self.path)!r}, size={self.size})"
