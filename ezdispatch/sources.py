from os.path import basename
from typing import Protocol, runtime_checkable


@runtime_checkable
class ContentSource(Protocol):
    """A re-readable source of bytes for inline or attached content."""

    def read(self) -> bytes: ...


class BytesSource:
    """In-memory content.

    Example:
        BytesSource(b"name,total\\n")
    """

    def __init__(self, data: bytes):
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._data = bytes(data)

    def read(self) -> bytes:
        return self._data

    def __repr__(self) -> str:
        return f"<BytesSource size={len(self._data)}>"


class FileSource:
    """Content read from disk every time `read()` is called."""

    def __init__(self, path: str):
        self.path = path

    @property
    def filename(self) -> str:
        return basename(self.path)

    def read(self) -> bytes:
        with open(self.path, "rb") as f:
            return f.read()

    def __repr__(self) -> str:
        return f"<FileSource path={self.path!r}>"
