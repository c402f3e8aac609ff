"""
Duplex Stream Module

This module implements `Stream`, which joins an independent readable
half and writable half into one object offering both read and write
capability. A single transport, such as a connected socket, can be
split into a buffered read path and a separate write path while the
sessions only ever see one stream.
"""

import io
import socket
from types import TracebackType
from typing import (
    BinaryIO,
    Optional,
    Tuple,
    Type,
)


class Stream:
    """
    Stream routes reads to ``reader`` and writes to ``writer``.

    It performs no buffering of its own beyond what ``reader`` does, and
    has no error conditions of its own: `OSError` and friends propagate
    unchanged from the underlying halves.

    :param reader: Binary file-like object supporting ``read`` and
                   ``readline``.
    :param writer: Binary file-like object supporting ``write`` and
                   ``flush``.
    """
    def __init__(self, reader: BinaryIO, writer: BinaryIO):
        self._reader = reader
        self._writer = writer

    @classmethod
    def from_socket(cls, sock: socket.socket) -> 'Stream':
        """
        Derive a buffered read half and a write half from a connected socket.

        The socket itself remains owned by the caller; closing the
        `Stream` closes only the two file objects derived from it.
        """
        # pylint: disable=consider-using-with
        return cls(sock.makefile('rb'), sock.makefile('wb'))

    @classmethod
    def from_file(cls, raw: io.RawIOBase) -> 'Stream':
        """
        Wrap a raw duplex binary file, e.g. a character device opened
        ``r+b`` with ``buffering=0``.

        Reads go through an `io.BufferedReader`; writes go directly to
        ``raw``.
        """
        reader = io.BufferedReader(raw)  # type: ignore[arg-type]
        return cls(reader, raw)  # type: ignore[arg-type]

    @property
    def reader(self) -> BinaryIO:
        """The readable half."""
        return self._reader

    @property
    def writer(self) -> BinaryIO:
        """The writable half."""
        return self._writer

    def into_inner(self) -> Tuple[BinaryIO, BinaryIO]:
        """Return the ``(reader, writer)`` halves."""
        return self._reader, self._writer

    def read(self, size: int = -1) -> bytes:
        return self._reader.read(size)

    def readline(self, limit: int = -1) -> bytes:
        return self._reader.readline(limit)

    def write(self, data: bytes) -> int:
        return self._writer.write(data)

    def flush(self) -> None:
        self._writer.flush()

    @property
    def closed(self) -> bool:
        return bool(self._reader.closed and self._writer.closed)

    def close(self) -> None:
        """
        Close both halves.
        """
        try:
            self._writer.close()
        finally:
            if self._reader is not self._writer:
                self._reader.close()

    def __enter__(self) -> 'Stream':
        return self

    def __exit__(self,
                 exc_type: Optional[Type[BaseException]],
                 exc_val: Optional[BaseException],
                 exc_tb: Optional[TracebackType]) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} r={self._reader!r} w={self._writer!r}>"
