import io
import logging
import os
from collections.abc import Iterable, Iterator
from typing import BinaryIO, Union

from .constants import CHUNK_SIZE_DEFAULT

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]


class ByteSource:
    """
    What the decoder needs from the archive bytes.

    The source owns the cursor. `position` counts bytes consumed since the
    archive start; the reader and its entries never keep their own copy.
    """

    seekable = False

    def __init__(self):
        self._position = 0

    @property
    def position(self) -> int:
        return self._position

    def read(self, size: int) -> bytes:
        """Returns up to `size` bytes, fewer only at the end of the stream."""
        raise NotImplementedError

    def read_chunk(self, max_size: int) -> bytes:
        """Returns the next available piece of at most `max_size` bytes."""
        return self.read(max_size)

    def readinto(self, buffer) -> int:
        view = memoryview(buffer).cast("B")
        data = self.read(len(view))
        view[: len(data)] = data
        return len(data)

    def skip(self, size: int) -> int:
        """
        Moves the cursor `size` bytes forward. Returns how many bytes were
        actually skipped, which is less than `size` only at end of stream.
        Without seek support this reads and drops the bytes.
        """
        skipped = 0
        while skipped < size:
            data = self.read_chunk(min(CHUNK_SIZE_DEFAULT, size - skipped))
            if not data:
                break
            skipped += len(data)
        return skipped

    def close(self):
        pass


class ChunkSource(ByteSource):
    """
    Sequential source over an iterable of byte chunks of any size.

    Chunks are sliced on demand, so at most one pending chunk is held.
    The iterable belongs to the caller unless `close_chunks` is set.
    """

    def __init__(self, chunks: Iterable[BytesLike], close_chunks: bool = False):
        super().__init__()
        self._chunks: Iterator[BytesLike] = iter(chunks)
        self._close_chunks = close_chunks
        self._pending = memoryview(b"")

    def _pull(self) -> bool:
        """Loads the next non-empty chunk. False when the iterable is done."""
        for chunk in self._chunks:
            if len(chunk):
                self._pending = memoryview(chunk).cast("B")
                return True
        return False

    def read_chunk(self, max_size: int) -> bytes:
        if max_size <= 0:
            return b""
        if not self._pending and not self._pull():
            return b""

        piece = self._pending[:max_size]
        self._pending = self._pending[len(piece) :]
        self._position += len(piece)
        return bytes(piece)

    def read(self, size: int) -> bytes:
        parts = []
        needed = size
        while needed > 0:
            piece = self.read_chunk(needed)
            if not piece:
                break
            parts.append(piece)
            needed -= len(piece)
        return b"".join(parts)

    def close(self):
        if not self._close_chunks:
            return
        close = getattr(self._chunks, "close", None)
        if callable(close):
            close()


class SeekableSource(ByteSource):
    """Random-access source over a binary file object."""

    seekable = True

    def __init__(self, fileobj: BinaryIO, close_fileobj: bool = False):
        super().__init__()
        self._fileobj = fileobj
        self._close_fileobj = close_fileobj
        self._start = fileobj.tell()
        self._end = self._find_end()

    def _find_end(self) -> int | None:
        """Stream length when the file object can tell it, else None."""
        try:
            current = self._fileobj.tell()
            end = self._fileobj.seek(0, os.SEEK_END)
            self._fileobj.seek(current, os.SEEK_SET)
            return end
        except (OSError, io.UnsupportedOperation):
            return None

    @property
    def position(self) -> int:
        return self._fileobj.tell() - self._start

    def read(self, size: int) -> bytes:
        buffer = bytearray(size)
        n = self.readinto(buffer)
        return bytes(buffer[:n])

    def readinto(self, buffer) -> int:
        view = memoryview(buffer).cast("B")
        total = 0
        while total < len(view):
            n = self._fileobj.readinto(view[total:])  # type: ignore[attr-defined]
            if not n:
                break
            total += n
        return total

    def skip(self, size: int) -> int:
        if size <= 0:
            return 0
        if self._end is not None:
            size = max(0, min(size, self._end - self._fileobj.tell()))
        self._fileobj.seek(size, os.SEEK_CUR)
        logger.debug(f"Seeked {size} bytes forward")
        return size

    def close(self):
        if self._close_fileobj:
            self._fileobj.close()


def iter_file_chunks(
    fileobj: BinaryIO, chunk_size: int = CHUNK_SIZE_DEFAULT
) -> Iterator[bytes]:
    """Reads a non-seekable file object as a sequence of chunks."""
    while True:
        chunk = fileobj.read(chunk_size)
        if not chunk:
            return
        yield chunk


def open_source(obj, chunk_size: int = CHUNK_SIZE_DEFAULT) -> ByteSource:
    """
    Wraps `obj` in the right ByteSource.

    - ByteSource: used as is.
    - bytes-like: seekable, through an in-memory buffer.
    - file object: seekable when it says so, else read in chunks.
    - any other iterable: treated as a sequence of chunks.

    Paths are not accepted here; `open_archive` opens them.
    """
    if isinstance(obj, ByteSource):
        return obj

    if isinstance(obj, (str, os.PathLike)):
        raise TypeError(
            f"Cannot read an archive from a path ({obj!r}); use open_archive() to open it"
        )

    if isinstance(obj, (bytes, bytearray, memoryview)):
        return SeekableSource(io.BytesIO(obj))

    if hasattr(obj, "read"):
        seekable = getattr(obj, "seekable", None)
        if callable(seekable) and seekable() and hasattr(obj, "readinto"):
            return SeekableSource(obj)
        return ChunkSource(iter_file_chunks(obj, chunk_size), close_chunks=True)

    if isinstance(obj, Iterable):
        return ChunkSource(obj)

    raise TypeError(f"Cannot read an archive from {type(obj).__name__}")
