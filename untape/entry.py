import logging
from typing import Iterator, Optional

from .constants import CHUNK_SIZE_DEFAULT, TAR_BLOCK_SIZE
from .exceptions import TruncatedArchiveError
from .schemas import EntryInfo
from .sources import ByteSource

logger = logging.getLogger(__name__)


def _from_info(field: str) -> property:
    return property(lambda self: getattr(self.info, field))


class TarEntry:
    """
    One archive member: decoded metadata plus access to its body.

    The entry does not know where the source cursor is. It only counts the
    bytes of its own body (padding included) that went through the shared
    source, and is done once that count reaches `padded_size`.
    """

    name = _from_info("name")
    mode = _from_info("mode")
    uid = _from_info("uid")
    gid = _from_info("gid")
    size = _from_info("size")
    mtime = _from_info("mtime")
    kind = _from_info("kind")
    link_name = _from_info("link_name")
    owner = _from_info("owner")
    group = _from_info("group")
    major_number = _from_info("major_number")
    minor_number = _from_info("minor_number")
    padded_size = _from_info("padded_size")

    def __init__(
        self,
        info: EntryInfo,
        source: ByteSource,
        header_offset: int = 0,
        strict: bool = False,
        chunk_size: int = CHUNK_SIZE_DEFAULT,
    ):
        self.info = info
        self.header_offset = header_offset
        self.data_offset = header_offset + TAR_BLOCK_SIZE
        self.bytes_consumed = 0
        self.chunk_size = chunk_size

        self._source = source
        self._strict = strict
        self._truncated = False

    def __repr__(self):
        return f"<{type(self).__name__} {self.name!r} kind={self.kind} size={self.size}>"

    @property
    def consumed(self) -> bool:
        """True once the body and its padding are behind the source cursor."""
        return self._truncated or self.bytes_consumed >= self.padded_size

    @property
    def truncated(self) -> bool:
        return self._truncated

    @property
    def remaining(self) -> int:
        """Body bytes not yet handed to the caller."""
        if self._truncated:
            return 0
        return max(0, self.size - self.bytes_consumed)

    def discard(self):
        """Drops whatever is left of the body so the next header can be read."""
        raise NotImplementedError

    def _mark_truncated(self):
        self._truncated = True
        if self._strict:
            raise TruncatedArchiveError(self.padded_size, self.bytes_consumed, self.name)
        logger.warning(
            f"Source ended inside '{self.name}' after {self.bytes_consumed} "
            f"of {self.padded_size} bytes"
        )


class StreamEntry(TarEntry):
    """
    Body access for sequential sources: a forward-only sequence of chunks.

    Iterating twice continues where the previous iteration stopped; the
    body cannot be rewound.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._iterator: Optional[Iterator[bytes]] = None

    def __iter__(self) -> Iterator[bytes]:
        return self.iter_chunks()

    def iter_chunks(self) -> Iterator[bytes]:
        if self._iterator is None:
            self._iterator = self._pull_chunks()
        return self._iterator

    def _pull_chunks(self) -> Iterator[bytes]:
        while not self._truncated:
            left = self.padded_size - self.bytes_consumed
            if left <= 0:
                return

            chunk = self._source.read_chunk(min(self.chunk_size, left))
            if not chunk:
                self._mark_truncated()
                return

            visible = self.size - self.bytes_consumed
            self.bytes_consumed += len(chunk)

            # Padding is consumed from the source but never surfaced
            if visible <= 0:
                continue
            if visible < len(chunk):
                chunk = chunk[:visible]
            yield chunk

    def discard(self):
        before = self.bytes_consumed
        for _ in self.iter_chunks():
            pass
        logger.debug(f"Discarded {self.bytes_consumed - before} bytes of '{self.name}'")


class SeekableEntry(TarEntry):
    """
    Body access for seekable sources: `readinto`/`read`, and a discard that
    seeks over the rest of the body instead of reading it.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._short_read = False

    def readinto(self, buffer) -> int:
        """
        Reads body bytes into `buffer`. Never reads past the declared size:
        a buffer larger than what is left is only partly filled, and 0 means
        the body is exhausted.

        When the source ends early in strict mode, the bytes that did arrive
        are returned first and the next call raises TruncatedArchiveError.
        """
        if self._short_read:
            self._short_read = False
            self._mark_truncated()

        remaining = self.remaining
        if remaining <= 0:
            return 0

        view = memoryview(buffer).cast("B")
        if len(view) > remaining:
            view = view[:remaining]

        n = self._source.readinto(view)
        self.bytes_consumed += n
        if n < len(view):
            if n and self._strict:
                self._short_read = True
            else:
                self._mark_truncated()
        return n

    def read(self, size: int = -1) -> bytes:
        """Reads up to `size` body bytes; everything left when size < 0."""
        remaining = self.remaining
        if size is None or size < 0 or size > remaining:
            size = remaining

        buffer = bytearray(size)
        n = self.readinto(buffer)
        return bytes(buffer[:n])

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.read(self.chunk_size)
            if not chunk:
                return
            yield chunk

    def discard(self):
        if self._truncated:
            return

        left = self.padded_size - self.bytes_consumed
        if left <= 0:
            return

        skipped = self._source.skip(left)
        self.bytes_consumed += skipped
        if skipped < left:
            self._mark_truncated()
            return
        logger.debug(f"Skipped {skipped} bytes of '{self.name}'")
