import logging
import os
from pathlib import Path
from typing import Iterator, Optional

from .constants import TAR_BLOCK_SIZE
from .entry import SeekableEntry, StreamEntry, TarEntry
from .exceptions import HeaderError, ReaderClosedError, TruncatedArchiveError
from .header import parse_header, verify_block
from .schemas import ReaderOptions
from .sources import ByteSource, SeekableSource, open_source

logger = logging.getLogger(__name__)


class TarReader:
    """
    Decodes a USTAR archive one entry at a time.

    Only one entry is live at a time. Asking for the next one first
    discards whatever the caller left unread of the current body, so the
    source always sits on a block boundary when a header is read.

    >>> with open_archive("backup.tar") as reader:
    ...     for entry in reader:
    ...         if entry.name == "etc/hosts":
    ...             data = entry.read()
    """

    def __init__(
        self,
        source,
        options: Optional[ReaderOptions] = None,
        **overrides,
    ):
        if options is None:
            options = ReaderOptions(**overrides)
        elif overrides:
            options = ReaderOptions(**{**options.model_dump(), **overrides})

        self.options = options
        self.entry: Optional[TarEntry] = None

        # A ByteSource handed in stays the caller's; wrappers built here are ours
        self._owns_source = not isinstance(source, ByteSource)
        self._source: ByteSource = open_source(source, options.chunk_size)
        self._finished = False
        self._closed = False
        self._failure: Optional[HeaderError] = None

    @classmethod
    def open(
        cls, path, options: Optional[ReaderOptions] = None, **overrides
    ) -> "TarReader":
        """Opens the archive at `path`. The file is closed with the reader."""
        path = Path(path)
        logger.info(f"Opening archive: {path}")
        fileobj = path.open("rb")
        try:
            reader = cls(SeekableSource(fileobj, close_fileobj=True), options, **overrides)
        except BaseException:
            fileobj.close()
            raise
        reader._owns_source = True
        return reader

    @property
    def position(self) -> int:
        """Bytes consumed from the source since the archive start."""
        return self._source.position

    @property
    def seekable(self) -> bool:
        return self._source.seekable

    @property
    def finished(self) -> bool:
        return self._finished

    def next(self) -> Optional[TarEntry]:
        """Returns the next entry, or None at the end of the archive."""
        if self._closed:
            raise ReaderClosedError("Reader is closed")
        if self._failure is not None:
            raise ReaderClosedError(
                f"Reader stopped after a header error: {self._failure}"
            ) from self._failure
        if self._finished:
            return None

        if self.entry is not None and not self.entry.consumed:
            self.entry.discard()
        self.entry = None

        offset = self._source.position
        block = self._source.read(TAR_BLOCK_SIZE)

        if not block:
            logger.info(f"Source ended at offset {offset} without an end marker")
            return self._finish()

        if len(block) < TAR_BLOCK_SIZE:
            self._finished = True
            if self.options.strict:
                raise TruncatedArchiveError(TAR_BLOCK_SIZE, len(block))
            logger.warning(
                f"Partial header block of {len(block)} bytes at offset {offset}"
            )
            return None

        try:
            if not verify_block(block, offset):
                logger.info(f"End-of-archive marker at offset {offset}")
                return self._finish()
            info = parse_header(block, self.options.encoding)
        except HeaderError as e:
            self._failure = e
            raise

        entry_class = SeekableEntry if self._source.seekable else StreamEntry
        self.entry = entry_class(
            info,
            self._source,
            header_offset=offset,
            strict=self.options.strict,
            chunk_size=self.options.chunk_size,
        )
        logger.debug(
            f"Entry '{info.name}' ({info.kind}, {info.size} bytes) at offset {offset}"
        )
        return self.entry

    def _finish(self) -> None:
        self._finished = True
        return None

    def __iter__(self) -> Iterator[TarEntry]:
        return self

    def __next__(self) -> TarEntry:
        entry = self.next()
        if entry is None:
            raise StopIteration
        return entry

    def close(self):
        if self._closed:
            return
        self._closed = True
        self.entry = None
        if self._owns_source:
            self._source.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def open_archive(target, options: Optional[ReaderOptions] = None, **overrides) -> TarReader:
    """
    Opens a reader over a path, a file object, bytes or an iterable of chunks.

    A path is opened in binary mode and closed together with the reader.
    Anything else is left open for the caller.
    """
    if isinstance(target, (str, os.PathLike)):
        return TarReader.open(target, options, **overrides)

    return TarReader(target, options, **overrides)
