import logging

from .entry import SeekableEntry, StreamEntry, TarEntry
from .enums import EntryKind
from .exceptions import (
    ChecksumError,
    HeaderError,
    InvalidHeaderError,
    ReaderClosedError,
    TruncatedArchiveError,
    UnsupportedFormatError,
    UntapeError,
)
from .header import TarHeader, parse_header
from .reader import TarReader, open_archive
from .schemas import EntryInfo, ReaderOptions, UnknownEntryKind
from .sources import ByteSource, ChunkSource, SeekableSource, open_source

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "ByteSource",
    "ChecksumError",
    "ChunkSource",
    "EntryInfo",
    "EntryKind",
    "HeaderError",
    "InvalidHeaderError",
    "ReaderClosedError",
    "ReaderOptions",
    "SeekableEntry",
    "SeekableSource",
    "StreamEntry",
    "TarEntry",
    "TarHeader",
    "TarReader",
    "TruncatedArchiveError",
    "UnknownEntryKind",
    "UnsupportedFormatError",
    "UntapeError",
    "open_archive",
    "open_source",
    "parse_header",
]
