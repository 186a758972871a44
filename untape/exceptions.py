class UntapeError(Exception):
    """Base class for every error raised by the decoder."""

    pass


class HeaderError(UntapeError):
    """The block where a header was expected cannot be trusted.

    The reader stops at the first one of these and never scans ahead
    for another header.
    """

    pass


class ChecksumError(HeaderError):
    def __init__(self, expected: int, actual: int, offset: int | None = None):
        self.expected = expected
        self.actual = actual
        self.offset = offset
        where = f" at offset {offset}" if offset is not None else ""
        super().__init__(
            f"Header checksum mismatch{where}: "
            f"field says {expected}, block sums to {actual}"
        )


class UnsupportedFormatError(HeaderError):
    def __init__(self, magic: str):
        self.magic = magic
        super().__init__(f"Unsupported archive format: {magic!r}")


class InvalidHeaderError(HeaderError):
    """A numeric field holds something other than octal or base-256."""

    pass


class TruncatedArchiveError(UntapeError):
    """The source ended before the current block or body was complete."""

    def __init__(self, expected: int, received: int, name: str | None = None):
        self.expected = expected
        self.received = received
        self.name = name
        what = f"'{name}'" if name is not None else "header block"
        super().__init__(
            f"Archive truncated inside {what}: expected {expected} bytes, "
            f"got {received}"
        )


class ReaderClosedError(UntapeError):
    pass

