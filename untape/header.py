import logging

from .constants import (
    CHECKSUM_OFFSET,
    CHECKSUM_WIDTH,
    EMPTY_BLOCK_CHECKSUM,
    HEADER_FIELDS,
    TAR_BLOCK_SIZE,
    USTAR_MAGIC,
)
from .enums import KIND_FLAGS, TYPE_FLAGS, EntryKind
from .exceptions import ChecksumError, InvalidHeaderError, UnsupportedFormatError
from .schemas import EntryInfo, Kind, UnknownEntryKind

logger = logging.getLogger(__name__)

_FIELD_SLICES = {
    field: slice(offset, offset + length) for field, offset, length in HEADER_FIELDS
}


def decode_string(raw: bytes, encoding: str = "latin-1") -> str:
    """Text up to the first NUL. Undecodable bytes are kept as surrogates."""
    return raw.split(b"\0", 1)[0].decode(encoding, "surrogateescape")


def decode_octal(raw: bytes) -> int:
    """
    Reads a numeric header field.

    Fields are normally octal ASCII, NUL or space terminated. GNU tar
    switches to big-endian base-256 when a value does not fit, marking it
    with 0x80 (positive) or 0xFF (negative) in the first byte.
    An empty field is 0.
    """
    if raw and raw[0] in (0x80, 0xFF):
        value = int.from_bytes(raw[1:], byteorder="big")
        if raw[0] == 0xFF:
            value -= 256 ** (len(raw) - 1)
        return value

    try:
        text = raw.split(b"\0", 1)[0].decode("ascii").strip()
        return int(text, 8) if text else 0
    except (UnicodeDecodeError, ValueError):
        raise InvalidHeaderError(f"Invalid numeric field: {bytes(raw)!r}")


def header_checksum(block: bytes) -> int:
    """
    Sum of the 512 unsigned bytes with the checksum field counted as
    eight ASCII spaces.
    """
    end = CHECKSUM_OFFSET + CHECKSUM_WIDTH
    return EMPTY_BLOCK_CHECKSUM + sum(block[:CHECKSUM_OFFSET]) + sum(block[end:])


def split_fields(block: bytes) -> dict[str, bytes]:
    """Cuts a header block into its raw fields."""
    if len(block) != TAR_BLOCK_SIZE:
        raise ValueError(f"Header block must be {TAR_BLOCK_SIZE} bytes, got {len(block)}")
    return {field: bytes(block[part]) for field, part in _FIELD_SLICES.items()}


def decode_kind(flag: str) -> Kind:
    kind = TYPE_FLAGS.get(flag)
    if kind is None:
        return UnknownEntryKind(flag=flag)
    return kind


def verify_block(block: bytes, offset: int | None = None) -> bool:
    """
    Validates a header block.

    Returns False when the block is the end-of-archive marker (it sums like
    a block of zeros). Raises ChecksumError or UnsupportedFormatError when
    the block cannot be a USTAR header.
    """
    actual = header_checksum(block)
    if actual == EMPTY_BLOCK_CHECKSUM:
        return False

    raw_checksum = block[CHECKSUM_OFFSET : CHECKSUM_OFFSET + CHECKSUM_WIDTH]
    try:
        expected = decode_octal(raw_checksum)
    except InvalidHeaderError:
        expected = -1

    if expected != actual:
        logger.error(f"Checksum mismatch at offset {offset}: {expected} != {actual}")
        raise ChecksumError(expected, actual, offset)

    magic = decode_string(block[_FIELD_SLICES["magic"]])
    if not magic.startswith(USTAR_MAGIC):
        logger.error(f"Unsupported magic at offset {offset}: {magic!r}")
        raise UnsupportedFormatError(magic)

    return True


def parse_header(block: bytes, encoding: str = "latin-1") -> EntryInfo:
    """Decodes a verified header block into EntryInfo."""
    fields = split_fields(block)

    name = decode_string(fields["name"], encoding)
    prefix = decode_string(fields["prefix"], encoding)
    if prefix:
        name = f"{prefix}/{name}"

    # The flag is a single byte; latin-1 keeps any value readable.
    flag = fields["type"].decode("latin-1")

    return EntryInfo(
        name=name,
        mode=decode_octal(fields["mode"]),
        uid=decode_octal(fields["uid"]),
        gid=decode_octal(fields["gid"]),
        size=decode_octal(fields["size"]),
        mtime=decode_octal(fields["mtime"]),
        kind=decode_kind(flag),
        link_name=decode_string(fields["link_name"], encoding),
        owner=decode_string(fields["owner"], encoding),
        group=decode_string(fields["group"], encoding),
        major_number=decode_octal(fields["major_number"]),
        minor_number=decode_octal(fields["minor_number"]),
    )


class TarHeader:
    """
    Low-level USTAR header builder.

    Produces exactly one 512-byte block per entry: long paths are split
    into prefix/name and sizes over 8 GiB switch to base-256, so no
    extension blocks are ever needed.
    """

    def __init__(self, info: EntryInfo, encoding: str = "latin-1"):
        self.buffer = bytearray(TAR_BLOCK_SIZE)
        self.info = info
        self.encoding = encoding

    def _split_path(self, path: str) -> tuple[str, str]:
        """
        Splits a path to fit USTAR limits: name (100 bytes), prefix (155 bytes).
        """
        LIMIT_NAME_BYTES = 100
        LIMIT_PREFIX_BYTES = 155
        SEPARATOR = "/"

        if len(path.encode(self.encoding)) <= LIMIT_NAME_BYTES:
            return path, ""

        # Rightmost '/' that leaves prefix <= 155 and name <= 100
        best_split_index = -1
        for i, char in enumerate(path):
            if char != SEPARATOR:
                continue
            prefix_size = len(path[:i].encode(self.encoding))
            name_size = len(path[i + 1 :].encode(self.encoding))
            if prefix_size <= LIMIT_PREFIX_BYTES and name_size <= LIMIT_NAME_BYTES:
                best_split_index = i

        if best_split_index == -1:
            raise ValueError(
                f"Path is too long or cannot be split to fit USTAR limits: '{path}'"
            )

        return path[best_split_index + 1 :], path[:best_split_index]

    def set_size(self, size: int):
        """
        Write the size as octal, or as GNU base-256 past the octal limit.
        """
        OFFSET = 124
        FIELD_WIDTH = 12
        LIMIT_USTAR = 8589934591  # 8 GiB - 1 byte

        if size <= LIMIT_USTAR:
            self.set_octal(OFFSET, FIELD_WIDTH, size)
            return

        # 0x80 marker, then the value big-endian in the remaining 11 bytes
        self.buffer[OFFSET] = 0x80
        self.set_bytes(OFFSET + 1, size.to_bytes(FIELD_WIDTH - 1, byteorder="big"))

    def set_string(self, offset: int, field_width: int, value: str):
        """Writes an encoded string, refusing to truncate it."""
        data = value.encode(self.encoding, "surrogateescape")
        if len(data) > field_width:
            raise ValueError(
                f"{offset=} '{value}' too long for field ({len(data)} > {field_width})"
            )

        self.buffer[offset : offset + len(data)] = data

    def set_octal(self, offset: int, field_width: int, value: int):
        """
        Writes a zero-padded octal number followed by a NUL terminator.
        """
        octal_string = oct(int(value))[2:]

        # One byte is reserved for the NUL
        max_digits = field_width - 1

        if len(octal_string) > max_digits:
            raise ValueError(
                f"Number {value} too large for octal field width {field_width}"
            )

        final_string = octal_string.zfill(max_digits) + "\0"
        self.buffer[offset : offset + field_width] = final_string.encode("ascii")

    def set_bytes(self, offset: int, value: bytes):
        """Writes raw bytes at a specific offset."""
        if offset + len(value) > TAR_BLOCK_SIZE:
            raise ValueError(f"Write overflow at offset {offset}")

        self.buffer[offset : offset + len(value)] = value

    def calculate_checksum(self):
        """
        Writes the header checksum: six octal digits, a NUL and a space.
        """
        self.buffer[CHECKSUM_OFFSET : CHECKSUM_OFFSET + CHECKSUM_WIDTH] = b" " * 8
        total_sum = header_checksum(self.buffer)

        final_string = oct(total_sum)[2:].zfill(6) + "\0" + " "
        self.buffer[CHECKSUM_OFFSET : CHECKSUM_OFFSET + CHECKSUM_WIDTH] = (
            final_string.encode("ascii")
        )

    def write_fields(self):
        """Fills every field except the checksum."""
        info = self.info
        name, prefix = self._split_path(info.name)

        self.set_string(0, 100, name)
        self.set_octal(100, 8, info.mode)
        self.set_octal(108, 8, info.uid)
        self.set_octal(116, 8, info.gid)
        self.set_size(info.size)
        self.set_octal(136, 12, info.mtime)

        if isinstance(info.kind, EntryKind):
            type_flag = KIND_FLAGS[info.kind]
        else:
            type_flag = info.kind.flag
        self.set_bytes(156, type_flag.encode("latin-1"))

        self.set_string(157, 100, info.link_name)

        self.set_bytes(257, b"ustar\0")
        self.set_bytes(263, b"00")

        self.set_string(265, 32, info.owner)
        self.set_string(297, 32, info.group)
        self.set_octal(329, 8, info.major_number)
        self.set_octal(337, 8, info.minor_number)
        self.set_string(345, 155, prefix)

    def finish(self) -> bytes:
        """Seals the block with its checksum."""
        self.calculate_checksum()
        header = bytes(self.buffer)
        if len(header) != TAR_BLOCK_SIZE:
            raise ValueError("Header is not 512 bytes long.")
        return header

    def build(self) -> bytes:
        self.write_fields()
        return self.finish()
