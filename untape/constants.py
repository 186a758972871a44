TAR_BLOCK_SIZE = 512
CHUNK_SIZE_DEFAULT = 64 * 1024  # 64KB per pull from the source

CHECKSUM_OFFSET = 148
CHECKSUM_WIDTH = 8
# Sum of the checksum field when it is counted as eight ASCII spaces.
# A block of zeros sums to exactly this value.
EMPTY_BLOCK_CHECKSUM = CHECKSUM_WIDTH * ord(" ")

USTAR_MAGIC = "ustar"

# (field, offset, length) for a USTAR header block
HEADER_FIELDS = (
    ("name", 0, 100),
    ("mode", 100, 8),
    ("uid", 108, 8),
    ("gid", 116, 8),
    ("size", 124, 12),
    ("mtime", 136, 12),
    ("checksum", 148, 8),
    ("type", 156, 1),
    ("link_name", 157, 100),
    ("magic", 257, 8),
    ("owner", 265, 32),
    ("group", 297, 32),
    ("major_number", 329, 8),
    ("minor_number", 337, 8),
    ("prefix", 345, 155),
    ("reserved", 500, 12),
)

assert sum(length for _, _, length in HEADER_FIELDS) == TAR_BLOCK_SIZE
