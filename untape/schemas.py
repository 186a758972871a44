from typing import Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import CHUNK_SIZE_DEFAULT, TAR_BLOCK_SIZE
from .enums import EntryKind


class UnknownEntryKind(BaseModel):
    """A type flag outside the USTAR table, kept exactly as read."""

    model_config = ConfigDict(frozen=True)

    flag: str

    def __str__(self):
        return f"unknown({self.flag!r})"


Kind = Union[EntryKind, UnknownEntryKind]


class EntryInfo(BaseModel):
    """Decoded metadata of one archive member."""

    model_config = ConfigDict(frozen=True)

    name: str
    mode: int = 0o644
    uid: int = 0
    gid: int = 0
    size: int = 0  # Declared body size, padding excluded
    mtime: int = 0
    kind: Kind = EntryKind.FILE
    link_name: str = ""
    owner: str = ""
    group: str = ""
    major_number: int = 0
    minor_number: int = 0

    @property
    def padded_size(self) -> int:
        """Bytes the body occupies in the archive, rounded up to whole blocks."""
        blocks = -(-self.size // TAR_BLOCK_SIZE)
        return blocks * TAR_BLOCK_SIZE

    @property
    def is_known_kind(self) -> bool:
        return isinstance(self.kind, EntryKind)


class ReaderOptions(BaseModel):
    """Knobs for TarReader."""

    chunk_size: int = Field(default=CHUNK_SIZE_DEFAULT, gt=0)
    # When True, a source that ends early raises TruncatedArchiveError
    # instead of quietly ending the body.
    strict: bool = False
    encoding: str = "latin-1"

    @field_validator("chunk_size")
    @classmethod
    def _whole_blocks(cls, value: int) -> int:
        if value % TAR_BLOCK_SIZE:
            raise ValueError(
                f"chunk_size must be a multiple of {TAR_BLOCK_SIZE}, got {value}"
            )
        return value
