from enum import Enum


class EntryKind(str, Enum):
    """Member types a USTAR type flag can name."""

    FILE = "file"
    LINK = "link"
    SYMLINK = "symlink"
    CHARACTER_DEVICE = "character-device"
    BLOCK_DEVICE = "block-device"
    DIRECTORY = "directory"
    FIFO = "fifo"
    CONTIGUOUS_FILE = "contiguous-file"


TYPE_FLAGS = {
    "0": EntryKind.FILE,
    "1": EntryKind.LINK,
    "2": EntryKind.SYMLINK,
    "3": EntryKind.CHARACTER_DEVICE,
    "4": EntryKind.BLOCK_DEVICE,
    "5": EntryKind.DIRECTORY,
    "6": EntryKind.FIFO,
    "7": EntryKind.CONTIGUOUS_FILE,
    # Pre-POSIX archives write NUL for regular files
    "\0": EntryKind.FILE,
}

KIND_FLAGS = {kind: flag for flag, kind in TYPE_FLAGS.items() if flag != "\0"}
