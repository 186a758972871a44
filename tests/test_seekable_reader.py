import io
import tarfile
import unittest
from pathlib import Path

from untape.entry import SeekableEntry
from untape.enums import EntryKind
from untape.exceptions import TruncatedArchiveError
from untape.reader import TarReader, open_archive
from untape.schemas import ReaderOptions
from tests.base import CountingStream, UntapeTestCase


class TestSeekableReader(UntapeTestCase):
    """Archives read from a file object that can seek."""

    def setUp(self):
        super().setUp()
        self.first_body = b"first:" + b"1" * 994  # 1000 bytes
        self.second_body = b"second body"
        self.archive = self.make_archive(
            self.make_member(self.first_body, name="one.txt"),
            self.make_member(self.second_body, name="two.txt"),
        )

    def test_bytes_input_is_seekable(self):
        reader = TarReader(self.archive)
        self.assertTrue(reader.seekable)
        self.assertIsInstance(reader.next(), SeekableEntry)

    def test_read_whole_body(self):
        reader = TarReader(io.BytesIO(self.archive))
        entry = reader.next()

        self.assertEqual(entry.read(), self.first_body)
        self.assertEqual(entry.bytes_consumed, 1000)
        self.assertEqual(entry.read(), b"")

        second = reader.next()
        self.assertEqual(second.header_offset, 512 + 1024)
        self.assertEqual(second.read(), self.second_body)
        self.assertIsNone(reader.next())

    def test_read_in_small_pieces(self):
        entry = TarReader(io.BytesIO(self.archive)).next()

        pieces = []
        while True:
            piece = entry.read(64)
            if not piece:
                break
            self.assertLessEqual(len(piece), 64)
            pieces.append(piece)
        self.assertEqual(b"".join(pieces), self.first_body)

    def test_oversized_buffer_stops_at_declared_size(self):
        reader = TarReader(io.BytesIO(self.archive))
        reader.next()
        entry = reader.next()

        buffer = bytearray(4096)
        n = entry.readinto(buffer)

        self.assertEqual(n, len(self.second_body))
        self.assertEqual(bytes(buffer[:n]), self.second_body)
        self.assertEqual(bytes(buffer[n:]), b"\0" * (4096 - n))
        # The cursor did not move into the padding
        self.assertEqual(reader.position, entry.data_offset + len(self.second_body))
        self.assertEqual(entry.readinto(buffer), 0)

    def test_discard_seeks_instead_of_reading(self):
        big_body = b"B" * 100000
        stream = CountingStream(
            self.make_archive(
                self.make_member(big_body, name="big.bin"),
                self.make_member(b"small", name="small.txt"),
            )
        )

        reader = TarReader(stream)
        reader.next()
        second = reader.next()

        self.assertEqual(second.name, "small.txt")
        self.assertEqual(second.header_offset, 512 + 100352)
        # Only the two header blocks went through memory
        self.assertEqual(stream.bytes_read, 1024)

    def test_discard_after_partial_read(self):
        reader = TarReader(io.BytesIO(self.archive))
        first = reader.next()
        first.read(10)

        second = reader.next()
        self.assertTrue(first.consumed)
        self.assertEqual(first.bytes_consumed, first.padded_size)
        self.assertEqual(second.read(), self.second_body)

    def test_old_entry_yields_nothing(self):
        reader = TarReader(io.BytesIO(self.archive))
        first = reader.next()
        reader.next()

        self.assertEqual(first.remaining, 0)
        self.assertEqual(first.read(), b"")

    def test_archive_inside_larger_stream(self):
        """Offsets count from where the archive starts, not from byte 0."""
        stream = io.BytesIO(b"JUNK" * 100 + self.archive)
        stream.seek(400)

        reader = TarReader(stream)
        entry = reader.next()
        self.assertEqual(entry.header_offset, 0)
        self.assertEqual(entry.read(), self.first_body)

    def test_iterating_an_entry(self):
        entry = TarReader(io.BytesIO(self.archive), chunk_size=512).next()
        chunks = list(entry)
        self.assertEqual([len(c) for c in chunks], [512, 488])
        self.assertEqual(b"".join(chunks), self.first_body)

    def test_options_model(self):
        options = ReaderOptions(chunk_size=1024)
        reader = TarReader(self.archive, options, strict=True)
        self.assertEqual(reader.options.chunk_size, 1024)
        self.assertTrue(reader.options.strict)

    def test_chunk_size_must_be_whole_blocks(self):
        with self.assertRaises(ValueError):
            ReaderOptions(chunk_size=1000)


class TestSeekableTruncation(UntapeTestCase):

    def test_short_body_lenient(self):
        archive = self.make_header(name="cut.bin", size=1000) + b"T" * 300
        reader = TarReader(io.BytesIO(archive))
        entry = reader.next()

        with self.assertLogs("untape.entry", level="WARNING"):
            data = entry.read()
        self.assertEqual(data, b"T" * 300)
        self.assertTrue(entry.truncated)
        self.assertIsNone(reader.next())

    def test_short_body_strict(self):
        archive = self.make_header(name="cut.bin", size=1000) + b"T" * 300
        entry = TarReader(io.BytesIO(archive), strict=True).next()

        # The bytes that arrived come first, the error on the following read
        self.assertEqual(entry.read(), b"T" * 300)
        self.assertFalse(entry.truncated)

        with self.assertRaises(TruncatedArchiveError) as cm:
            entry.read()
        self.assertEqual(cm.exception.received, 300)
        self.assertTrue(entry.truncated)

    def test_short_readinto_strict_reports_count(self):
        archive = self.make_header(name="cut.bin", size=1000) + b"T" * 300
        entry = TarReader(io.BytesIO(archive), strict=True).next()

        buffer = bytearray(1000)
        n = entry.readinto(buffer)
        self.assertEqual(n, 300)
        self.assertEqual(bytes(buffer[:n]), b"T" * 300)

        with self.assertRaises(TruncatedArchiveError):
            entry.readinto(buffer)
        self.assertEqual(entry.readinto(buffer), 0)

    def test_short_read_strict_then_next(self):
        archive = self.make_header(name="cut.bin", size=1000) + b"T" * 300
        reader = TarReader(io.BytesIO(archive), strict=True)
        entry = reader.next()
        self.assertEqual(len(entry.read(500)), 300)

        with self.assertRaises(TruncatedArchiveError):
            reader.next()

    def test_short_discard_strict(self):
        archive = self.make_header(name="cut.bin", size=5000) + b"T" * 100
        reader = TarReader(io.BytesIO(archive), strict=True)
        reader.next()

        with self.assertRaises(TruncatedArchiveError) as cm:
            reader.next()
        self.assertEqual(cm.exception.received, 100)

    def test_short_discard_lenient(self):
        archive = self.make_header(name="cut.bin", size=5000) + b"T" * 100
        reader = TarReader(io.BytesIO(archive))
        reader.next()

        with self.assertLogs("untape.entry", level="WARNING"):
            self.assertIsNone(reader.next())


class TestStdlibArchives(UntapeTestCase):
    """Archives written by tarfile decode the same way."""

    def _write_with_tarfile(self) -> Path:
        path = self.tmp / "stdlib.tar"
        with tarfile.open(path, "w", format=tarfile.USTAR_FORMAT) as tf:
            folder = tarfile.TarInfo("pkg")
            folder.type = tarfile.DIRTYPE
            folder.mode = 0o755
            folder.mtime = 1700000000
            tf.addfile(folder)

            content = b"hola mundo\n" * 100
            info = tarfile.TarInfo("pkg/hello.txt")
            info.size = len(content)
            info.mtime = 1700000001
            info.uname = "leo"
            info.gname = "users"
            tf.addfile(info, io.BytesIO(content))

            link = tarfile.TarInfo("pkg/latest")
            link.type = tarfile.SYMTYPE
            link.linkname = "hello.txt"
            tf.addfile(link)

            fifo = tarfile.TarInfo("pkg/pipe")
            fifo.type = tarfile.FIFOTYPE
            tf.addfile(fifo)
        return path

    def test_open_archive_path(self):
        path = self._write_with_tarfile()

        with open_archive(path) as reader:
            folder = reader.next()
            self.assertEqual(folder.name, "pkg/")
            self.assertEqual(folder.kind, EntryKind.DIRECTORY)
            self.assertEqual(folder.mode, 0o755)

            hello = reader.next()
            self.assertEqual(hello.name, "pkg/hello.txt")
            self.assertEqual(hello.owner, "leo")
            self.assertEqual(hello.group, "users")
            self.assertEqual(hello.mtime, 1700000001)
            self.assertEqual(hello.read(), b"hola mundo\n" * 100)

            link = reader.next()
            self.assertEqual(link.kind, EntryKind.SYMLINK)
            self.assertEqual(link.link_name, "hello.txt")

            self.assertEqual(reader.next().kind, EntryKind.FIFO)
            self.assertIsNone(reader.next())

        self.assertTrue(reader._source._fileobj.closed)

    def test_path_needs_open_archive(self):
        path = self._write_with_tarfile()

        with self.assertRaisesRegex(TypeError, "open_archive"):
            TarReader(str(path))
        with self.assertRaisesRegex(TypeError, "open_archive"):
            TarReader(path)

    def test_reader_open_classmethod(self):
        path = self._write_with_tarfile()

        reader = TarReader.open(str(path), chunk_size=1024)
        self.assertTrue(reader.seekable)
        self.assertEqual(len(list(reader)), 4)
        reader.close()
        self.assertTrue(reader._source._fileobj.closed)

    def test_same_entries_with_either_strategy(self):
        path = self._write_with_tarfile()
        data = path.read_bytes()

        seekable = [(e.name, e.size, b"".join(e)) for e in TarReader(data)]
        sequential = [(e.name, e.size, b"".join(e)) for e in TarReader(self.chunked(data, 333))]
        self.assertEqual(seekable, sequential)
        self.assertEqual(len(seekable), 4)


if __name__ == "__main__":
    unittest.main()
