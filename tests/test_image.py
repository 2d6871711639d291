"""Tests for opening image files and standard input."""
import gzip
import lzma
import os
import threading
import time
from types import SimpleNamespace

import pytest

from dasdimage.core.copier import IMAGE_HEADER_SIZE, drain
from dasdimage.core.exceptions import DiskIoError, TruncatedStreamError
from dasdimage.core.image import detect_compression, open_image, read_header

from conftest import build_image


@pytest.fixture(scope="module")
def image():
    return build_image([(2048, 2059)], trailer=512)


@pytest.fixture
def stdin_pipe(monkeypatch):
    """Replace standard input with a pipe. Returns the write end."""
    read_fd, write_fd = os.pipe()
    reader = os.fdopen(read_fd, "rb")
    monkeypatch.setattr("sys.stdin", SimpleNamespace(buffer=reader))
    yield write_fd
    reader.close()


def feed(write_fd, data, first=3, delay=0.3):
    """Write data to a pipe from a thread, starting with a short write."""
    def writer():
        with os.fdopen(write_fd, "wb", buffering=0) as pipe:
            pipe.write(data[:first])
            time.sleep(delay)
            pipe.write(data[first:])

    thread = threading.Thread(target=writer, daemon=True)
    thread.start()
    return thread


def read_all(path, decompress="auto"):
    with open_image(path, decompress) as source:
        header = read_header(source)
        drain(source)
    return header


class TestDetectCompression:
    def test_gzip(self):
        assert detect_compression(b"\x1f\x8b\x08\x00\x00\x00") == "gzip"

    def test_xz(self):
        assert detect_compression(b"\xfd7zXZ\x00") == "xz"

    def test_raw(self):
        assert detect_compression(b"\x00" * 6) == "none"

    def test_short_input(self):
        assert detect_compression(b"\xfd7z") == "none"


class TestOpenImage:
    def test_raw_file(self, image, tmp_path):
        path = tmp_path / "image.raw"
        path.write_bytes(image)
        assert read_all(str(path)) == image[:IMAGE_HEADER_SIZE]

    def test_gzip_file(self, image, tmp_path):
        path = tmp_path / "image.raw.gz"
        path.write_bytes(gzip.compress(image))
        assert read_all(str(path)) == image[:IMAGE_HEADER_SIZE]

    def test_xz_file(self, image, tmp_path):
        path = tmp_path / "image.raw.xz"
        path.write_bytes(lzma.compress(image))
        assert read_all(str(path)) == image[:IMAGE_HEADER_SIZE]

    def test_forced_raw_keeps_compressed_bytes(self, image, tmp_path):
        compressed = lzma.compress(image)
        path = tmp_path / "image.raw.xz"
        path.write_bytes(compressed)
        with open_image(str(path), "none") as source:
            assert source.read(6) == compressed[:6]

    def test_corrupt_xz(self, image, tmp_path):
        compressed = bytearray(lzma.compress(image))
        compressed[len(compressed) // 2] ^= 0xFF
        path = tmp_path / "image.raw.xz"
        path.write_bytes(bytes(compressed))
        with pytest.raises(DiskIoError):
            read_all(str(path))

    def test_truncated_xz(self, image, tmp_path):
        path = tmp_path / "image.raw.xz"
        path.write_bytes(lzma.compress(image)[:-30])
        with pytest.raises(TruncatedStreamError):
            read_all(str(path))

    def test_tiny_file(self, tmp_path):
        path = tmp_path / "tiny.raw"
        path.write_bytes(b"\x1f")
        with pytest.raises(TruncatedStreamError):
            read_all(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(DiskIoError, match="opening image"):
            read_all(str(tmp_path / "missing.raw"))

    def test_unknown_decompression(self, tmp_path):
        with pytest.raises(ValueError):
            read_all(str(tmp_path / "image.raw"), "bzip2")


class TestStandardInput:
    def test_raw_stream(self, image, stdin_pipe):
        thread = feed(stdin_pipe, image)
        assert read_all("-") == image[:IMAGE_HEADER_SIZE]
        thread.join(timeout=10)

    def test_xz_stream_with_short_first_write(self, image, stdin_pipe):
        thread = feed(stdin_pipe, lzma.compress(image), first=3)
        assert read_all("-") == image[:IMAGE_HEADER_SIZE]
        thread.join(timeout=10)
