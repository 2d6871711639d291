"""
Image source module.

This module opens disk images from files or standard input, transparently
decompressing gzip and xz streams, and reads the image header.
"""
import contextlib
import gzip
import io
import logging
import lzma
import sys
from typing import BinaryIO, Iterator

from dasdimage.core.copier import IMAGE_HEADER_SIZE, copy_exactly_n
from dasdimage.core.exceptions import DiskIoError

logger = logging.getLogger('dasdimage')

# Constants
GZIP_MAGIC = b"\x1f\x8b"
XZ_MAGIC = b"\xfd7zXZ\x00"
DECOMPRESS_CHOICES = ("auto", "none", "gzip", "xz")


class _PrefixedStream(io.RawIOBase):
    """Raw stream that replays bytes already taken from another stream."""
    def __init__(self, prefix: bytes, stream: BinaryIO):
        self._prefix = prefix
        self._stream = stream

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        if self._prefix:
            n = min(len(b), len(self._prefix))
            b[:n] = self._prefix[:n]
            self._prefix = self._prefix[n:]
            return n
        data = self._stream.read(len(b))
        b[:len(data)] = data
        return len(data)


def read_magic(stream: BinaryIO) -> bytes:
    """Read up to len(XZ_MAGIC) bytes, stopping early only at end of stream."""
    magic = b""
    while len(magic) < len(XZ_MAGIC):
        chunk = stream.read(len(XZ_MAGIC) - len(magic))
        if not chunk:
            break
        magic += chunk
    return magic


def detect_compression(magic: bytes) -> str:
    """
    Identify the compression of a stream from its leading bytes.

    Returns:
        "gzip", "xz" or "none"
    """
    if magic.startswith(GZIP_MAGIC):
        return "gzip"
    if magic.startswith(XZ_MAGIC):
        return "xz"
    return "none"


@contextlib.contextmanager
def open_image(path: str, decompress: str = "auto") -> Iterator[BinaryIO]:
    """
    Open an image as a forward-only stream of raw disk bytes.

    Args:
        path: Image file, or "-" for standard input
        decompress: One of DECOMPRESS_CHOICES

    Yields:
        Readable binary stream of the uncompressed image

    Raises:
        DiskIoError: If the image can't be opened
    """
    if decompress not in DECOMPRESS_CHOICES:
        raise ValueError(f"Unknown decompression {decompress}")

    with contextlib.ExitStack() as stack:
        if path == "-":
            raw = sys.stdin.buffer
        else:
            try:
                raw = stack.enter_context(open(path, "rb"))
            except OSError as e:
                raise DiskIoError(f"opening image {path}: {e}") from e

        if decompress == "auto":
            try:
                magic = read_magic(raw)
            except OSError as e:
                raise DiskIoError(f"reading image {path}: {e}") from e
            decompress = detect_compression(magic)
            # pipes may return short reads, so replay the magic rather than peek it
            raw = stack.enter_context(io.BufferedReader(_PrefixedStream(magic, raw)))
        logger.debug(f"Image {path} compression: {decompress}")

        if decompress == "gzip":
            yield stack.enter_context(gzip.GzipFile(fileobj=raw, mode="rb"))
        elif decompress == "xz":
            yield stack.enter_context(lzma.LZMAFile(raw))
        else:
            yield raw


def read_header(source: BinaryIO) -> bytes:
    """
    Read the leading IMAGE_HEADER_SIZE bytes of an image stream.

    Raises:
        TruncatedStreamError: If the stream is shorter than the header
    """
    header = io.BytesIO()
    copy_exactly_n(source, header, IMAGE_HEADER_SIZE, "reading image header")
    return header.getvalue()
