"""
Stream copy module.

This module copies the partitions of an image from a forward-only stream to
their track-aligned locations on a seekable device.
"""
import io
import logging
import lzma
import zlib
from typing import BinaryIO, Iterable, Optional

from dasdimage.core.exceptions import (
    DiskIoError, FlushError, PlanConsistencyError, TruncatedStreamError
)
from dasdimage.utils.format import bytes_to_human_readable, describe_range
from dasdimage.utils.types import Range

logger = logging.getLogger('dasdimage')

# Constants
IMAGE_HEADER_SIZE = 1024 * 1024  # images never carry partition data in their first MiB
BUFFER_SIZE = 256 * 1024         # output write buffer
CHUNK_SIZE = 1024 * 1024         # size of a single read from the source

# Errors a decompressing source may raise besides OSError
_DECODE_ERRORS = (zlib.error, lzma.LZMAError)


def _read(source: BinaryIO, size: int, what: str) -> bytes:
    try:
        return source.read(size)
    except EOFError as e:
        raise TruncatedStreamError(f"{what}: {e}") from e
    except (OSError, *_DECODE_ERRORS) as e:
        raise DiskIoError(f"{what}: {e}") from e


class _DeviceWriter(io.RawIOBase):
    """Raw writer forwarding to a device handle without ever closing it."""
    def __init__(self, target: BinaryIO):
        self._target = target

    def writable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def write(self, b) -> int:
        return self._target.write(b)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._target.seek(offset, whence)


def copy_exactly_n(source: BinaryIO, dest: Optional[BinaryIO], n: int, what: str) -> None:
    """
    Copy exactly n bytes from source to dest.

    Args:
        source: Stream to read from
        dest: Stream to write to, or None to discard the bytes
        n: Number of bytes to transfer
        what: Description of the transfer for error messages

    Raises:
        TruncatedStreamError: If the source ends early
        DiskIoError: If reading or writing fails
    """
    remaining = n
    while remaining > 0:
        chunk = _read(source, min(remaining, CHUNK_SIZE), what)
        if not chunk:
            raise TruncatedStreamError(
                f"{what}: stream ended with {remaining} of {n} bytes outstanding"
            )
        if dest is not None:
            try:
                dest.write(chunk)
            except OSError as e:
                raise DiskIoError(f"{what}: {e}") from e
        remaining -= len(chunk)


def drain(source: BinaryIO) -> int:
    """Read a stream to its end, discarding the data. Returns the bytes read."""
    total = 0
    while True:
        chunk = _read(source, CHUNK_SIZE, "reading remainder of stream")
        if not chunk:
            return total
        total += len(chunk)


def copy_ranges(ranges: Iterable[Range], source: BinaryIO, destination: BinaryIO,
                dest_path: str = "device") -> None:
    """
    Copy image ranges from a stream to a device.

    The source must be positioned right after the image header, i.e. at
    IMAGE_HEADER_SIZE. Ranges must be sorted by image offset. Device bytes
    outside the ranges are left untouched. The destination itself is not
    closed.

    Args:
        ranges: Ranges to copy, sorted by in_offset
        source: Forward-only image stream
        destination: Seekable, writable device
        dest_path: Device name for messages

    Raises:
        PlanConsistencyError: If a range starts before the current stream position
        TruncatedStreamError: If the stream ends before a range does
        FlushError: If buffered data can't be written out at the end
        DiskIoError: If any other read, write or seek fails
    """
    # amortize write overhead; a decompressor will produce bytes in
    # whatever chunk size it chooses
    dest = io.BufferedWriter(_DeviceWriter(destination), buffer_size=BUFFER_SIZE)
    cursor = IMAGE_HEADER_SIZE
    try:
        for r in ranges:
            if r.in_offset < cursor:
                raise PlanConsistencyError(
                    f"found partition at {r.in_offset} when current stream location is {cursor}"
                )
            if r.in_offset > cursor:
                copy_exactly_n(source, None, r.in_offset - cursor,
                               f"sinking input data at offset {cursor}")
                cursor = r.in_offset

            logger.info(f"Writing {describe_range(r)}")
            try:
                dest.seek(r.out_offset)
            except OSError as e:
                raise DiskIoError(f"seeking {dest_path} to offset {r.out_offset}: {e}") from e
            copy_exactly_n(source, dest, r.length,
                           f"copying partition at offset {r.in_offset} to {dest_path}")
            cursor += r.length

        # close out the stream so wrappers get to verify their trailers
        skipped = drain(source)
        logger.debug(f"Discarded {bytes_to_human_readable(skipped)} after the last partition")

        try:
            dest.flush()
        except OSError as e:
            raise FlushError(f"flushing data to {dest_path}: {e}") from e
    finally:
        try:
            dest.close()
        except OSError as e:
            logger.debug(f"Dropping unflushed output buffer: {e}")
