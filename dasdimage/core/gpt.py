"""
GPT reading module.

This module parses the primary GUID partition table embedded at the start of a
disk image. Only what is needed to plan a DASD layout is exposed: the used
partition entries in table order with their starting and ending LBAs.
"""
import logging
import struct
import uuid
import zlib
from typing import List, NamedTuple

from dasdimage.core.exceptions import PartitionTableError

logger = logging.getLogger('dasdimage')

# Constants
SIGNATURE = b"EFI PART"
PRIMARY_HEADER_LBA = 1
HEADER_FORMAT = "<8sIIIIQQQQ16sQIII"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)  # 92 bytes
ENTRY_FORMAT = "<16s16sQQQ72s"
MIN_ENTRY_SIZE = struct.calcsize(ENTRY_FORMAT)  # 128 bytes
UNUSED_TYPE = uuid.UUID(int=0)


class PartitionEntry(NamedTuple):
    """A single GPT partition entry"""
    index: int
    type_guid: uuid.UUID
    unique_guid: uuid.UUID
    starting_lba: int
    ending_lba: int
    attributes: int
    name: str

    @property
    def used(self) -> bool:
        return self.type_guid != UNUSED_TYPE


class GPT:
    """Parsed primary GPT of a disk image."""

    def __init__(self, disk_guid: uuid.UUID, first_usable_lba: int, last_usable_lba: int,
                 entries: List[PartitionEntry]):
        self.disk_guid = disk_guid
        self.first_usable_lba = first_usable_lba
        self.last_usable_lba = last_usable_lba
        self.entries = entries

    def used_partitions(self) -> List[PartitionEntry]:
        """Used entries, in the order they appear in the table"""
        return [entry for entry in self.entries if entry.used]


def _crc32(data: bytes) -> int:
    return zlib.crc32(data) & 0xFFFFFFFF


def read_gpt(header: bytes, block_size: int) -> GPT:
    """
    Parse the primary GPT from the leading bytes of an image.

    Args:
        header: Leading bytes of the image, covering the GPT header and its
            partition entry array
        block_size: Logical block size the table was written for

    Returns:
        Parsed GPT

    Raises:
        PartitionTableError: If the table is missing, corrupt or doesn't fit in
            the supplied bytes
    """
    if block_size < HEADER_SIZE:
        raise PartitionTableError(f"block size {block_size} too small for a GPT header")

    offset = PRIMARY_HEADER_LBA * block_size
    if len(header) < offset + HEADER_SIZE:
        raise PartitionTableError(
            f"reading GPT of source image: need {offset + HEADER_SIZE} bytes, got {len(header)}"
        )

    (signature, _revision, header_size, header_crc, _reserved, _current_lba, _backup_lba,
     first_usable, last_usable, disk_guid, entries_lba, entries_count, entry_size,
     entries_crc) = struct.unpack_from(HEADER_FORMAT, header, offset)

    if signature != SIGNATURE:
        raise PartitionTableError(
            f"reading GPT of source image: no GPT signature at LBA {PRIMARY_HEADER_LBA} "
            f"with block size {block_size}"
        )
    if header_size < HEADER_SIZE or header_size > block_size:
        raise PartitionTableError(f"reading GPT of source image: invalid header size {header_size}")

    raw_header = bytearray(header[offset:offset + header_size])
    raw_header[16:20] = b"\x00\x00\x00\x00"
    if _crc32(bytes(raw_header)) != header_crc:
        raise PartitionTableError("reading GPT of source image: header checksum mismatch")

    if entry_size < MIN_ENTRY_SIZE or entry_size % 8 != 0:
        raise PartitionTableError(f"reading GPT of source image: invalid entry size {entry_size}")

    array_start = entries_lba * block_size
    array_end = array_start + entries_count * entry_size
    if array_end > len(header):
        raise PartitionTableError(
            f"reading GPT of source image: partition entries at bytes "
            f"{array_start}-{array_end} lie outside the image header"
        )
    array = header[array_start:array_end]
    if _crc32(array) != entries_crc:
        raise PartitionTableError("reading GPT of source image: partition entry checksum mismatch")

    entries = []
    for index in range(entries_count):
        (type_guid, unique_guid, starting_lba, ending_lba, attributes,
         name) = struct.unpack_from(ENTRY_FORMAT, array, index * entry_size)
        entry = PartitionEntry(
            index=index + 1,
            type_guid=uuid.UUID(bytes_le=type_guid),
            unique_guid=uuid.UUID(bytes_le=unique_guid),
            starting_lba=starting_lba,
            ending_lba=ending_lba,
            attributes=attributes,
            name=name.decode("utf-16-le", errors="replace").rstrip("\x00")
        )
        if entry.used and entry.ending_lba < entry.starting_lba:
            raise PartitionTableError(
                f"partition {entry.index} ends at LBA {ending_lba} before it starts at LBA {starting_lba}"
            )
        entries.append(entry)

    logger.debug(f"Read GPT {uuid.UUID(bytes_le=disk_guid)} with {entries_count} entries")
    return GPT(uuid.UUID(bytes_le=disk_guid), first_usable, last_usable, entries)
