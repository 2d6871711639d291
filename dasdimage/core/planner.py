"""
DASD layout planning module.

This module translates the sector-addressed GPT of a source image into a
track-aligned fdasd layout and the list of byte ranges to copy from the image
stream to the device.
"""
import logging
from typing import List, Tuple

from dasdimage.core.exceptions import GeometryError, NoPartitionsError
from dasdimage.core.geometry import get_geometry
from dasdimage.core.gpt import read_gpt
from dasdimage.utils.format import track_descriptor
from dasdimage.utils.types import Range, TrackDescriptors

logger = logging.getLogger('dasdimage')

# Constants
RESERVED_TRACKS = 2  # the first 2 tracks of an ECKD DASD are reserved


def compute_plan(header: bytes, bytes_per_block: int,
                 blocks_per_track: int) -> Tuple[List[Range], TrackDescriptors]:
    """
    Generate fdasd partition records and byte ranges to copy.

    Each used GPT partition is placed on whole tracks, one after the other,
    starting right after the reserved tracks. The last partition in table order
    is extended to the end of the device.

    Args:
        header: Leading bytes of the image containing its GPT
        bytes_per_block: Logical block size of the device
        blocks_per_track: Number of blocks per DASD track

    Returns:
        Tuple of the ranges, sorted by image offset, and the matching fdasd
        records in partition order

    Raises:
        GeometryError: If either geometry value is not positive
        PartitionTableError: If the GPT can't be read
        NoPartitionsError: If the image has no used partitions
    """
    if bytes_per_block <= 0 or blocks_per_track <= 0:
        raise GeometryError(
            f"invalid geometry: {bytes_per_block} bytes/block, {blocks_per_track} blocks/track"
        )

    entries = read_gpt(header, bytes_per_block).used_partitions()
    if not entries:
        raise NoPartitionsError("source image has no partitions")

    ranges = []
    partitions = []
    start_track = RESERVED_TRACKS
    last_index = entries[-1].index

    for entry in entries:
        blocks = entry.ending_lba - entry.starting_lba + 1
        # a partial final track still takes up the whole track
        end_track = start_track + (blocks + blocks_per_track - 1) // blocks_per_track - 1

        ranges.append(Range(
            in_offset=entry.starting_lba * bytes_per_block,
            out_offset=start_track * blocks_per_track * bytes_per_block,
            length=blocks * bytes_per_block
        ))

        if entry.index == last_index:
            partitions.append(track_descriptor(start_track, None))
        else:
            partitions.append(track_descriptor(start_track, end_track))
        logger.debug(f"Partition {entry.index} ({entry.name or 'unnamed'}): "
                     f"LBA {entry.starting_lba}-{entry.ending_lba} -> {partitions[-1]}")
        start_track = end_track + 1

    # partitions should be in offset order, but just to be sure
    ranges.sort(key=lambda r: r.in_offset)
    return ranges, partitions


def partition_ranges(header: bytes, fd: int) -> Tuple[List[Range], TrackDescriptors]:
    """
    Plan the layout of an image against the geometry of an open device.

    Args:
        header: Leading bytes of the image containing its GPT
        fd: Open file descriptor of the target DASD

    Returns:
        Tuple of ranges and fdasd records, see compute_plan
    """
    geometry = get_geometry(fd)
    logger.info(f"Device geometry: {geometry['bytes_per_block']} bytes/block, "
                f"{geometry['blocks_per_track']} blocks/track")
    return compute_plan(header, geometry["bytes_per_block"], geometry["blocks_per_track"])
