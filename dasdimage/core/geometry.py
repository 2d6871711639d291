"""
Block device geometry module.

This module queries the addressing geometry of a DASD through kernel ioctls:
the logical block size and the number of blocks per track.
"""
import fcntl
import logging
import struct

from dasdimage.utils.types import Geometry
from dasdimage.core.exceptions import GeometryError

logger = logging.getLogger('dasdimage')

# ioctl request numbers from <linux/hdreg.h> and <linux/fs.h>
HDIO_GETGEO = 0x0301
BLKSSZGET = 0x1268

# struct hd_geometry { unsigned char heads; unsigned char sectors;
#                      unsigned short cylinders; unsigned long start; }
HD_GEOMETRY_FORMAT = "@BBHL"


def get_sectors_per_track(fd: int) -> int:
    """
    Get the number of sectors per track of a block device.

    Args:
        fd: Open file descriptor of the device

    Returns:
        Sectors (blocks) per track, always positive

    Raises:
        GeometryError: If the ioctl fails or reports zero sectors per track
    """
    buf = bytearray(struct.calcsize(HD_GEOMETRY_FORMAT))
    try:
        fcntl.ioctl(fd, HDIO_GETGEO, buf, True)
    except OSError as e:
        raise GeometryError(f"getting disk geometry: {e}") from e

    heads, sectors, cylinders, _ = struct.unpack(HD_GEOMETRY_FORMAT, buf)
    logger.debug(f"Disk geometry: {cylinders} cylinders, {heads} heads, {sectors} sectors/track")
    if sectors == 0:
        raise GeometryError("found sectors/track of zero")
    return sectors


def get_sector_size(fd: int) -> int:
    """
    Get the logical sector size of a block device.

    Raises:
        GeometryError: If the ioctl fails or reports a zero sector size
    """
    buf = bytearray(struct.calcsize("@i"))
    try:
        fcntl.ioctl(fd, BLKSSZGET, buf, True)
    except OSError as e:
        raise GeometryError(f"getting sector size: {e}") from e

    (size,) = struct.unpack("@i", buf)
    if size <= 0:
        raise GeometryError(f"found invalid sector size {size}")
    return size


def get_geometry(fd: int) -> Geometry:
    """Query block size and blocks per track of an open device."""
    return Geometry(
        bytes_per_block=get_sector_size(fd),
        blocks_per_track=get_sectors_per_track(fd)
    )
