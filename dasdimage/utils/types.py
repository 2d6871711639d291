"""
Type definitions for dasdimage.

This module provides TypedDict definitions and other type aliases
for better type checking throughout the codebase.
"""
from enum import Enum
from typing import Callable, List, NamedTuple, TypedDict


class Geometry(TypedDict):
    """Addressing geometry of a DASD device"""
    bytes_per_block: int
    blocks_per_track: int


class Range(NamedTuple):
    """Byte range to copy from the image stream to the device"""
    in_offset: int
    out_offset: int
    length: int


class DeviceState(Enum):
    """Stages a DASD goes through while an image is installed"""
    RAW = "raw"
    LOW_LEVEL_FORMATTED = "low-level formatted"
    AUTO_FORMATTED = "auto-formatted"
    PARTITIONED = "partitioned"
    POPULATED = "populated"


# fdasd configuration records, e.g. "[2, 7, native]"
TrackDescriptors = List[str]

# Blocks until the device node tree has converged
SettleCallback = Callable[[], None]
