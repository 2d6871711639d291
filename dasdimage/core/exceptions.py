"""
Base exceptions for dasdimage.

This module defines the hierarchy of exceptions used by dasdimage.
"""

class DasdImageError(Exception):
    """Base exception for dasdimage errors"""
    pass


class GeometryError(DasdImageError):
    """Exception raised when disk geometry can't be read or is zero"""
    pass


class PartitionTableError(DasdImageError):
    """Exception raised when the source partition table is malformed"""
    pass


class NoPartitionsError(PartitionTableError):
    """Exception raised when the source image has no used partitions"""
    pass


class PlanConsistencyError(DasdImageError):
    """Exception raised when a copy plan revisits already consumed stream data"""
    pass


class TruncatedStreamError(DasdImageError):
    """Exception raised when the image stream ends before its partitions do"""
    pass


class FlushError(DasdImageError):
    """Exception raised when buffered data can't be flushed to the device"""
    pass


class ConfigLimitError(DasdImageError):
    """Exception raised when more partitions are requested than fdasd supports"""
    pass


class ToolInvocationError(DasdImageError):
    """Exception raised when an external tool can't be run or fails"""
    pass


class DiskIoError(DasdImageError):
    """Exception raised when reading, writing or seeking fails"""
    pass
