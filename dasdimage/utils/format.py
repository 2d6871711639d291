"""
Formatting utilities.

This module provides functions for formatting sizes, fdasd track records and
copy ranges, and consistent terminal output formatting.
"""
from typing import Iterable, Optional

from dasdimage.utils.types import Range


# ANSI Terminal Colors
class TermColors:
    """ANSI color codes for terminal output"""
    INFO = '\033[94m'     # Blue for informational messages
    SUCCESS = '\033[92m'  # Green for success messages
    WARNING = '\033[93m'  # Yellow for warnings
    ERROR = '\033[91m'    # Red for errors
    SIM = '\033[96m'      # Cyan for simulation messages
    BOLD = '\033[1m'      # Bold text
    ENDC = '\033[0m'      # End color


def colorize(message: str, color: str, enabled: bool = True) -> str:
    """
    Add color to a message if color output is enabled.

    Args:
        message: The message to colorize
        color: The color to use (from TermColors)
        enabled: Whether colorization is enabled

    Returns:
        Colorized message or original message if colors disabled
    """
    if not enabled:
        return message
    return f"{color}{message}{TermColors.ENDC}"


def bytes_to_human_readable(size_bytes: int) -> str:
    """
    Convert bytes to human readable format using binary units (KiB, MiB, GiB, TiB).

    Args:
        size_bytes: Size in bytes

    Returns:
        Human readable size string with proper binary unit
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    for unit in ['KiB', 'MiB', 'GiB', 'TiB', 'PiB', 'EiB']:
        size_bytes /= 1024
        if size_bytes < 1024:
            return f"{size_bytes:.2f} {unit}"

    return f"{size_bytes:.2f} EiB"


def track_descriptor(start_track: int, end_track: Optional[int]) -> str:
    """
    Build a single fdasd configuration record.

    Args:
        start_track: First track of the partition
        end_track: Last track of the partition, or None to extend it to the end
            of the device

    Returns:
        Record such as "[2, 7, native]" or "[8, last, native]"
    """
    end = "last" if end_track is None else str(end_track)
    return f"[{start_track}, {end}, native]"


def fdasd_config(descriptors: Iterable[str]) -> str:
    """Join track descriptors into a newline terminated fdasd config body."""
    return "".join(f"{descriptor}\n" for descriptor in descriptors)


def describe_range(r: Range) -> str:
    """Human readable summary of a copy range"""
    return (f"image offset {r.in_offset} -> device offset {r.out_offset} "
            f"({bytes_to_human_readable(r.length)})")
