"""
Disk information and validation module.

This module provides functions for validating the target device and reading
its state from sysfs.
"""
import os
import logging

from dasdimage.utils.command import CommandRunner
from dasdimage.core.exceptions import DiskIoError

logger = logging.getLogger('dasdimage')

# Constants
SYSFS_CCW_DEVICES = "/sys/bus/ccw/devices"


def read_sysfs_value(path: str) -> str:
    """
    Read a value from sysfs.

    Args:
        path: Path to the sysfs attribute

    Returns:
        Content of the attribute with surrounding whitespace removed

    Raises:
        DiskIoError: If the attribute can't be read
    """
    try:
        with open(path, "r") as f:
            return f.read().strip()
    except OSError as e:
        raise DiskIoError(f"reading {path}: {e}") from e


def ccw_status_path(bus_id: str) -> str:
    """Path of the status attribute of a CCW device"""
    return os.path.join(SYSFS_CCW_DEVICES, bus_id, "status")


def is_disk_available(disk: str, cmd_runner: CommandRunner) -> bool:
    """
    Check if the disk exists and is a block device.

    Args:
        disk: Path to the disk device
        cmd_runner: CommandRunner instance for executing commands

    Returns:
        True if disk exists and is a block device, False otherwise
    """
    # In simulation mode, assume disk is available
    if cmd_runner.simulating:
        return True

    if not os.path.exists(disk):
        return False

    try:
        result = cmd_runner.run(["lsblk", "-n", "-d", "-o", "TYPE", disk], check=False)
    except OSError as e:
        logger.warning(f"Error checking if disk is available: {e}")
        return False
    return "disk" in result.stdout.lower()
