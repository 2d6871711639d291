"""
Validation utilities.

This module provides functions for validating prerequisites and arguments.
"""
import os
import shutil
import logging
from typing import Iterable

from dasdimage.utils.command import CommandRunner

logger = logging.getLogger('dasdimage')

# Tools needed by each subcommand
PREPARE_TOOLS = ("lszdev", "dasdfmt", "fdasd", "udevadm")
INSTALL_TOOLS = ("fdasd", "udevadm")
DEVICE_TOOLS = ("lsblk",)


def check_prerequisites(cmd_runner: CommandRunner, required_tools: Iterable[str]) -> None:
    """
    Check for required tools and permissions.

    Args:
        cmd_runner: CommandRunner instance for executing commands
        required_tools: Names of the executables that must be installed

    Raises:
        RuntimeError: If prerequisites are not met
    """
    required_tools = sorted(set(required_tools))

    # In simulation mode, just log what would be checked
    if cmd_runner.simulating:
        logger.info("Checking for required tools (simulated)")
        for tool in required_tools:
            logger.info(f"Tool '{tool}' would be checked")
        return

    if os.geteuid() != 0:
        raise RuntimeError("This command must be run as root")

    missing_tools = [tool for tool in required_tools if not shutil.which(tool)]
    if missing_tools:
        raise RuntimeError(
            f"Missing required tools: {', '.join(missing_tools)}\n"
            "Please install s390-tools and util-linux and try again"
        )


def validate_geometry_args(block_size: int, blocks_per_track: int) -> None:
    """
    Validate geometry given on the command line.

    Raises:
        ValueError: If a value is not positive or the block size is not a power of two
    """
    if block_size <= 0 or block_size & (block_size - 1) != 0:
        raise ValueError(f"Block size must be a positive power of two, got {block_size}")
    if blocks_per_track <= 0:
        raise ValueError(f"Blocks per track must be positive, got {blocks_per_track}")
