"""
DASD installation module.

This module drives a DASD through preparation (low-level format and label
check) and image installation (partitioning and partition copy).
"""
import logging
from typing import BinaryIO, Optional

from dasdimage.utils.command import CommandRunner
from dasdimage.utils.format import TermColors, colorize, describe_range
from dasdimage.utils.types import DeviceState, SettleCallback
from dasdimage.core.copier import copy_ranges
from dasdimage.core.exceptions import DiskIoError
from dasdimage.core.formatter import (
    default_format, is_invalid_label, low_level_format, make_partitions
)
from dasdimage.core.image import read_header
from dasdimage.core.planner import compute_plan, partition_ranges

logger = logging.getLogger('dasdimage')

# Geometry of a 3390 DASD formatted with 4096 byte blocks, used in simulation
SIMULATED_BLOCK_SIZE = 4096
SIMULATED_BLOCKS_PER_TRACK = 12


def _log_state(dasd: str, state: DeviceState) -> None:
    logger.debug(f"{dasd} is now {state.value}")


def prepare_dasd(dasd: str, cmd_runner: CommandRunner,
                 settle: Optional[SettleCallback] = None) -> DeviceState:
    """
    Bring a DASD into a state where a partition table can be written.

    Args:
        dasd: DASD device, e.g. /dev/dasda
        cmd_runner: CommandRunner instance for executing commands
        settle: Callback waiting for the device tree to settle

    Returns:
        State the device was left in
    """
    if low_level_format(dasd, cmd_runner, settle):
        logger.info(f"{dasd} was {DeviceState.RAW.value}")
    state = DeviceState.LOW_LEVEL_FORMATTED
    _log_state(dasd, state)

    if is_invalid_label(dasd, cmd_runner):
        logger.warning(f"Disk {dasd} is invalid, formatting")
        default_format(dasd, cmd_runner, settle)
        state = DeviceState.AUTO_FORMATTED
        _log_state(dasd, state)
    return state


def image_copy(first_mb: bytes, source: BinaryIO, dest_file: BinaryIO, dest_path: str,
               cmd_runner: CommandRunner, settle: Optional[SettleCallback] = None) -> None:
    """
    Partition a DASD for an image and copy the image partitions onto it.

    Args:
        first_mb: Leading bytes of the image, already read from source
        source: Image stream positioned right after first_mb
        dest_file: Device opened for reading and writing
        dest_path: Path of the device
        cmd_runner: CommandRunner instance for executing commands
        settle: Callback waiting for the device tree to settle
    """
    ranges, partitions = partition_ranges(first_mb, dest_file.fileno())
    make_partitions(dest_path, partitions, cmd_runner, settle)
    _log_state(dest_path, DeviceState.PARTITIONED)

    # there shouldn't be any partition data in the first MiB, so don't
    # worry about copying first_mb
    logger.info(colorize(f"Installing to {dest_path}", TermColors.INFO, cmd_runner.colored_output))
    copy_ranges(ranges, source, dest_file, dest_path)


def _simulate_image_copy(first_mb: bytes, dasd: str, cmd_runner: CommandRunner,
                         settle: Optional[SettleCallback]) -> None:
    params = cmd_runner.simulation_params
    ranges, partitions = compute_plan(
        first_mb,
        params.get("block_size", SIMULATED_BLOCK_SIZE),
        params.get("blocks_per_track", SIMULATED_BLOCKS_PER_TRACK)
    )
    make_partitions(dasd, partitions, cmd_runner, settle)
    sim_prefix = colorize(f"[SIM:{cmd_runner.simulation_id}]", TermColors.SIM, cmd_runner.colored_output)
    for r in ranges:
        logger.info(f"{sim_prefix} Would write {describe_range(r)}")


def install_image(dasd: str, source: BinaryIO, cmd_runner: CommandRunner,
                  settle: Optional[SettleCallback] = None,
                  prepare: bool = True) -> DeviceState:
    """
    Install a GPT disk image onto a DASD.

    Args:
        dasd: DASD device, e.g. /dev/dasda
        source: Forward-only stream of the uncompressed image
        cmd_runner: CommandRunner instance for executing commands
        settle: Callback waiting for the device tree to settle
        prepare: Whether to run prepare_dasd first

    Returns:
        State the device was left in

    Raises:
        DasdImageError: If any step fails; the device contents are then undefined
    """
    if prepare:
        prepare_dasd(dasd, cmd_runner, settle)

    first_mb = read_header(source)

    if cmd_runner.simulating:
        _simulate_image_copy(first_mb, dasd, cmd_runner, settle)
        return DeviceState.PARTITIONED

    try:
        dest_file = open(dasd, "r+b", buffering=0)
    except OSError as e:
        raise DiskIoError(f"opening {dasd}: {e}") from e

    with dest_file:
        image_copy(first_mb, source, dest_file, dasd, cmd_runner, settle)

    _log_state(dasd, DeviceState.POPULATED)
    logger.info(colorize(f"Installed image to {dasd}", TermColors.SUCCESS, cmd_runner.colored_output))
    return DeviceState.POPULATED
