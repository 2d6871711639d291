"""
DASD formatting module.

This module handles low-level formatting of DASD devices with dasdfmt and the
creation of track-based partition tables with fdasd. Device state is always
queried live before a destructive step.
"""
import os
import logging
import subprocess
from typing import List, Optional

from dasdimage.utils.command import CommandRunner
from dasdimage.utils.format import TermColors, colorize, fdasd_config
from dasdimage.utils.types import SettleCallback
from dasdimage.core.disk import ccw_status_path, read_sysfs_value
from dasdimage.core.exceptions import ConfigLimitError, ToolInvocationError

logger = logging.getLogger('dasdimage')

# Constants
MAX_PARTITIONS = 3           # fdasd silently ignores partitions after the first 3
DASDFMT_BLOCK_SIZE = 4096
INVALID_LABEL_MARKER = "disk label block is invalid"
UNFORMATTED_MARKER = "unformatted"


def run_tool(cmd: List[str], cmd_runner: CommandRunner, what: str, **kwargs) -> str:
    """
    Run an external tool and return its decoded standard output.

    Args:
        cmd: Command to run as list of strings
        cmd_runner: CommandRunner instance for executing commands
        what: Description of the operation for error messages
        **kwargs: Additional arguments to pass to CommandRunner.run

    Raises:
        ToolInvocationError: If the tool can't be started, fails or produces
            output that can't be decoded
    """
    try:
        result = cmd_runner.run(cmd, **kwargs)
    except subprocess.CalledProcessError as e:
        raise ToolInvocationError(f"{what}: {cmd[0]} exited with status {e.returncode}") from e
    except UnicodeDecodeError as e:
        raise ToolInvocationError(f"{what}: decoding {cmd[0]} output: {e}") from e
    except OSError as e:
        raise ToolInvocationError(f"{what}: executing {cmd[0]}: {e}") from e
    return result.stdout or ""


def udev_settle(cmd_runner: CommandRunner) -> None:
    """Wait for udev to process pending device events."""
    run_tool(["udevadm", "settle"], cmd_runner, "waiting for udev to settle")


def _settle(settle: Optional[SettleCallback], cmd_runner: CommandRunner) -> None:
    if settle is not None:
        settle()
    else:
        udev_settle(cmd_runner)


def bus_id(dasd: str, cmd_runner: CommandRunner) -> str:
    """
    Get disk bus id.

    Args:
        dasd: DASD device, e.g. /dev/dasda
        cmd_runner: CommandRunner instance for executing commands

    Returns:
        CCW bus id such as 0.0.0100
    """
    output = run_tool(
        ["lszdev", "-n", "-c", "ID", "--by-node", dasd],
        cmd_runner,
        f"looking up bus id of {dasd}"
    )
    return output.rstrip()


def is_formatted(dasd: str, cmd_runner: CommandRunner) -> bool:
    """
    Check if disk is already low-level formatted or not.

    Args:
        dasd: DASD device, e.g. /dev/dasda
        cmd_runner: CommandRunner instance for executing commands
    """
    device_id = bus_id(dasd, cmd_runner)
    if cmd_runner.simulating:
        formatted = cmd_runner.simulation_params.get("formatted", True)
        logger.info(f"Simulation: {dasd} ({device_id}) formatted: {formatted}")
        return formatted

    status = read_sysfs_value(ccw_status_path(device_id))
    logger.debug(f"Status of {dasd} ({device_id}): {status}")
    return UNFORMATTED_MARKER not in status


def is_invalid_label(dasd: str, cmd_runner: CommandRunner) -> bool:
    """
    Check if the disk label is invalid.

    Args:
        dasd: DASD device, e.g. /dev/dasda
        cmd_runner: CommandRunner instance for executing commands
    """
    # we're looking for a hardcoded string in the output
    env = dict(os.environ, LC_ALL="C")
    output = run_tool(["fdasd", "-p", dasd], cmd_runner, f"checking label of {dasd}", env=env)
    return INVALID_LABEL_MARKER in output


def low_level_format(dasd: str, cmd_runner: CommandRunner,
                     settle: Optional[SettleCallback] = None) -> bool:
    """
    Perform low-level format. This step is necessary before any further disk usage.

    Args:
        dasd: DASD device, e.g. /dev/dasda
        cmd_runner: CommandRunner instance for executing commands
        settle: Callback waiting for the device tree to settle

    Returns:
        True if the disk was formatted, False if it already was
    """
    if is_formatted(dasd, cmd_runner):
        logger.info(f"Skipping low-level format for {dasd}")
        return False

    logger.info(colorize(f"Performing low-level format for {dasd}", TermColors.WARNING,
                         cmd_runner.colored_output))
    run_tool(
        ["dasdfmt", "--blocksize", str(DASDFMT_BLOCK_SIZE), "--disk_layout", "cdl",
         "--mode", "full", "-y", "-p", dasd],
        cmd_runner,
        f"low-level formatting {dasd}"
    )
    _settle(settle, cmd_runner)
    return True


def default_format(dasd: str, cmd_runner: CommandRunner,
                   settle: Optional[SettleCallback] = None) -> None:
    """
    Auto-partition the whole disk with a single partition.

    Used to recover when config-based partitioning fails and when the label
    of a freshly formatted disk is invalid.

    Args:
        dasd: DASD device, e.g. /dev/dasda
        cmd_runner: CommandRunner instance for executing commands
        settle: Callback waiting for the device tree to settle
    """
    logger.info(f"Auto-partitioning {dasd}")
    run_tool(["fdasd", "-a", "-s", dasd], cmd_runner, f"auto-formatting {dasd}")
    _settle(settle, cmd_runner)


def try_format(dasd: str, config: str, cmd_runner: CommandRunner,
               settle: Optional[SettleCallback] = None) -> None:
    """
    Format disk using a config file fed through standard input.

    Args:
        dasd: DASD device, e.g. /dev/dasda
        config: fdasd configuration file contents
        cmd_runner: CommandRunner instance for executing commands
        settle: Callback waiting for the device tree to settle
    """
    logger.info(f"Partitioning {dasd}")
    run_tool(
        ["fdasd", "-s", "--config", "/dev/stdin", dasd],
        cmd_runner,
        f"couldn't format {dasd} based on:\n{config}",
        input=config
    )
    _settle(settle, cmd_runner)


def make_partitions(dasd: str, partitions: List[str], cmd_runner: CommandRunner,
                    settle: Optional[SettleCallback] = None) -> None:
    """
    Format disk and create partitions.

    Args:
        dasd: DASD device, e.g. /dev/dasda
        partitions: fdasd configuration records, one per partition
        cmd_runner: CommandRunner instance for executing commands
        settle: Callback waiting for the device tree to settle

    Raises:
        ConfigLimitError: If more than MAX_PARTITIONS records are given
        ToolInvocationError: If partitioning fails even after auto-formatting
    """
    if len(partitions) > MAX_PARTITIONS:
        raise ConfigLimitError(
            f"Can't create {len(partitions)} partitions, maximum {MAX_PARTITIONS}"
        )

    config = fdasd_config(partitions)
    logger.info("Applying partition table:")
    for line in partitions:
        logger.info(f"  {line}")

    try:
        try_format(dasd, config, cmd_runner, settle)
    except ToolInvocationError as e:
        logger.warning(colorize(f"Partitioning {dasd} failed, retrying after auto-format: {e}",
                                TermColors.WARNING, cmd_runner.colored_output))
        default_format(dasd, cmd_runner, settle)
        try_format(dasd, config, cmd_runner, settle)
