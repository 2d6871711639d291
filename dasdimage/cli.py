"""
Command-line interface for dasdimage.

This module handles argument parsing and orchestrates DASD preparation and
image installation.
"""
import argparse
import logging
import os
import sys
from typing import List, Optional

from dasdimage.utils.logging import setup_logging
from dasdimage.utils.command import CommandRunner, SimulationMode
from dasdimage.utils.format import TermColors, colorize, describe_range, fdasd_config
from dasdimage.utils.validation import (
    DEVICE_TOOLS, INSTALL_TOOLS, PREPARE_TOOLS, check_prerequisites, validate_geometry_args
)
from dasdimage.core.disk import is_disk_available
from dasdimage.core.image import DECOMPRESS_CHOICES, open_image, read_header
from dasdimage.core.install import (
    SIMULATED_BLOCK_SIZE, SIMULATED_BLOCKS_PER_TRACK, install_image, prepare_dasd
)
from dasdimage.core.planner import compute_plan
from dasdimage.core.exceptions import DasdImageError

logger = logging.getLogger('dasdimage')


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: Arguments to parse, defaults to sys.argv

    Returns:
        Namespace containing parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Install GPT disk images onto ECKD DASD devices"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    parser.add_argument(
        "-s", "--simulate",
        action="store_true",
        help="Simulate operations without making any changes to the system"
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output"
    )

    simulation_group = parser.add_argument_group('DASD simulation options (only with --simulate)')
    simulation_group.add_argument(
        "--sim-unformatted",
        action="store_true",
        help="Simulate a DASD that has not been low-level formatted"
    )

    simulation_group.add_argument(
        "--sim-invalid-label",
        action="store_true",
        help="Simulate a DASD with an invalid disk label"
    )

    simulation_group.add_argument(
        "--sim-block-size",
        type=int,
        default=SIMULATED_BLOCK_SIZE,
        help=f"Simulated block size in bytes (default: {SIMULATED_BLOCK_SIZE})"
    )

    simulation_group.add_argument(
        "--sim-blocks-per-track",
        type=int,
        default=SIMULATED_BLOCKS_PER_TRACK,
        help=f"Simulated blocks per track (default: {SIMULATED_BLOCKS_PER_TRACK})"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    prepare_parser = subparsers.add_parser(
        "prepare",
        help="Low-level format a DASD and make sure it carries a valid label"
    )
    prepare_parser.add_argument(
        "device",
        help="Target DASD device (e.g., /dev/dasda)"
    )

    install_parser = subparsers.add_parser(
        "install",
        help="Write a GPT disk image onto a DASD (WARNING: erases the device)"
    )
    install_parser.add_argument(
        "device",
        help="Target DASD device (e.g., /dev/dasda)"
    )
    install_parser.add_argument(
        "-i", "--image",
        required=True,
        help="Disk image to install, or - to read it from standard input"
    )
    install_parser.add_argument(
        "-d", "--decompress",
        choices=DECOMPRESS_CHOICES,
        default="auto",
        help="Image compression (default: detect gzip and xz)"
    )
    install_parser.add_argument(
        "--skip-prepare",
        action="store_true",
        help="Don't low-level format or check the label before partitioning"
    )

    plan_parser = subparsers.add_parser(
        "plan",
        help="Show the DASD layout of an image without touching any device"
    )
    plan_parser.add_argument(
        "image",
        help="Disk image, or - to read it from standard input"
    )
    plan_parser.add_argument(
        "-d", "--decompress",
        choices=DECOMPRESS_CHOICES,
        default="auto",
        help="Image compression (default: detect gzip and xz)"
    )
    plan_parser.add_argument(
        "-b", "--block-size",
        type=int,
        default=SIMULATED_BLOCK_SIZE,
        help=f"Block size of the target DASD in bytes (default: {SIMULATED_BLOCK_SIZE})"
    )
    plan_parser.add_argument(
        "-t", "--blocks-per-track",
        type=int,
        default=SIMULATED_BLOCKS_PER_TRACK,
        help=f"Blocks per track of the target DASD (default: {SIMULATED_BLOCKS_PER_TRACK})"
    )

    return parser.parse_args(argv)


def display_simulation_summary(cmd_runner: CommandRunner) -> None:
    """
    Display a summary of the simulation.

    Args:
        cmd_runner: CommandRunner instance for executing commands
    """
    if not cmd_runner.simulating:
        return

    report = cmd_runner.get_simulation_report()

    try:
        terminal_width = os.get_terminal_size().columns
    except (AttributeError, OSError):
        terminal_width = 80
    stars = "*" * terminal_width
    colored = cmd_runner.colored_output

    print(f"\n{colorize(stars, TermColors.SIM, colored)}")
    print(colorize("SIMULATION COMPLETE - NO CHANGES WERE MADE", TermColors.SIM + TermColors.BOLD, colored))
    print(f"{colorize(stars, TermColors.SIM, colored)}\n")

    print(colorize("The following operations would have been performed:", TermColors.SUCCESS, colored))
    print(report)

    print(f"\n{colorize('To execute these operations for real, run without the --simulate flag.', TermColors.SIM, colored)}")


def show_plan(args: argparse.Namespace) -> None:
    """
    Print the ranges and fdasd configuration computed for an image.

    Args:
        args: Command line arguments
    """
    validate_geometry_args(args.block_size, args.blocks_per_track)
    with open_image(args.image, args.decompress) as source:
        header = read_header(source)
    ranges, partitions = compute_plan(header, args.block_size, args.blocks_per_track)

    print(f"Geometry: {args.block_size} bytes/block, {args.blocks_per_track} blocks/track")
    print("Copy ranges:")
    for r in ranges:
        print(f"  {describe_range(r)}")
    print("fdasd configuration:")
    print(fdasd_config(partitions), end="")


def run_command(args: argparse.Namespace, cmd_runner: CommandRunner) -> None:
    """
    Execute the requested subcommand.

    Args:
        args: Command line arguments
        cmd_runner: CommandRunner instance for executing commands
    """
    if args.command == "plan":
        show_plan(args)
        return

    tools = list(DEVICE_TOOLS)
    if args.command == "prepare" or not args.skip_prepare:
        tools.extend(PREPARE_TOOLS)
    if args.command == "install":
        tools.extend(INSTALL_TOOLS)
    check_prerequisites(cmd_runner, tools)

    if not is_disk_available(args.device, cmd_runner):
        raise RuntimeError(f"Disk {args.device} not found or is not a block device")

    if args.command == "prepare":
        state = prepare_dasd(args.device, cmd_runner)
        logger.info(colorize(f"Disk {args.device} is {state.value}", TermColors.SUCCESS,
                             cmd_runner.colored_output))
    elif args.command == "install":
        with open_image(args.image, args.decompress) as source:
            install_image(args.device, source, cmd_runner, prepare=not args.skip_prepare)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    args = None
    try:
        args = parse_arguments(argv)

        setup_logging(args.debug)

        cmd_runner = CommandRunner(
            SimulationMode.SIMULATE if args.simulate else SimulationMode.DISABLED,
            not args.no_color
        )

        try:
            if args.simulate:
                logger.info("Running in simulation mode - NO CHANGES WILL BE MADE")
                validate_geometry_args(args.sim_block_size, args.sim_blocks_per_track)
                cmd_runner.set_simulation_params({
                    "formatted": not args.sim_unformatted,
                    "label_invalid": args.sim_invalid_label,
                    "block_size": args.sim_block_size,
                    "blocks_per_track": args.sim_blocks_per_track,
                })

            run_command(args, cmd_runner)
        except (RuntimeError, ValueError) as e:
            logger.error(str(e))
            return 1
        except DasdImageError as e:
            logger.error(colorize(str(e), TermColors.ERROR, cmd_runner.colored_output))
            if args.command == "install":
                logger.error(f"The contents of {args.device} are undefined; install again before use")
            return 1

        display_simulation_summary(cmd_runner)
        return 0

    except KeyboardInterrupt:
        logger.error("Operation cancelled by user")
        return 130

    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args is not None and args.debug:
            import traceback
            traceback.print_exc()
        return 1


# For module import compatibility
if __name__ == "__main__":
    sys.exit(main())
