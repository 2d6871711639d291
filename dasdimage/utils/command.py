"""
Command execution utilities.

This module provides tools for executing external DASD tools with simplified
simulation support.
"""
import logging
import os
import subprocess
import uuid
from enum import Enum
from typing import Dict, List, Any

from dasdimage.utils.format import TermColors, colorize

logger = logging.getLogger('dasdimage')

# Canned answers used in simulation mode
SIMULATED_BUS_ID = "0.0.0100"
SIMULATED_INVALID_LABEL = "fdasd error: disk label block is invalid\n"


class SimulationMode(Enum):
    """Enumeration for simulation modes"""
    DISABLED = 0  # Normal operation
    SIMULATE = 1  # Simulate operations


class CommandRunner:
    """
    Class responsible for command execution with simulation support.
    Acts as a wrapper around subprocess.run with additional functionality.

    stdout is captured and returned to the caller; stderr is left attached to
    the terminal so tool diagnostics stay visible. Every request is recorded in
    ``commands_run`` together with the payload written to its standard input.
    """
    def __init__(self, simulation_mode: SimulationMode, colored_output: bool = True):
        """
        Initialize the command runner.

        Args:
            simulation_mode: Simulation mode to operate in
            colored_output: Whether to use colored output in terminal
        """
        self.simulation_mode = simulation_mode
        self.colored_output = colored_output
        self.commands_run = []

        # Generate a unique simulation ID
        self.simulation_id = str(uuid.uuid4())[:8]

        # Simulation parameters
        self.simulation_params = {}

    @property
    def simulating(self) -> bool:
        return self.simulation_mode == SimulationMode.SIMULATE

    def set_simulation_params(self, params: Dict[str, Any]) -> None:
        """
        Set parameters for DASD simulation.

        Args:
            params: Dictionary of simulation parameters
        """
        self.simulation_params = params

    def run(self, cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
        """
        Run a command or simulate running it.

        Args:
            cmd: Command to run as list of strings
            check: Whether to check for non-zero return code
            **kwargs: Additional arguments to pass to subprocess.run

        Returns:
            CompletedProcess instance from subprocess.run

        Raises:
            subprocess.CalledProcessError: If check is set and the command fails
            OSError: If the command can't be started
        """
        cmd_str = ' '.join(cmd)
        logger.debug(f"Command requested: {cmd_str}")

        # Keep track of this command
        cmd_record = {
            "command": cmd.copy(),
            "input": kwargs.get("input"),
            "simulated": self.simulating
        }
        self.commands_run.append(cmd_record)

        if self.simulating:
            sim_prefix = colorize(f"[SIM:{self.simulation_id}]", TermColors.SIM, self.colored_output)
            logger.info(f"{sim_prefix} Would execute: {cmd_str}")
            return self._simulate_command(cmd, **kwargs)

        try:
            return subprocess.run(
                cmd,
                check=check,
                text=True,
                stdout=subprocess.PIPE,
                **kwargs
            )
        except subprocess.CalledProcessError as e:
            logger.error(colorize(f"Command failed: {cmd_str}", TermColors.ERROR, self.colored_output))
            logger.error(f"Return code: {e.returncode}")
            if e.stdout:
                logger.error(f"Stdout: {e.stdout}")
            raise

    def _simulate_command(self, cmd: List[str], **kwargs) -> subprocess.CompletedProcess:
        """
        Generate simulated output for a command.

        Args:
            cmd: Command to simulate
            **kwargs: Additional arguments passed to the original command

        Returns:
            CompletedProcess with simulated output
        """
        result = subprocess.CompletedProcess(
            args=cmd,
            returncode=0,
            stdout="",
            stderr=""
        )

        cmd_name = os.path.basename(cmd[0]) if cmd else ""

        if cmd_name == "lszdev":
            result.stdout = self.simulation_params.get("bus_id", SIMULATED_BUS_ID) + "\n"
        elif cmd_name == "lsblk":
            result.stdout = "disk\n"
        elif cmd_name == "fdasd":
            return self._handle_fdasd_simulation(cmd, result, **kwargs)

        return result

    def _handle_fdasd_simulation(self, cmd: List[str], result: subprocess.CompletedProcess, **kwargs) -> subprocess.CompletedProcess:
        """Simulate fdasd command output"""
        if "-p" in cmd:
            if self.simulation_params.get("label_invalid", False):
                result.stdout = SIMULATED_INVALID_LABEL
            else:
                result.stdout = f"reading volume label ..: VOL1\nDisk {cmd[-1]}:\n"
        elif "input" in kwargs:
            logger.debug(f"fdasd config:\n{kwargs['input']}")
        return result

    def get_simulation_report(self) -> str:
        """
        Generate a report of all simulated commands.

        Returns:
            Formatted string with report of simulated commands
        """
        if not self.simulating:
            return "Simulation mode is not active."

        report = []
        report.append("=" * 80)
        report.append(f"SIMULATION REPORT [ID: {self.simulation_id}]")
        report.append("=" * 80)
        report.append("")

        # Group commands by type
        command_groups = {}
        for cmd_record in self.commands_run:
            cmd = cmd_record["command"]
            cmd_type = os.path.basename(cmd[0]) if cmd else "unknown"
            command_groups.setdefault(cmd_type, []).append(cmd_record)

        for cmd_type, cmd_records in command_groups.items():
            report.append(f"{cmd_type.upper()} COMMANDS:")
            report.append("-" * 40)

            for i, cmd_record in enumerate(cmd_records, 1):
                report.append(f"{i}. {' '.join(cmd_record['command'])}")
                if cmd_record["input"]:
                    for line in cmd_record["input"].splitlines():
                        report.append(f"     < {line}")

            report.append("")

        report.append("-" * 80)
        report.append(f"Total commands simulated: {len(self.commands_run)}")
        report.append("=" * 80)

        return "\n".join(report)
