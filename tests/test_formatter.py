"""Tests for DASD low-level formatting and partitioning."""
import pytest

from dasdimage.core.exceptions import ConfigLimitError, DiskIoError, ToolInvocationError
from dasdimage.core.formatter import (
    bus_id, default_format, is_formatted, is_invalid_label, low_level_format,
    make_partitions, try_format
)

from conftest import FakeRunner

DASD = "/dev/dasda"
BUS_ID = "0.0.0100"
LAYOUT = ["[2, 7, native]", "[8, last, native]"]


class TestDeviceState:
    def test_bus_id(self):
        runner = FakeRunner({"lszdev": [f"{BUS_ID}\n"]})
        assert bus_id(DASD, runner) == BUS_ID
        assert runner.commands() == [["lszdev", "-n", "-c", "ID", "--by-node", DASD]]

    def test_bus_id_failure(self):
        runner = FakeRunner({"lszdev": [1]})
        with pytest.raises(ToolInvocationError, match="looking up bus id"):
            bus_id(DASD, runner)

    def test_bus_id_undecodable(self):
        error = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
        runner = FakeRunner({"lszdev": [error]})
        with pytest.raises(ToolInvocationError, match="decoding lszdev output"):
            bus_id(DASD, runner)

    def test_is_formatted(self, sysfs):
        sysfs(BUS_ID, "online\n")
        assert is_formatted(DASD, FakeRunner({"lszdev": [BUS_ID]}))

    def test_is_unformatted(self, sysfs):
        sysfs(BUS_ID, "unformatted\n")
        assert not is_formatted(DASD, FakeRunner({"lszdev": [BUS_ID]}))

    def test_missing_status(self, sysfs):
        with pytest.raises(DiskIoError, match="status"):
            is_formatted(DASD, FakeRunner({"lszdev": [BUS_ID]}))

    def test_invalid_label(self):
        runner = FakeRunner({"fdasd": ["fdasd error: disk label block is invalid\n"]})
        assert is_invalid_label(DASD, runner)
        call = runner.calls[0]
        assert call["command"] == ["fdasd", "-p", DASD]
        assert call["kwargs"]["env"]["LC_ALL"] == "C"

    def test_valid_label(self):
        runner = FakeRunner({"fdasd": ["reading volume label ..: VOL1\n"]})
        assert not is_invalid_label(DASD, runner)


class TestLowLevelFormat:
    def test_skips_formatted_disk(self, sysfs, settle):
        sysfs(BUS_ID, "online\n")
        runner = FakeRunner({"lszdev": [BUS_ID]})

        assert low_level_format(DASD, runner, settle) is False

        assert runner.commands("dasdfmt") == []
        assert settle.count == 0

    def test_formats_unformatted_disk(self, sysfs, settle):
        sysfs(BUS_ID, "unformatted\n")
        runner = FakeRunner({"lszdev": [BUS_ID]})

        assert low_level_format(DASD, runner, settle) is True

        assert runner.commands("dasdfmt") == [[
            "dasdfmt", "--blocksize", "4096", "--disk_layout", "cdl",
            "--mode", "full", "-y", "-p", DASD
        ]]
        assert settle.count == 1

    def test_dasdfmt_failure(self, sysfs, settle):
        sysfs(BUS_ID, "unformatted\n")
        runner = FakeRunner({"lszdev": [BUS_ID], "dasdfmt": [1]})

        with pytest.raises(ToolInvocationError, match="low-level formatting"):
            low_level_format(DASD, runner, settle)
        assert settle.count == 0

    def test_missing_tool(self, sysfs, settle):
        sysfs(BUS_ID, "unformatted\n")
        runner = FakeRunner({"lszdev": [BUS_ID], "dasdfmt": [FileNotFoundError(2, "No such file")]})

        with pytest.raises(ToolInvocationError, match="executing dasdfmt"):
            low_level_format(DASD, runner, settle)

    def test_default_settle_uses_udevadm(self, sysfs):
        sysfs(BUS_ID, "unformatted\n")
        runner = FakeRunner({"lszdev": [BUS_ID]})

        low_level_format(DASD, runner)

        assert runner.commands()[-1] == ["udevadm", "settle"]


class TestPartitioning:
    def test_try_format_feeds_config_on_stdin(self, settle):
        runner = FakeRunner()

        try_format(DASD, "[2, last, native]\n", runner, settle)

        assert runner.calls[0]["command"] == ["fdasd", "-s", "--config", "/dev/stdin", DASD]
        assert runner.calls[0]["input"] == "[2, last, native]\n"
        assert settle.count == 1

    def test_default_format(self, settle):
        runner = FakeRunner()
        default_format(DASD, runner, settle)
        assert runner.commands() == [["fdasd", "-a", "-s", DASD]]
        assert settle.count == 1

    def test_make_partitions(self, settle):
        runner = FakeRunner()

        make_partitions(DASD, LAYOUT, runner, settle)

        assert len(runner.calls) == 1
        assert runner.calls[0]["input"] == "[2, 7, native]\n[8, last, native]\n"
        assert settle.count == 1

    def test_too_many_partitions(self, settle):
        runner = FakeRunner()
        layout = ["[2, 3, native]", "[4, 5, native]", "[6, 7, native]", "[8, last, native]"]

        with pytest.raises(ConfigLimitError, match="Can't create 4 partitions, maximum 3"):
            make_partitions(DASD, layout, runner, settle)

        assert runner.calls == []
        assert settle.count == 0

    def test_retry_after_auto_format(self, settle):
        runner = FakeRunner({"fdasd": [1, "", ""]})

        make_partitions(DASD, LAYOUT, runner, settle)

        assert runner.commands() == [
            ["fdasd", "-s", "--config", "/dev/stdin", DASD],
            ["fdasd", "-a", "-s", DASD],
            ["fdasd", "-s", "--config", "/dev/stdin", DASD],
        ]
        assert runner.calls[2]["input"] == runner.calls[0]["input"]
        assert settle.count == 2

    def test_retry_fails(self, settle):
        runner = FakeRunner({"fdasd": [1, "", 1]})

        with pytest.raises(ToolInvocationError, match="couldn't format"):
            make_partitions(DASD, LAYOUT, runner, settle)

        assert len(runner.calls) == 3

    def test_auto_format_fails(self, settle):
        runner = FakeRunner({"fdasd": [1, 1]})

        with pytest.raises(ToolInvocationError, match="auto-formatting"):
            make_partitions(DASD, LAYOUT, runner, settle)

        assert len(runner.calls) == 2
