"""Shared fixtures: synthetic GPT images and a recording command runner."""
import os
import random
import struct
import subprocess
import uuid
import zlib

import pytest

from dasdimage.core.copier import IMAGE_HEADER_SIZE
from dasdimage.core.gpt import ENTRY_FORMAT, HEADER_FORMAT, HEADER_SIZE
from dasdimage.utils.command import CommandRunner, SimulationMode

LINUX_FILESYSTEM = uuid.UUID("0FC63DAF-8483-4772-8E79-3D69D8477DE4")
ENTRIES_LBA = 2
ENTRY_COUNT = 128
ENTRY_SIZE = 128


def _crc32(data):
    return zlib.crc32(data) & 0xFFFFFFFF


def build_gpt_header(partitions, block_size=512):
    """
    Build the leading MiB of an image holding a GPT.

    partitions is a list of (starting_lba, ending_lba) tuples, or None for an
    empty slot, in table order.
    """
    header = bytearray(IMAGE_HEADER_SIZE)

    entries = bytearray(ENTRY_COUNT * ENTRY_SIZE)
    for i, partition in enumerate(partitions):
        if partition is None:
            continue
        start, end = partition
        name = f"part{i + 1}".encode("utf-16-le").ljust(72, b"\x00")
        struct.pack_into(ENTRY_FORMAT, entries, i * ENTRY_SIZE,
                         LINUX_FILESYSTEM.bytes_le, uuid.uuid4().bytes_le,
                         start, end, 0, name)

    entries_offset = ENTRIES_LBA * block_size
    header[entries_offset:entries_offset + len(entries)] = entries

    fields = [b"EFI PART", 0x00010000, HEADER_SIZE, 0, 0, 1, 0xFFFFF, 34, 0xFFFDE,
              uuid.uuid4().bytes_le, ENTRIES_LBA, ENTRY_COUNT, ENTRY_SIZE,
              _crc32(bytes(entries))]
    fields[3] = _crc32(struct.pack(HEADER_FORMAT, *fields))
    struct.pack_into(HEADER_FORMAT, header, block_size, *fields)
    return bytes(header)


def build_image(partitions, block_size=512, trailer=0, seed=0):
    """
    Build a complete image: GPT header, partition contents and trailing bytes.

    Partition contents and the gaps between them are pseudo-random so that
    misplaced copies show up.
    """
    header = build_gpt_header(partitions, block_size)
    used = [p for p in partitions if p is not None]
    end = max([(p[1] + 1) * block_size for p in used] + [IMAGE_HEADER_SIZE])
    rng = random.Random(seed)
    body = bytes(rng.getrandbits(8) for _ in range(end + trailer - IMAGE_HEADER_SIZE))
    return header + body


class FakeRunner(CommandRunner):
    """
    CommandRunner that never starts processes.

    responses maps a tool name to a list of results consumed in order: a
    string is returned as stdout, an int is a failing exit status and an
    exception instance is raised. Tools without a queued response succeed
    with empty output.
    """
    def __init__(self, responses=None):
        super().__init__(SimulationMode.DISABLED, colored_output=False)
        self.responses = responses or {}
        self.calls = []

    def run(self, cmd, check=True, **kwargs):
        self.calls.append({"command": list(cmd), "input": kwargs.get("input"), "kwargs": kwargs})
        queue = self.responses.get(os.path.basename(cmd[0]), [])
        response = queue.pop(0) if queue else ""
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, int):
            if check:
                raise subprocess.CalledProcessError(response, cmd)
            return subprocess.CompletedProcess(cmd, response, stdout="")
        return subprocess.CompletedProcess(cmd, 0, stdout=response)

    def commands(self, tool=None):
        return [c["command"] for c in self.calls if tool is None or c["command"][0] == tool]


class SettleCounter:
    def __init__(self):
        self.count = 0

    def __call__(self):
        self.count += 1


@pytest.fixture
def settle():
    return SettleCounter()


@pytest.fixture
def sysfs(tmp_path, monkeypatch):
    """Point CCW status lookups at a temporary directory. Returns a writer."""
    monkeypatch.setattr("dasdimage.core.disk.SYSFS_CCW_DEVICES", str(tmp_path))

    def write_status(bus_id, status):
        device_dir = tmp_path / bus_id
        device_dir.mkdir(exist_ok=True)
        (device_dir / "status").write_text(status)

    return write_status
