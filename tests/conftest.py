"""Shared fixtures: sleep recording and failure-injecting touchpads."""

import time

import pytest

from pbtp_fw_writer.protocol.frames import (
    CMD_READ_SETUP,
    FIRMWARE_SIZE,
    IDENTITY_REGION,
    REPORT_ID_COMMAND,
    REPORT_ID_DATA,
)
from pbtp_fw_writer.protocol.simulated import SimulatedTouchpad


@pytest.fixture(autouse=True)
def sleeps(monkeypatch):
    """Record settle delays instead of sleeping."""
    calls = []
    monkeypatch.setattr(time, "sleep", calls.append)
    return calls


class FlakyTouchpad(SimulatedTouchpad):
    """
    Simulated touchpad with injectable failures.

    short_data_sends: next N data-frame sends report one byte short
    short_reads: next N data-block replies come back one byte short
    corrupt_verifies: next N firmware readbacks have block 0 corrupted
    short_command: command frames whose byte 1 equals this value report one
        byte short (opcode or fill marker)
    """

    def __init__(
        self,
        *args,
        short_data_sends=0,
        short_reads=0,
        corrupt_verifies=0,
        short_command=None,
        **kwargs
    ):
        super().__init__(*args, **kwargs)
        self.short_command = short_command
        self.short_data_sends = short_data_sends
        self.short_reads = short_reads
        self.corrupt_verifies = corrupt_verifies
        self._corrupting = False

    def send_feature_report(self, frame):
        sent = super().send_feature_report(frame)
        if is_firmware_read_setup(frame):
            self._corrupting = self.corrupt_verifies > 0
            if self._corrupting:
                self.corrupt_verifies -= 1
        if frame[0] == REPORT_ID_DATA and self.short_data_sends:
            self.short_data_sends -= 1
            return sent - 1
        if frame[0] == REPORT_ID_COMMAND and frame[1] == self.short_command:
            return sent - 1
        return sent

    def get_feature_report(self, request):
        reply = super().get_feature_report(request)
        if request[0] != REPORT_ID_DATA:
            return reply
        if self.short_reads:
            self.short_reads -= 1
            return reply[:-1]
        if self._corrupting:
            self._corrupting = False
            corrupted = bytearray(reply)
            corrupted[2] ^= 0xFF
            return bytes(corrupted)
        return reply


def is_firmware_read_setup(frame):
    return (
        frame[0] == REPORT_ID_COMMAND
        and frame[1] == CMD_READ_SETUP
        and frame[2:6] != IDENTITY_REGION
    )


def firmware_setups(device, opcode):
    """Firmware (non-identity) setup frames sent with ``opcode``."""
    return [
        f for f in device.frames_with(REPORT_ID_COMMAND, opcode)
        if f[2:6] != IDENTITY_REGION
    ]


@pytest.fixture
def pattern_image():
    """14336-byte image with a non-zero first byte."""
    return bytes((i * 7 + 3) & 0xFF for i in range(FIRMWARE_SIZE))


@pytest.fixture
def image_file(tmp_path, pattern_image):
    path = tmp_path / "firmware.bin"
    path.write_bytes(pattern_image)
    return path
