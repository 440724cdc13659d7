"""Tests for the read and write orchestrators."""

import pytest

from pbtp_fw_writer.core.actions import read_firmware, verify_firmware, write_firmware
from pbtp_fw_writer.core.config import FlasherConfig
from pbtp_fw_writer.core.retry import VerificationMismatchError
from pbtp_fw_writer.protocol.blocks import BlockReader
from pbtp_fw_writer.protocol.frames import (
    CMD_ERASE,
    CMD_READ_SETUP,
    CMD_WRITE_SETUP,
    FILL_END_PROGRAMMING,
    FILL_ERASE_FIRMWARE,
    FIRMWARE_SIZE,
    REPORT_ID_COMMAND,
)
from pbtp_fw_writer.protocol.identity import DeviceIdentity
from pbtp_fw_writer.protocol.simulated import SimulatedTouchpad

from conftest import FlakyTouchpad, firmware_setups


IDENTITY = DeviceIdentity(0x258A, 0x000C, 0x1234)


@pytest.fixture
def config():
    return FlasherConfig(request_size=8)


def factory_for(device, calls=None):
    def _factory(_config):
        if calls is not None:
            calls.append(_config)
        return device
    return _factory


class TestWriteFirmware:
    """End-to-end write sequence."""

    def test_success(self, config, image_file, pattern_image, sleeps):
        device = SimulatedTouchpad(IDENTITY)
        result = write_firmware(config, image_file, factory_for(device))

        assert result.ok, result.errors
        assert result.stage == "closed"
        assert result.bytes_len == FIRMWARE_SIZE
        assert result.metadata["write_attempts"] == 1
        assert result.metadata["verify_attempts"] == 1
        assert result.metadata["identity"] == IDENTITY.to_dict()
        assert result.warnings == []

        assert bytes(device.flash) == pattern_image
        assert device.identity == IDENTITY
        assert device.finalized
        assert device.open_count == 1
        assert device.close_count == 1
        assert not device.is_open

        assert device.sent_frames[0] == b"\x05" + b"\x45" * 7
        assert device.sent_frames[-1] == b"\x05" + b"\x55" * 7
        assert sleeps.count(0.2) == 1

    def test_zero_image(self, config, tmp_path):
        path = tmp_path / "zero.bin"
        path.write_bytes(bytes(FIRMWARE_SIZE))
        device = SimulatedTouchpad()

        result = write_firmware(config, path, factory_for(device))

        assert result.ok
        assert bytes(device.flash) == bytes(FIRMWARE_SIZE)
        assert device.finalized

    def test_short_image_never_opens_device(self, config, tmp_path):
        path = tmp_path / "short.bin"
        path.write_bytes(bytes(FIRMWARE_SIZE - 1))
        calls = []

        result = write_firmware(config, path, factory_for(SimulatedTouchpad(), calls))

        assert not result.ok
        assert result.stage == "load_image"
        assert "Short firmware" in result.errors[0]
        assert calls == []

    def test_long_image_rejected(self, config, tmp_path):
        path = tmp_path / "long.bin"
        path.write_bytes(bytes(FIRMWARE_SIZE + 1))
        calls = []

        result = write_firmware(config, path, factory_for(SimulatedTouchpad(), calls))

        assert not result.ok
        assert "larger" in result.errors[0]
        assert calls == []

    def test_missing_image(self, config, tmp_path):
        result = write_firmware(config, tmp_path / "nope.bin", factory_for(SimulatedTouchpad()))
        assert not result.ok
        assert result.stage == "load_image"

    def test_device_not_present(self, config, image_file):
        result = write_firmware(config, image_file, factory_for(SimulatedTouchpad(present=False)))
        assert not result.ok
        assert result.stage == "open_device"

    def test_write_recovers_within_retry_budget(self, config, image_file, pattern_image):
        device = FlakyTouchpad(short_data_sends=5)
        result = write_firmware(config, image_file, factory_for(device))

        assert result.ok, result.errors
        assert result.metadata["write_attempts"] == 6
        assert "write needed 6 attempts" in result.warnings
        assert len(firmware_setups(device, CMD_WRITE_SETUP)) == 6 * 2 - 5
        assert bytes(device.flash) == pattern_image
        assert device.finalized

    def test_write_gives_up_after_six_attempts(self, config, image_file):
        device = FlakyTouchpad(short_data_sends=100)
        result = write_firmware(config, image_file, factory_for(device))

        assert not result.ok
        assert result.stage == "write"
        assert "Firmware write failed after 6 attempts" in result.errors[0]
        assert len(firmware_setups(device, CMD_WRITE_SETUP)) == 6
        assert firmware_setups(device, CMD_READ_SETUP) == []
        assert not device.finalized
        assert not device.is_open

    def test_verify_recovers_within_retry_budget(self, config, image_file):
        device = FlakyTouchpad(corrupt_verifies=2)
        result = write_firmware(config, image_file, factory_for(device))

        assert result.ok, result.errors
        assert result.metadata["write_attempts"] == 1
        assert result.metadata["verify_attempts"] == 3
        assert len(firmware_setups(device, CMD_READ_SETUP)) == 3

    def test_verify_gives_up_after_six_attempts(self, config, image_file):
        device = FlakyTouchpad(corrupt_verifies=100)
        result = write_firmware(config, image_file, factory_for(device))

        assert not result.ok
        assert result.stage == "verify"
        assert "Firmware comparison failed after 6 attempts" in result.errors[0]
        assert len(firmware_setups(device, CMD_READ_SETUP)) == 6
        assert not device.finalized
        assert device.close_count == 1

    def test_retries_follow_config(self, image_file):
        device = FlakyTouchpad(short_data_sends=100)
        result = write_firmware(FlasherConfig(request_size=8, retries=1), image_file, factory_for(device))

        assert not result.ok
        assert len(firmware_setups(device, CMD_WRITE_SETUP)) == 2

    def test_logs_captured(self, config, image_file):
        result = write_firmware(config, image_file, factory_for(SimulatedTouchpad(IDENTITY)))
        assert any("VID: 258a PID: 000c Serial: 1234" in line for line in result.logs)

    def test_short_erase_fails_before_writing(self, config, image_file):
        device = FlakyTouchpad(short_command=FILL_ERASE_FIRMWARE)
        result = write_firmware(config, image_file, factory_for(device))

        assert not result.ok
        assert result.stage == "erase"
        assert "erase command" in result.errors[0]
        assert result.metadata["write_attempts"] == 0
        assert result.metadata["verify_attempts"] == 0
        assert len(device.sent_frames) == 1
        assert device.close_count == 1
        assert not device.is_open

    def test_short_identity_erase_is_not_retried(self, config, image_file):
        device = FlakyTouchpad(IDENTITY, short_command=CMD_ERASE)
        result = write_firmware(config, image_file, factory_for(device))

        assert not result.ok
        assert result.stage == "program_identity"
        assert "identity erase" in result.errors[0]
        assert result.metadata["write_attempts"] == 1
        assert result.metadata["verify_attempts"] == 1
        assert len(device.frames_with(REPORT_ID_COMMAND, CMD_ERASE)) == 1
        assert len(firmware_setups(device, CMD_WRITE_SETUP)) == 2
        assert "identity" not in result.metadata
        assert not device.finalized
        assert device.close_count == 1

    def test_short_end_programming_fails(self, config, image_file):
        device = FlakyTouchpad(IDENTITY, short_command=FILL_END_PROGRAMMING)
        result = write_firmware(config, image_file, factory_for(device))

        assert not result.ok
        assert result.stage == "finalize"
        assert "end programming" in result.errors[0]
        assert result.metadata["identity"] == IDENTITY.to_dict()
        assert result.metadata["write_attempts"] == 1
        assert result.metadata["verify_attempts"] == 1
        assert device.sent_frames[-1] == b"\x05" + b"\x55" * 7
        assert device.close_count == 1
        assert not device.is_open


class TestReadFirmware:
    """End-to-end read sequence."""

    def test_success(self, config, tmp_path, pattern_image):
        out = tmp_path / "dump.bin"
        device = SimulatedTouchpad(firmware=pattern_image)

        result = read_firmware(config, out, factory_for(device))

        assert result.ok, result.errors
        assert result.stage == "closed"
        assert result.bytes_len == FIRMWARE_SIZE
        assert result.metadata["output"] == str(out)
        assert out.read_bytes() == pattern_image
        assert not device.is_open
        assert not device.finalized

    def test_unwritable_output_never_opens_device(self, config, tmp_path):
        calls = []
        result = read_firmware(
            config, tmp_path / "missing" / "dump.bin", factory_for(SimulatedTouchpad(), calls)
        )

        assert not result.ok
        assert result.stage == "open_file"
        assert "for write" in result.errors[0]
        assert calls == []

    def test_short_read_fails(self, config, tmp_path):
        device = FlakyTouchpad(short_reads=1)
        result = read_firmware(config, tmp_path / "dump.bin", factory_for(device))

        assert not result.ok
        assert result.stage == "read"
        assert len(device.requests) == 1
        assert device.close_count == 1

    def test_device_not_present(self, config, tmp_path):
        result = read_firmware(
            config, tmp_path / "dump.bin", factory_for(SimulatedTouchpad(present=False))
        )
        assert not result.ok
        assert result.stage == "open_device"


def test_verify_firmware_reports_first_mismatch(pattern_image):
    flash = bytearray(pattern_image)
    flash[0x1234] ^= 0x01
    with SimulatedTouchpad(firmware=bytes(flash)) as dev:
        with pytest.raises(VerificationMismatchError) as exc_info:
            verify_firmware(BlockReader(dev, 8), pattern_image)
    assert exc_info.value.offset == 0x1234
