"""
Core workflow actions for the touchpad firmware writer.

write_firmware and read_firmware are the two orchestrators. They own the
device handle, the retry policy and the conversion of layer errors into an
OperationResult. The CLI only prints what they return.
"""

import logging
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from pbtp_fw_writer.protocol.blocks import BlockReader, BlockWriter
from pbtp_fw_writer.protocol.frames import build_end_programming_frame, build_erase_frame
from pbtp_fw_writer.protocol.hid_transport import (
    FeatureReportTransport,
    HidTransport,
    TouchpadTransportError,
    send_exact,
)
from pbtp_fw_writer.protocol.identity import IdentityProgrammer

from .config import FlasherConfig
from .image import FirmwareImageError, load_firmware_image, save_firmware_image, sha256_hex
from .results import OperationResult
from .retry import RetriesExhaustedError, VerificationMismatchError, retry

logger = logging.getLogger(__name__)

TransportFactory = Callable[[FlasherConfig], FeatureReportTransport]

RUN_ERRORS = (FirmwareImageError, TouchpadTransportError, RetriesExhaustedError)


class WriteStage(str, Enum):
    LOAD_IMAGE = "load_image"
    OPEN_DEVICE = "open_device"
    ERASE = "erase"
    WRITE = "write"
    VERIFY = "verify"
    PROGRAM_IDENTITY = "program_identity"
    FINALIZE = "finalize"
    CLOSED = "closed"


class ReadStage(str, Enum):
    OPEN_FILE = "open_file"
    OPEN_DEVICE = "open_device"
    READ = "read"
    SAVE = "save"
    CLOSED = "closed"


class _ListLogHandler(logging.Handler):
    """Capture log records into a list of formatted strings."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.records = []
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(self.format(record))


@contextmanager
def _capture_logs(logger_name: str = "pbtp_fw_writer"):
    """Capture logs for core operations into a list."""
    target_logger = logging.getLogger(logger_name)
    handler = _ListLogHandler()
    previous_level = target_logger.level
    if previous_level in (logging.NOTSET, logging.WARNING, logging.ERROR, logging.CRITICAL):
        target_logger.setLevel(logging.INFO)
    target_logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        target_logger.removeHandler(handler)
        target_logger.setLevel(previous_level)


def hid_transport_factory(config: FlasherConfig) -> FeatureReportTransport:
    """Default factory: a real hidapi transport for the configured VID/PID."""
    return HidTransport(config.vendor_id, config.product_id)


def _device_label(config: FlasherConfig) -> str:
    return f"{config.vendor_id:04x}:{config.product_id:04x}"


def verify_firmware(reader: BlockReader, expected: bytes) -> bytes:
    """
    Read the firmware back and compare it byte for byte.

    Raises:
        VerificationMismatchError: On the first differing byte
        ShortTransferError: If the readback itself fails
    """
    actual = reader.read(len(expected))
    if actual != expected:
        offset = next(i for i, (a, b) in enumerate(zip(expected, actual)) if a != b)
        raise VerificationMismatchError(offset, expected[offset], actual[offset])
    return actual


def write_firmware(
    config: FlasherConfig,
    image_path: Union[str, Path],
    transport_factory: Optional[TransportFactory] = None,
) -> OperationResult:
    """
    Program a firmware image into the touchpad.

    Sequence: load image, open device, erase, write (retried), verify
    (retried), rewrite identity, end programming, close.

    Args:
        config: Validated run configuration
        image_path: Raw firmware image of config.image_size bytes
        transport_factory: Builds the transport; defaults to hidapi

    Returns:
        OperationResult with:
            - ok: True if every stage completed
            - stage: "closed" on success, the failing stage otherwise
            - hashes["sha256"]: hash of the image
            - metadata["write_attempts"], metadata["verify_attempts"]
            - metadata["identity"]: recovered VID/PID/serial
    """
    factory = transport_factory or hid_transport_factory
    attempts = {"write": 0, "verify": 0}

    def _count(phase: str) -> Callable[[int], None]:
        def _on_attempt(n: int) -> None:
            attempts[phase] = n
            logger.info(f"{phase.capitalize()} attempt {n}/{config.attempts}")
        return _on_attempt

    with _capture_logs() as logs:
        result = OperationResult(ok=False, operation="write_firmware", device=_device_label(config))
        result.logs = logs
        stage = WriteStage.LOAD_IMAGE

        try:
            image = load_firmware_image(image_path, config.image_size)
            result.bytes_len = len(image)
            result.hashes["sha256"] = sha256_hex(image)

            stage = WriteStage.OPEN_DEVICE
            transport = factory(config)
            with transport:
                logger.info(f"Opened touchpad {result.device}")

                stage = WriteStage.ERASE
                send_exact(transport, build_erase_frame(config.request_size), "erase command")
                logger.info("Firmware pages erased")

                stage = WriteStage.WRITE
                writer = BlockWriter(transport, config.request_size, config.block_settle_s)
                retry(
                    lambda: writer.write(image),
                    config.attempts,
                    "Firmware write",
                    on_attempt=_count("write"),
                )

                stage = WriteStage.VERIFY
                reader = BlockReader(transport, config.request_size, config.block_settle_s)
                retry(
                    lambda: verify_firmware(reader, image),
                    config.attempts,
                    "Firmware comparison",
                    on_attempt=_count("verify"),
                )
                logger.info("Firmware verified")

                stage = WriteStage.PROGRAM_IDENTITY
                identity = IdentityProgrammer(
                    transport,
                    config.request_size,
                    erase_settle=config.identity_erase_settle_s,
                    sensor_direction=config.sensor_direction,
                ).program()
                result.metadata["identity"] = identity.to_dict()

                stage = WriteStage.FINALIZE
                send_exact(
                    transport,
                    build_end_programming_frame(config.request_size),
                    "end programming",
                )

            stage = WriteStage.CLOSED
            result.ok = True
            logger.info("Firmware write complete")

        except RUN_ERRORS as e:
            logger.error(f"Write failed during {stage.value}: {e}")
            result.add_error(str(e))

        result.stage = stage.value
        result.metadata["write_attempts"] = attempts["write"]
        result.metadata["verify_attempts"] = attempts["verify"]
        for phase, count in attempts.items():
            if count > 1:
                result.add_warning(f"{phase} needed {count} attempts")
        return result


def read_firmware(
    config: FlasherConfig,
    output_path: Union[str, Path],
    transport_factory: Optional[TransportFactory] = None,
) -> OperationResult:
    """
    Dump the touchpad firmware to a file.

    The output file is opened before the device so an unwritable path fails
    without touching hardware.

    Returns:
        OperationResult with:
            - ok: True if the full image was read and saved
            - bytes_len: bytes written to the file
            - hashes["sha256"]: hash of the dump
            - metadata["output"]: output path
    """
    factory = transport_factory or hid_transport_factory
    output_path = Path(output_path)

    with _capture_logs() as logs:
        result = OperationResult(ok=False, operation="read_firmware", device=_device_label(config))
        result.logs = logs
        result.metadata["output"] = str(output_path)
        stage = ReadStage.OPEN_FILE

        try:
            try:
                out = open(output_path, "wb")
            except OSError as e:
                raise FirmwareImageError(f"Failed to open {output_path} for write: {e}")

            with out:
                stage = ReadStage.OPEN_DEVICE
                transport = factory(config)
                with transport:
                    logger.info(f"Opened touchpad {result.device}")

                    stage = ReadStage.READ
                    reader = BlockReader(transport, config.request_size, config.block_settle_s)
                    data = reader.read(config.image_size)

                    stage = ReadStage.SAVE
                    result.bytes_len = save_firmware_image(out, data)
                    result.hashes["sha256"] = sha256_hex(data)

            stage = ReadStage.CLOSED
            result.ok = True
            logger.info(f"Saved {result.bytes_len} bytes to {output_path}")

        except RUN_ERRORS as e:
            logger.error(f"Read failed during {stage.value}: {e}")
            result.add_error(str(e))

        result.stage = stage.value
        return result
