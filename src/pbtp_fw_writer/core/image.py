"""
Firmware image file I/O.

Images are raw, headerless blobs of exactly FIRMWARE_SIZE bytes. Nothing
here pads or truncates: a file of the wrong length is an error.
"""

import hashlib
import logging
from pathlib import Path
from typing import BinaryIO, Union

from pbtp_fw_writer.protocol.frames import FIRMWARE_SIZE

logger = logging.getLogger(__name__)

FILE_CHUNK_SIZE = 1024


class FirmwareImageError(Exception):
    """Firmware file has the wrong length or could not be written fully."""


def load_firmware_image(path: Union[str, Path], length: int = FIRMWARE_SIZE) -> bytes:
    """
    Read a firmware image of exactly ``length`` bytes.

    Raises:
        FirmwareImageError: If the file cannot be read or its size differs
    """
    path = Path(path)
    try:
        with open(path, "rb") as f:
            data = f.read(length + 1)
    except OSError as e:
        raise FirmwareImageError(f"Failed to open {path} for read: {e}")

    if len(data) < length:
        raise FirmwareImageError(f"Short firmware: {len(data)} bytes (expected {length})")
    if len(data) > length:
        raise FirmwareImageError(f"Firmware file {path} is larger than {length} bytes")

    logger.debug(f"Loaded {len(data)} bytes from {path}")
    return data


def save_firmware_image(out: BinaryIO, data: bytes, chunk_size: int = FILE_CHUNK_SIZE) -> int:
    """
    Write ``data`` to an open binary file in sequential chunks.

    Returns:
        Total bytes written

    Raises:
        FirmwareImageError: If the file accepted fewer bytes than ``data``
    """
    written = 0
    while written < len(data):
        try:
            count = out.write(data[written:written + chunk_size])
        except OSError as e:
            raise FirmwareImageError(f"Failed to write file, data left: {len(data) - written}: {e}")
        if not count:
            break
        written += count

    if written != len(data):
        raise FirmwareImageError(f"Failed to write file, data left: {len(data) - written}")
    out.flush()
    return written


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()
