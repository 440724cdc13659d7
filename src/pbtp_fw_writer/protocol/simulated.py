"""
In-memory touchpad used for dry runs (--simulate) and tests.

Models just enough of the controller to replay the programming protocol:
a flash array for the firmware, the 8-byte identity region, and the cursor
state set up by the read/write setup commands. Every frame sent and every
report requested is recorded.
"""

import logging
from typing import List, Optional

from .frames import (
    BLOCK_SIZE,
    CMD_ERASE,
    CMD_READ_SETUP,
    CMD_WRITE,
    CMD_WRITE_SETUP,
    FILL_END_PROGRAMMING,
    FILL_ERASE_FIRMWARE,
    FIRMWARE_SIZE,
    HEADER_SIZE,
    IDENTITY_REGION,
    REPORT_ID_COMMAND,
    REPORT_ID_DATA,
    pack_u16_be,
    u16_be,
)
from .hid_transport import DeviceNotFoundError, TouchpadTransportError
from .identity import SENSOR_DIRECTION, DeviceIdentity

logger = logging.getLogger(__name__)

IDENTITY_CHUNK = 4


class SimulatedTouchpad:
    """
    Loopback touchpad.

    Blocks written after a write setup land in ``flash`` starting at
    offset 0; blocks read after a read setup come from ``flash`` in the
    same order.

    Example:
        device = SimulatedTouchpad(DeviceIdentity(0x258A, 0x000C, 0x1234))
        with device:
            BlockWriter(device, 8).write(image)
    """

    def __init__(
        self,
        identity: Optional[DeviceIdentity] = None,
        firmware: Optional[bytes] = None,
        present: bool = True,
    ):
        identity = identity or DeviceIdentity(0x258A, 0x000C, 0x0001)
        self.flash = bytearray(firmware if firmware is not None else b"\xFF" * FIRMWARE_SIZE)
        self.identity_region = bytearray(
            pack_u16_be(identity.vendor_id)
            + pack_u16_be(identity.product_id)
            + bytes([SENSOR_DIRECTION, 0x00])
            + pack_u16_be(identity.serial)
        )
        self.present = present
        self.is_open = False
        self.open_count = 0
        self.close_count = 0
        self.finalized = False
        self.sent_frames: List[bytes] = []
        self.requests: List[bytes] = []
        self._mode: Optional[str] = None
        self._cursor = 0

    # Transport interface

    def open(self) -> None:
        if not self.present:
            raise DeviceNotFoundError("Simulated touchpad not present")
        self.is_open = True
        self.open_count += 1
        logger.debug("Simulated touchpad opened")

    def close(self) -> None:
        if self.is_open:
            self.close_count += 1
        self.is_open = False

    def __enter__(self) -> "SimulatedTouchpad":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def send_feature_report(self, frame: bytes) -> int:
        if not self.is_open:
            raise TouchpadTransportError("Device not open")
        frame = bytes(frame)
        self.sent_frames.append(frame)

        if frame[0] == REPORT_ID_DATA:
            self._handle_data(frame)
        elif frame[0] == REPORT_ID_COMMAND:
            self._handle_command(frame)
        else:
            logger.debug(f"Ignoring report id 0x{frame[0]:02X}")
        return len(frame)

    def get_feature_report(self, request: bytes) -> bytes:
        if not self.is_open:
            raise TouchpadTransportError("Device not open")
        request = bytes(request)
        self.requests.append(request)

        reply = bytearray(len(request))
        reply[0] = request[0]
        reply[1] = request[1]
        if self._mode == "read" and request[0] == REPORT_ID_DATA:
            chunk = self.flash[self._cursor:self._cursor + BLOCK_SIZE]
            reply[HEADER_SIZE:HEADER_SIZE + len(chunk)] = chunk
            self._cursor += BLOCK_SIZE
        elif self._mode == "identity_read" and request[0] == REPORT_ID_COMMAND:
            chunk = self.identity_region[self._cursor:self._cursor + IDENTITY_CHUNK]
            reply[HEADER_SIZE:HEADER_SIZE + len(chunk)] = chunk
            self._cursor += IDENTITY_CHUNK
        return bytes(reply)

    # Device model

    def _handle_data(self, frame: bytes) -> None:
        if self._mode != "write" or frame[1] != CMD_WRITE:
            return
        payload = frame[HEADER_SIZE:]
        end = min(self._cursor + len(payload), len(self.flash))
        self.flash[self._cursor:end] = payload[:end - self._cursor]
        self._cursor += len(payload)

    def _handle_command(self, frame: bytes) -> None:
        body = frame[1:]
        if body and all(b == FILL_ERASE_FIRMWARE for b in body):
            self.flash[:] = b"\xFF" * len(self.flash)
            self._mode = None
            return
        if body and all(b == FILL_END_PROGRAMMING for b in body):
            self.finalized = True
            self._mode = None
            return

        opcode = frame[1]
        identity = frame[2:6] == IDENTITY_REGION
        if opcode == CMD_WRITE_SETUP:
            self._mode = "identity_write" if identity else "write"
            self._cursor = 0
        elif opcode == CMD_READ_SETUP:
            self._mode = "identity_read" if identity else "read"
            self._cursor = 0
        elif opcode == CMD_ERASE:
            self.identity_region[:] = b"\xFF" * len(self.identity_region)
        elif opcode == CMD_WRITE and self._mode == "identity_write":
            chunk = frame[HEADER_SIZE:HEADER_SIZE + IDENTITY_CHUNK]
            self.identity_region[self._cursor:self._cursor + IDENTITY_CHUNK] = chunk
            self._cursor += IDENTITY_CHUNK

    # Inspection helpers

    @property
    def identity(self) -> DeviceIdentity:
        region = self.identity_region
        return DeviceIdentity(
            vendor_id=u16_be(region[0], region[1]),
            product_id=u16_be(region[2], region[3]),
            serial=u16_be(region[6], region[7]),
        )

    def frames_with(self, report_id: int, opcode: int) -> List[bytes]:
        """Sent frames matching a report id and opcode."""
        return [f for f in self.sent_frames if f[0] == report_id and f[1] == opcode]
