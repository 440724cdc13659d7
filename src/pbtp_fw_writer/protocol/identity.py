"""
Identity region re-provisioning.

After a firmware write the touchpad's identity region (VID, PID, serial)
has to be erased and written again. The triple is read back from the
device first and written unchanged.

Identity region layout (8 bytes at 0xFF80):
    [ vid_hi | vid_lo | pid_hi | pid_lo | sensor_dir | 0x00 | ser_hi | ser_lo ]
"""

import logging
import time
from dataclasses import dataclass

from .frames import (
    CMD_ERASE,
    CMD_READ,
    CMD_READ_SETUP,
    CMD_WRITE,
    CMD_WRITE_SETUP,
    IDENTITY_ERASE,
    IDENTITY_REGION,
    build_command,
    pack_u16_be,
    u16_be,
)
from .hid_transport import FeatureReportTransport, request_exact, send_exact

logger = logging.getLogger(__name__)

DEFAULT_ERASE_SETTLE = 0.2
SENSOR_DIRECTION = 1


@dataclass(frozen=True)
class DeviceIdentity:
    """USB identity stored in the touchpad flash."""
    vendor_id: int
    product_id: int
    serial: int

    def __str__(self) -> str:
        return f"VID: {self.vendor_id:04x} PID: {self.product_id:04x} Serial: {self.serial:04x}"

    def to_dict(self) -> dict:
        return {
            "vendor_id": f"0x{self.vendor_id:04X}",
            "product_id": f"0x{self.product_id:04X}",
            "serial": f"0x{self.serial:04X}",
        }


class IdentityProgrammer:
    """
    Reads the identity triple and rewrites it into a freshly erased region.

    Example:
        identity = IdentityProgrammer(transport, request_size=8).program()
    """

    def __init__(
        self,
        transport: FeatureReportTransport,
        request_size: int,
        erase_settle: float = DEFAULT_ERASE_SETTLE,
        sensor_direction: int = SENSOR_DIRECTION,
    ):
        self.transport = transport
        self.request_size = request_size
        self.erase_settle = erase_settle
        self.sensor_direction = sensor_direction

    def _command(self, opcode: int, payload: bytes) -> bytes:
        return build_command(opcode, payload, self.request_size)

    def read_identity(self) -> DeviceIdentity:
        """
        Read VID, PID and serial from the identity region.

        Raises:
            ShortTransferError: On any transfer length mismatch
        """
        send_exact(
            self.transport,
            self._command(CMD_READ_SETUP, IDENTITY_REGION),
            "identity read setup",
        )

        request = self._command(CMD_READ, b"")
        reply = request_exact(self.transport, request, "read VID and PID")
        vid = u16_be(reply[2], reply[3])
        pid = u16_be(reply[4], reply[5])

        reply = request_exact(self.transport, request, "read serial number")
        serial = u16_be(reply[4], reply[5])

        return DeviceIdentity(vendor_id=vid, product_id=pid, serial=serial)

    def write_identity(self, identity: DeviceIdentity) -> None:
        """
        Erase the identity region and write ``identity`` into it.

        Raises:
            ShortTransferError: On any transfer length mismatch
        """
        send_exact(self.transport, self._command(CMD_ERASE, IDENTITY_ERASE), "identity erase")
        time.sleep(self.erase_settle)

        send_exact(
            self.transport,
            self._command(CMD_WRITE_SETUP, IDENTITY_REGION),
            "identity write setup",
        )
        send_exact(
            self.transport,
            self._command(
                CMD_WRITE,
                pack_u16_be(identity.vendor_id) + pack_u16_be(identity.product_id),
            ),
            "write VID and PID",
        )
        send_exact(
            self.transport,
            self._command(
                CMD_WRITE,
                bytes([self.sensor_direction & 0xFF, 0x00]) + pack_u16_be(identity.serial),
            ),
            "write serial number",
        )

    def program(self) -> DeviceIdentity:
        """
        Read the identity, report it, and write it back.

        Returns:
            The identity that was rewritten
        """
        identity = self.read_identity()
        logger.info(str(identity))
        self.write_identity(identity)
        logger.debug("Identity region rewritten")
        return identity
