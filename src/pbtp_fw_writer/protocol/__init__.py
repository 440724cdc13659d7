"""Touchpad protocol layer - HID transport, framing and block transfer."""

from .hid_transport import (
    HidTransport,
    FeatureReportTransport,
    TouchpadTransportError,
    DeviceNotFoundError,
    ShortTransferError,
    list_devices,
)
from .frames import (
    BLOCK_SIZE,
    DATA_FRAME_SIZE,
    FIRMWARE_SIZE,
    MIN_REQUEST_SIZE,
    MAX_REQUEST_SIZE,
)
from .blocks import BlockWriter, BlockReader
from .identity import IdentityProgrammer, DeviceIdentity
from .simulated import SimulatedTouchpad

__all__ = [
    # Transport
    "HidTransport",
    "FeatureReportTransport",
    "TouchpadTransportError",
    "DeviceNotFoundError",
    "ShortTransferError",
    "list_devices",
    # Framing
    "BLOCK_SIZE",
    "DATA_FRAME_SIZE",
    "FIRMWARE_SIZE",
    "MIN_REQUEST_SIZE",
    "MAX_REQUEST_SIZE",
    # Programming
    "BlockWriter",
    "BlockReader",
    "IdentityProgrammer",
    "DeviceIdentity",
    "SimulatedTouchpad",
]
