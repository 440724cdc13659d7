"""
Pinebook touchpad firmware writer

Reads, writes and verifies the firmware of the 258a:000c touchpad
controller over HID feature reports.
"""

__version__ = "0.1.0"

from pbtp_fw_writer.protocol import HidTransport, SimulatedTouchpad
from pbtp_fw_writer.core import FlasherConfig, read_firmware, write_firmware

__all__ = [
    "HidTransport",
    "SimulatedTouchpad",
    "FlasherConfig",
    "read_firmware",
    "write_firmware",
    "__version__",
]
