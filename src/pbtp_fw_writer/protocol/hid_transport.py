"""
Touchpad HID Transport Layer

Handles low-level feature report exchange with the Pinebook touchpad
controller through the hidapi binding.

This module provides:
- Device enumeration and open/close by vendor/product ID
- Feature report send/receive with exact length checking
- The transport exception hierarchy shared by the protocol layer
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

try:
    import hid
except ImportError:
    raise ImportError("hidapi required: pip install hidapi")

logger = logging.getLogger(__name__)

DEFAULT_VENDOR_ID = 0x258A
DEFAULT_PRODUCT_ID = 0x000C


class TouchpadTransportError(Exception):
    """Base exception for transport layer errors"""
    pass


class DeviceNotFoundError(TouchpadTransportError):
    """Touchpad could not be found or opened"""
    pass


class ShortTransferError(TouchpadTransportError):
    """
    A feature report transfer moved fewer (or more) bytes than the frame.

    Attributes:
        what: Description of the exchange that failed
        expected: Frame length that should have been transferred
        actual: Byte count reported by the transport
    """

    def __init__(self, what: str, expected: int, actual: int):
        self.what = what
        self.expected = expected
        self.actual = actual
        super().__init__(f"{what}: transferred {actual}/{expected} bytes")


def _hex_preview(data: bytes, limit: int = 32) -> str:
    return data[:limit].hex().upper() + ("..." if len(data) > limit else "")


class HidTransport:
    """
    Feature report transport for the touchpad controller.

    Only one handle is open at a time. The transport is a context manager,
    so orchestrators can guarantee release on every exit path.

    Example:
        with HidTransport(0x258A, 0x000C) as transport:
            transport.send_feature_report(frame)
            reply = transport.get_feature_report(request)
    """

    def __init__(
        self,
        vendor_id: int = DEFAULT_VENDOR_ID,
        product_id: int = DEFAULT_PRODUCT_ID,
    ):
        """
        Initialize transport layer.

        Args:
            vendor_id: USB vendor ID of the touchpad
            product_id: USB product ID of the touchpad
        """
        self.vendor_id = vendor_id
        self.product_id = product_id
        self.dev: Optional[Any] = None

    def open(self) -> None:
        """
        Open the HID device in blocking mode.

        Raises:
            DeviceNotFoundError: If the device cannot be opened
        """
        if self.dev is not None:
            return
        dev = hid.device()
        try:
            dev.open(self.vendor_id, self.product_id)
            dev.set_nonblocking(0)
        except (OSError, ValueError) as e:
            raise DeviceNotFoundError(
                f"Cannot open device {self.vendor_id:04x}:{self.product_id:04x}: {e}"
            )
        self.dev = dev
        logger.debug(f"Opened {self.vendor_id:04x}:{self.product_id:04x}")

    def close(self) -> None:
        """Close the HID handle."""
        if self.dev is not None:
            self.dev.close()
            self.dev = None
            logger.debug(f"Closed {self.vendor_id:04x}:{self.product_id:04x}")

    def __enter__(self) -> "HidTransport":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def send_feature_report(self, frame: bytes) -> int:
        """
        Send a feature report.

        Args:
            frame: Complete frame, report id first

        Returns:
            Number of bytes the device accepted

        Raises:
            TouchpadTransportError: If the device is not open or the write fails
        """
        if self.dev is None:
            raise TouchpadTransportError("Device not open")

        try:
            sent = self.dev.send_feature_report(bytes(frame))
        except (OSError, ValueError) as e:
            raise TouchpadTransportError(f"Feature report write error: {e}")
        logger.debug(f">>> {_hex_preview(bytes(frame))}")
        return sent

    def get_feature_report(self, request: bytes) -> bytes:
        """
        Request a feature report.

        hidapi only forwards the report id, so ``request[0]`` selects the
        report and ``len(request)`` is the buffer length. The remaining
        request bytes are kept for logging.

        Args:
            request: Request frame (report id and header)

        Returns:
            Bytes received, report id first

        Raises:
            TouchpadTransportError: If the device is not open or the read fails
        """
        if self.dev is None:
            raise TouchpadTransportError("Device not open")

        try:
            data = self.dev.get_feature_report(request[0], len(request))
        except (OSError, ValueError) as e:
            raise TouchpadTransportError(f"Feature report read error: {e}")
        reply = bytes(data)
        logger.debug(f"<<< {_hex_preview(reply)}")
        return reply


class FeatureReportTransport(Protocol):
    """Interface shared by HidTransport and SimulatedTouchpad."""

    def open(self) -> None: ...
    def close(self) -> None: ...
    def send_feature_report(self, frame: bytes) -> int: ...
    def get_feature_report(self, request: bytes) -> bytes: ...
    def __enter__(self) -> "FeatureReportTransport": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...


def send_exact(transport: FeatureReportTransport, frame: bytes, what: str) -> None:
    """
    Send a frame and require the full length to be accepted.

    Raises:
        ShortTransferError: If the accepted count differs from len(frame)
    """
    sent = transport.send_feature_report(frame)
    if sent != len(frame):
        raise ShortTransferError(what, len(frame), sent)


def request_exact(transport: FeatureReportTransport, request: bytes, what: str) -> bytes:
    """
    Request a feature report and require exactly len(request) bytes back.

    Raises:
        ShortTransferError: If the reply length differs from len(request)
    """
    reply = transport.get_feature_report(request)
    if len(reply) != len(request):
        raise ShortTransferError(what, len(request), len(reply))
    return reply


def list_devices(
    vendor_id: int = DEFAULT_VENDOR_ID,
    product_id: int = DEFAULT_PRODUCT_ID,
) -> List[Dict[str, Any]]:
    """
    Enumerate attached HID interfaces matching vendor/product ID.

    Returns:
        hidapi device-info dicts (path, interface_number, product_string, ...)
    """
    devices = hid.enumerate(vendor_id, product_id)
    for d in devices:
        logger.debug(f"Found {vendor_id:04X}:{product_id:04X} at {d.get('path')}")
    return devices
