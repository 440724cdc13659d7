"""
Run configuration for touchpad programming.

A FlasherConfig is built once from the operator's options and passed into
the orchestrators. It is immutable and validated on construction, so no
device is touched with an unusable request size.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict

from pbtp_fw_writer.protocol.frames import (
    BLOCK_SIZE,
    FIRMWARE_SIZE,
    MAX_REQUEST_SIZE,
    MIN_REQUEST_SIZE,
)
from pbtp_fw_writer.protocol.hid_transport import DEFAULT_PRODUCT_ID, DEFAULT_VENDOR_ID

DEFAULT_RETRIES = 5


class ConfigurationError(ValueError):
    """Invalid or missing operator configuration, raised before device access."""


@dataclass(frozen=True)
class FlasherConfig:
    """
    Immutable settings for one programming run.

    Attributes:
        request_size: Length of every command frame (operator supplied)
        vendor_id: USB vendor ID used to open the touchpad
        product_id: USB product ID used to open the touchpad
        retries: Additional attempts for the write and verify phases
        image_size: Exact firmware image length
        block_settle_s: Delay after every block exchange
        identity_erase_settle_s: Delay after the identity region erase
        sensor_direction: Orientation flag written with the serial number
    """
    request_size: int
    vendor_id: int = DEFAULT_VENDOR_ID
    product_id: int = DEFAULT_PRODUCT_ID
    retries: int = DEFAULT_RETRIES
    image_size: int = FIRMWARE_SIZE
    block_settle_s: float = 0.01
    identity_erase_settle_s: float = 0.2
    sensor_direction: int = 1

    def __post_init__(self) -> None:
        if isinstance(self.request_size, bool) or not isinstance(self.request_size, int):
            raise ConfigurationError(f"Request size must be an integer, got {self.request_size!r}")
        if self.request_size <= 0:
            raise ConfigurationError(f"Request size must be positive, got {self.request_size}")
        if self.request_size < MIN_REQUEST_SIZE:
            raise ConfigurationError(
                f"Request size {self.request_size} is too small; "
                f"command frames need at least {MIN_REQUEST_SIZE} bytes"
            )
        if self.request_size > MAX_REQUEST_SIZE:
            raise ConfigurationError(
                f"Request size {self.request_size} is too large; "
                f"feature reports are limited to {MAX_REQUEST_SIZE} bytes"
            )
        if self.retries < 0:
            raise ConfigurationError(f"Retries must be >= 0, got {self.retries}")
        if self.image_size <= 0 or self.image_size % BLOCK_SIZE:
            raise ConfigurationError(
                f"Image size {self.image_size} is not a multiple of {BLOCK_SIZE}"
            )
        if self.image_size > 0xFFFF:
            raise ConfigurationError(f"Image size {self.image_size} does not fit 16 bits")
        for name in ("vendor_id", "product_id"):
            value = getattr(self, name)
            if not 0 <= value <= 0xFFFF:
                raise ConfigurationError(f"{name} out of range: {value}")

    @property
    def attempts(self) -> int:
        """Total attempts per retried phase (first try plus retries)."""
        return self.retries + 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
