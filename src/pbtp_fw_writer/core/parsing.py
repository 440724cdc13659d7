"""
Centralized parsing helpers for operator input.

The CLI wraps these and converts ConfigurationError into its own exit path.
"""

from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from .config import ConfigurationError


class Mode(str, Enum):
    """What a run does with the firmware file."""
    READ = "read"
    WRITE = "write"


def parse_request_size(value: Optional[str]) -> int:
    """
    Parse the feature request size.

    Accepts the same spellings as C ``strtol(value, NULL, 0)``:
        - Decimal: "8"
        - Hex with 0x prefix: "0x08" or "0X08"
        - Octal with leading zero: "010"

    Returns:
        The parsed positive size.

    Raises:
        ConfigurationError: If the value is missing, malformed, or not positive.
    """
    if value is None or not str(value).strip():
        raise ConfigurationError("Request size is not specified!")

    text = str(value).strip()
    digits = text.lstrip("+-")
    try:
        if digits.lower().startswith("0x"):
            size = int(text, 16)
        elif len(digits) > 1 and digits.startswith("0"):
            size = int(text, 8)
        else:
            size = int(text, 10)
    except ValueError:
        raise ConfigurationError(
            f"Invalid request size: {value}. Use decimal (8), hex (0x08) or octal (010)."
        )

    if size <= 0:
        raise ConfigurationError(f"Request size must be positive, got {size}")
    return size


def resolve_mode(read_path: Optional[str], write_path: Optional[str]) -> Tuple[Mode, Path]:
    """
    Pick the run mode from the read/write file options.

    Returns:
        Tuple of (mode, firmware file path)

    Raises:
        ConfigurationError: If both or neither are given
    """
    if read_path and write_path:
        raise ConfigurationError("Read and write are mutually exclusive!")
    if read_path:
        return Mode.READ, Path(read_path)
    if write_path:
        return Mode.WRITE, Path(write_path)
    raise ConfigurationError("Neither read or write are specified!")
