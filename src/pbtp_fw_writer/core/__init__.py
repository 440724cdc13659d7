"""
Core module for the touchpad firmware writer.

This module provides the single source of truth for:
- Run configuration (config.py)
- Operator input parsing (parsing.py)
- Result objects (results.py)
- Bounded retry (retry.py)
- Firmware image file I/O (image.py)
- Read and write orchestration (actions.py)

The CLI calls into this module rather than driving the protocol itself.
"""

from .config import FlasherConfig, ConfigurationError
from .parsing import Mode, parse_request_size, resolve_mode
from .results import OperationResult
from .retry import retry, RetriesExhaustedError, VerificationMismatchError
from .image import FirmwareImageError, load_firmware_image, save_firmware_image
from .actions import (
    WriteStage,
    ReadStage,
    write_firmware,
    read_firmware,
    verify_firmware,
)

__all__ = [
    # Config
    "FlasherConfig",
    "ConfigurationError",
    # Parsing
    "Mode",
    "parse_request_size",
    "resolve_mode",
    # Results
    "OperationResult",
    # Retry
    "retry",
    "RetriesExhaustedError",
    "VerificationMismatchError",
    # Image
    "FirmwareImageError",
    "load_firmware_image",
    "save_firmware_image",
    # Actions
    "WriteStage",
    "ReadStage",
    "write_firmware",
    "read_firmware",
    "verify_firmware",
]
