"""
Bounded retry for unreliable hardware phases.

Write and verify share this helper, so the retry count lives in one place
(FlasherConfig.retries) and each phase gets its own budget.
"""

import logging
from typing import Callable, Optional, Tuple, Type, TypeVar

from pbtp_fw_writer.protocol.hid_transport import TouchpadTransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class VerificationMismatchError(Exception):
    """
    Firmware read back from the device differs from what was written.

    Attributes:
        offset: First differing byte offset
    """

    def __init__(self, offset: int, expected: int, actual: int):
        self.offset = offset
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Firmware read from device differs from written at 0x{offset:04X} "
            f"(expected 0x{expected:02X}, got 0x{actual:02X})"
        )


class RetriesExhaustedError(Exception):
    """
    Every attempt of a retried phase failed.

    Attributes:
        label: Phase name
        attempts: Number of attempts made
        last_error: Exception raised by the final attempt
    """

    def __init__(self, label: str, attempts: int, last_error: BaseException):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{label} failed after {attempts} attempts: {last_error}")


RETRYABLE: Tuple[Type[BaseException], ...] = (TouchpadTransportError, VerificationMismatchError)


def retry(
    operation: Callable[[], T],
    attempts: int,
    label: str,
    retry_on: Tuple[Type[BaseException], ...] = RETRYABLE,
    on_attempt: Optional[Callable[[int], None]] = None,
) -> T:
    """
    Run ``operation`` up to ``attempts`` times, returning the first success.

    Only exceptions in ``retry_on`` are retried; anything else propagates
    immediately.

    Args:
        operation: Zero-argument callable
        attempts: Total attempts (>= 1)
        label: Phase name used in log lines and the final error
        retry_on: Exception types that trigger another attempt
        on_attempt: Called with the 1-based attempt number before each try

    Returns:
        Whatever ``operation`` returned

    Raises:
        RetriesExhaustedError: If every attempt failed
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    last_exc: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        if on_attempt:
            on_attempt(attempt)
        try:
            return operation()
        except retry_on as exc:
            last_exc = exc
            left = attempts - attempt
            if left:
                logger.warning(f"{label} failed: {exc}. Retrying... ({left} attempts left)")
            else:
                logger.error(f"{label} failed: {exc}")

    raise RetriesExhaustedError(label, attempts, last_exc)
