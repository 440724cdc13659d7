"""
Firmware block transfer for the touchpad controller.

Write sequence:
1. Send write-setup (05 57 00 00 len_lo len_hi) at request size
2. Send each 2048-byte block as a 06 77 data frame, 10ms settle after each.
   Block 0 goes out with its first byte forced to 0x00.
3. Send the same write-setup again
4. Send block 0 again, this time with its real first byte

Read sequence:
1. Send read-setup (05 52 00 00 len_lo len_hi) at request size
2. For each block request a 2050-byte 06 72 report, 10ms settle, copy
   bytes [2:2050] into place

Neither class retries. Any short transfer raises ShortTransferError and the
caller decides what to do.
"""

import logging
import time

from .frames import (
    BLOCK_SIZE,
    HEADER_SIZE,
    build_data_frame,
    build_data_request,
    build_read_setup,
    build_write_setup,
    split_blocks,
)
from .hid_transport import FeatureReportTransport, request_exact, send_exact

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_SETTLE = 0.01


class BlockWriter:
    """
    Pushes a firmware image to the device in 2048-byte blocks.

    Example:
        writer = BlockWriter(transport, request_size=8)
        writer.write(image)
    """

    def __init__(
        self,
        transport: FeatureReportTransport,
        request_size: int,
        settle: float = DEFAULT_BLOCK_SETTLE,
    ):
        self.transport = transport
        self.request_size = request_size
        self.settle = settle

    def write(self, data: bytes) -> None:
        """
        Transmit ``data`` to the device.

        Args:
            data: Buffer whose length is a multiple of 2048

        Raises:
            ValueError: If the length is not block aligned
            ShortTransferError: On the first transfer length mismatch
        """
        blocks = split_blocks(data)
        if not blocks:
            raise ValueError("Nothing to write")
        setup = build_write_setup(len(data), self.request_size)

        send_exact(self.transport, setup, "write setup")
        logger.debug(f"Write setup sent for {len(data)} bytes")

        for index, (offset, block) in enumerate(blocks):
            frame = build_data_frame(block, first_block=(index == 0))
            send_exact(self.transport, frame, f"write block {index}")
            time.sleep(self.settle)
            logger.debug(f"Wrote block {index} at 0x{offset:04X}")

        send_exact(self.transport, setup, "second write setup")

        send_exact(self.transport, build_data_frame(blocks[0][1]), "rewrite block 0")
        time.sleep(self.settle)
        logger.debug("Block 0 rewritten")


class BlockReader:
    """
    Pulls a firmware image off the device in 2048-byte blocks.

    Example:
        reader = BlockReader(transport, request_size=8)
        image = reader.read(14336)
    """

    def __init__(
        self,
        transport: FeatureReportTransport,
        request_size: int,
        settle: float = DEFAULT_BLOCK_SETTLE,
    ):
        self.transport = transport
        self.request_size = request_size
        self.settle = settle

    def read(self, length: int) -> bytes:
        """
        Read ``length`` bytes from the device.

        Args:
            length: Multiple of 2048

        Returns:
            The bytes read

        Raises:
            ValueError: If the length is not block aligned
            ShortTransferError: On the first transfer length mismatch
        """
        if length <= 0 or length % BLOCK_SIZE:
            raise ValueError(f"Read length {length} is not a multiple of {BLOCK_SIZE}")

        send_exact(self.transport, build_read_setup(length, self.request_size), "read setup")

        data = bytearray(length)
        for index in range(length // BLOCK_SIZE):
            reply = request_exact(self.transport, build_data_request(), f"read block {index}")
            time.sleep(self.settle)
            offset = index * BLOCK_SIZE
            data[offset:offset + BLOCK_SIZE] = reply[HEADER_SIZE:HEADER_SIZE + BLOCK_SIZE]
            logger.debug(f"Read block {index} at 0x{offset:04X}")

        return bytes(data)
