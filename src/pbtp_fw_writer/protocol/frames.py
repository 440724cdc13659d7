"""
Touchpad feature report framing.

Command frames are ``request_size`` bytes long and carry report id 0x05.
Data-block frames are always 2050 bytes: report id 0x06, opcode, then a
2048-byte payload.

Frame format (command):
    [ 0x05 | opcode | p0 | p1 | p2 | p3 | 0x00 ... ]

Frame format (data block):
    [ 0x06 | opcode | 2048 payload bytes ]
"""

from typing import List, Tuple

# Report ids
REPORT_ID_COMMAND = 0x05
REPORT_ID_DATA = 0x06

# Opcodes
CMD_READ_SETUP = 0x52   # 'R'
CMD_WRITE_SETUP = 0x57  # 'W'
CMD_ERASE = 0x65        # 'e'
CMD_READ = 0x72         # 'r'
CMD_WRITE = 0x77        # 'w'

# Whole-frame fill markers
FILL_ERASE_FIRMWARE = 0x45  # 'E', erases pages 0-6
FILL_END_PROGRAMMING = 0x55  # 'U'

BLOCK_SIZE = 2048
DATA_FRAME_SIZE = BLOCK_SIZE + 2
HEADER_SIZE = 2
MIN_REQUEST_SIZE = 6
MAX_REQUEST_SIZE = 4096  # hidraw report buffer limit

FIRMWARE_SIZE = 14 * 1024

# Identity region address/length and erase selector
IDENTITY_REGION = bytes([0x80, 0xFF, 0x08, 0x00])
IDENTITY_ERASE = bytes([0xFF, 0x00, 0x00, 0x00])


def build_command(opcode: int, payload: bytes, request_size: int) -> bytes:
    """
    Build a zero-padded command frame of ``request_size`` bytes.

    Raises:
        ValueError: If header and payload do not fit the request size
    """
    if HEADER_SIZE + len(payload) > request_size:
        raise ValueError(
            f"Payload of {len(payload)} bytes does not fit request size {request_size}"
        )
    frame = bytearray(request_size)
    frame[0] = REPORT_ID_COMMAND
    frame[1] = opcode
    frame[HEADER_SIZE:HEADER_SIZE + len(payload)] = payload
    return bytes(frame)


def build_fill_frame(fill: int, request_size: int) -> bytes:
    """Frame filled with ``fill`` except the leading report id."""
    frame = bytearray([fill]) * request_size
    frame[0] = REPORT_ID_COMMAND
    return bytes(frame)


def build_erase_frame(request_size: int) -> bytes:
    return build_fill_frame(FILL_ERASE_FIRMWARE, request_size)


def build_end_programming_frame(request_size: int) -> bytes:
    return build_fill_frame(FILL_END_PROGRAMMING, request_size)


def transfer_payload(length: int) -> bytes:
    """Address 0x0000 followed by the 16-bit length, low byte first."""
    if not 0 <= length <= 0xFFFF:
        raise ValueError(f"Transfer length out of range: {length}")
    return bytes([0x00, 0x00, length & 0xFF, (length >> 8) & 0xFF])


def build_write_setup(length: int, request_size: int) -> bytes:
    return build_command(CMD_WRITE_SETUP, transfer_payload(length), request_size)


def build_read_setup(length: int, request_size: int) -> bytes:
    return build_command(CMD_READ_SETUP, transfer_payload(length), request_size)


def build_data_frame(chunk: bytes, first_block: bool = False) -> bytes:
    """
    Build a 2050-byte write data frame.

    Args:
        chunk: Exactly BLOCK_SIZE payload bytes
        first_block: Force payload byte 0 to 0x00 (block 0 on the first pass)
    """
    if len(chunk) != BLOCK_SIZE:
        raise ValueError(f"Data block must be {BLOCK_SIZE} bytes, got {len(chunk)}")
    frame = bytearray(DATA_FRAME_SIZE)
    frame[0] = REPORT_ID_DATA
    frame[1] = CMD_WRITE
    frame[HEADER_SIZE:] = chunk
    if first_block:
        frame[HEADER_SIZE] = 0x00
    return bytes(frame)


def build_data_request() -> bytes:
    """Zeroed 2050-byte read request with header 06 72."""
    frame = bytearray(DATA_FRAME_SIZE)
    frame[0] = REPORT_ID_DATA
    frame[1] = CMD_READ
    return bytes(frame)


def split_blocks(data: bytes, block_size: int = BLOCK_SIZE) -> List[Tuple[int, bytes]]:
    """
    Split data into (offset, block) tuples.

    Raises:
        ValueError: If the length is not a multiple of block_size
    """
    if len(data) % block_size:
        raise ValueError(
            f"Data length {len(data)} is not a multiple of {block_size}"
        )
    return [(offset, data[offset:offset + block_size])
            for offset in range(0, len(data), block_size)]


def u16_be(hi: int, lo: int) -> int:
    return (hi << 8) | lo


def pack_u16_be(value: int) -> bytes:
    return bytes([(value >> 8) & 0xFF, value & 0xFF])
