"""Time-ordered identifiers for universal entities."""

import os
import time
import uuid


def generate_uuid() -> str:
    """Return a new UUIDv7 string.

    The first 48 bits hold the Unix time in milliseconds, so identifiers sort
    by creation time and the vendor fallback ID can be recovered from them.
    """
    timestamp_ms = time.time_ns() // 1_000_000
    rand = int.from_bytes(os.urandom(10), "big")
    rand_a = rand >> 68  # 12 bits
    rand_b = rand & ((1 << 62) - 1)
    value = (
        (timestamp_ms & ((1 << 48) - 1)) << 80
        | 0x7 << 76
        | rand_a << 64
        | 0b10 << 62
        | rand_b
    )
    return str(uuid.UUID(int=value))


def extract_timestamp_from_uuid(value: str) -> int:
    """Return the millisecond timestamp stored in the high 48 bits of a UUIDv7.

    Two identifiers minted in the same millisecond yield the same timestamp.
    """
    hex_digits = value.replace("-", "")
    return int(hex_digits[:12], 16)
