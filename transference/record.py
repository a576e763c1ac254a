"""Counter account layout: a single little-endian u32."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .errors import DeserializationError

_LAYOUT = struct.Struct("<I")

RECORD_SIZE = _LAYOUT.size
U32_MAX = 2**32 - 1


@dataclass(frozen=True)
class CounterRecord:
    counter: int = 0


def encode(record: CounterRecord) -> bytes:
    if record.counter < 0 or record.counter > U32_MAX:
        raise ValueError("counter must be within u32 range")
    return _LAYOUT.pack(record.counter)


def decode(data: bytes) -> CounterRecord:
    """Decode raw account data.

    The account is allocated with exactly ``RECORD_SIZE`` bytes, so any other
    length means the address does not hold a counter.
    """
    if len(data) != RECORD_SIZE:
        raise DeserializationError(
            f"counter account data must be {RECORD_SIZE} bytes, got {len(data)}"
        )
    (counter,) = _LAYOUT.unpack(bytes(data))
    return CounterRecord(counter=counter)
