"""
Byte and limb conversions shared by the signer and the HBI engine.

BIP-340 serialises every integer as 32 bytes big-endian; the HBI engine
stores integers as little-endian sequences of fixed-width digits.  Both
directions live here so the two layers agree on one representation.
"""

from __future__ import annotations

from typing import List, Sequence

SCALAR_BYTES = 32


# ── big-endian byte strings ─────────────────────────────────────────────
def bytes_from_int(value: int, length: int = SCALAR_BYTES) -> bytes:
    """``value`` as ``length`` bytes big-endian.  Raises ``OverflowError``."""
    return value.to_bytes(length, "big")


def int_from_bytes(data: bytes) -> int:
    return int.from_bytes(data, "big")


def xor_bytes(a: bytes, b: bytes) -> bytes:
    if len(a) != len(b):
        raise ValueError(f"length mismatch: {len(a)} vs {len(b)}")
    return bytes(x ^ y for x, y in zip(a, b))


# ── little-endian limbs ─────────────────────────────────────────────────
def split_limbs(value: int, digit_width: int, limb_count: int) -> List[int]:
    """
    Split ``value`` into ``limb_count`` digits of ``digit_width`` bits,
    least significant digit first.

    The caller is responsible for range checking; high bits beyond
    ``digit_width * limb_count`` are dropped.
    """
    mask = (1 << digit_width) - 1
    return [(value >> (i * digit_width)) & mask for i in range(limb_count)]


def join_limbs(limbs: Sequence[int], digit_width: int) -> int:
    """Inverse of :func:`split_limbs`."""
    value = 0
    for i, limb in enumerate(limbs):
        value |= limb << (i * digit_width)
    return value
