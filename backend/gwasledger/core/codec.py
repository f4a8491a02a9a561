# SPDX-License-Identifier: Apache-2.0
"""Oracle cleartext wire format and fixed-point limbs for encrypted results."""
from __future__ import annotations

import math
import struct

from gwasledger.core.exceptions import CleartextFormatError

WORD = struct.Struct(">Q")
WORD_MAX = 2**64 - 1

FIXED_POINT_SCALE = 10**6
LIMB_BITS = 16
LIMB_COUNT = 4
LIMB_MASK = (1 << LIMB_BITS) - 1
FIXED_POINT_MAX = (1 << (LIMB_BITS * LIMB_COUNT)) - 1


def pack_cleartext(vectors: list[list[int]]) -> bytes:
    """
    Pack decrypted vectors in request order: for each, a uint64 count followed
    by that many uint64 values (all big-endian).
    """
    out = bytearray()
    for values in vectors:
        out += WORD.pack(len(values))
        for v in values:
            if not 0 <= int(v) <= WORD_MAX:
                raise ValueError(f"Value {v} does not fit an unsigned 64-bit word")
            out += WORD.pack(int(v))
    return bytes(out)


def unpack_cleartext(data: bytes, expected_vectors: int) -> list[list[int]]:
    if len(data) % WORD.size:
        raise CleartextFormatError(f"Cleartext length {len(data)} is not a multiple of {WORD.size}")
    words = [w for (w,) in WORD.iter_unpack(data)]
    vectors: list[list[int]] = []
    pos = 0
    while pos < len(words):
        count = words[pos]
        pos += 1
        if pos + count > len(words):
            raise CleartextFormatError("Cleartext truncated inside a vector")
        vectors.append(words[pos:pos + count])
        pos += count
    if len(vectors) != expected_vectors:
        raise CleartextFormatError(f"Expected {expected_vectors} vectors in cleartext, got {len(vectors)}")
    return vectors


def encode_fixed_point(value: float) -> list[int]:
    """Non-negative float -> LIMB_COUNT limbs, least significant first. Saturates at FIXED_POINT_MAX."""
    if math.isnan(value) or value < 0:
        raise ValueError(f"Cannot encode {value} as an unsigned fixed-point value")
    scaled = FIXED_POINT_MAX if math.isinf(value) else min(round(value * FIXED_POINT_SCALE), FIXED_POINT_MAX)
    return [(scaled >> (LIMB_BITS * i)) & LIMB_MASK for i in range(LIMB_COUNT)]


def decode_fixed_point(limbs: list[int]) -> float:
    if len(limbs) != LIMB_COUNT:
        raise CleartextFormatError(f"Fixed-point value needs {LIMB_COUNT} limbs, got {len(limbs)}")
    scaled = 0
    for i, limb in enumerate(limbs):
        if not 0 <= limb <= LIMB_MASK:
            raise CleartextFormatError(f"Limb {limb} out of range")
        scaled |= limb << (LIMB_BITS * i)
    return scaled / FIXED_POINT_SCALE
