"""G.711 µ-law <-> signed 16-bit little-endian linear PCM conversion."""

from __future__ import annotations

import struct
from dataclasses import dataclass

# Bias added before µ-law compression (avoids log(0) in the encoding).
_BIAS = 0x84

# Maximum linear magnitude before clipping.
_CLIP = 32635

_I16_MIN = -32768
_I16_MAX = 32767

# Segment lookup: maps (biased_magnitude >> 7) to the segment number 0..7.
_EXP_LUT = tuple(max(0, index.bit_length() - 1) for index in range(256))


def slin_sample_to_ulaw(sample: int) -> int:
    """Encode one signed 16-bit linear sample as an 8-bit µ-law byte."""
    if not _I16_MIN <= sample <= _I16_MAX:
        raise ValueError(f"sample {sample} is outside the signed 16-bit range")

    sign = 0x80 if sample < 0 else 0
    magnitude = min(-sample if sign else sample, _CLIP) + _BIAS

    exponent = _EXP_LUT[(magnitude >> 7) & 0xFF]
    mantissa = (magnitude >> (exponent + 3)) & 0x0F

    return ~(sign | (exponent << 4) | mantissa) & 0xFF


def ulaw_sample_to_slin(u_val: int) -> int:
    """Decode one 8-bit µ-law byte to a signed 16-bit linear sample."""
    if not 0 <= u_val <= 0xFF:
        raise ValueError(f"µ-law value {u_val} is not a byte")

    inverted = ~u_val & 0xFF
    sign = inverted & 0x80
    exponent = (inverted & 0x70) >> 4
    mantissa = inverted & 0x0F

    sample = (((mantissa << 3) + _BIAS) << exponent) - _BIAS
    return -sample if sign else sample


_DECODE_TABLE = tuple(
    struct.pack("<h", ulaw_sample_to_slin(value)) for value in range(256)
)


def encode_ulaw(slin: bytes) -> bytes:
    """Convert S16_LE PCM to µ-law; the output is half the input length."""
    if len(slin) % 2:
        raise ValueError(
            f"slin buffer must contain whole 16-bit samples, got {len(slin)} bytes"
        )
    return bytes(slin_sample_to_ulaw(sample) for (sample,) in struct.iter_unpack("<h", slin))


def decode_ulaw(ulaw: bytes) -> bytes:
    """Convert µ-law to S16_LE PCM; the output is twice the input length."""
    return b"".join(_DECODE_TABLE[byte] for byte in ulaw)


@dataclass
class SlinAligner:
    """Keeps a stream of S16_LE bytes aligned on sample boundaries.

    A trailing odd byte from one chunk is held back and prepended to the next.
    """

    residual: int | None = None

    def feed(self, data: bytes) -> bytes:
        """Return the whole samples available after adding ``data``."""
        buf = bytearray()
        if self.residual is not None:
            buf.append(self.residual)
            self.residual = None
        buf += data
        if len(buf) % 2:
            self.residual = buf.pop()
        return bytes(buf)