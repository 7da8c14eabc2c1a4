# src/script_bootstrap/core/md5.py
"""
MD5 (RFC 1321) implemented in pure Python.

Tracked files are compared by digest only, so this must stay bit-exact with
the reference algorithm. The object mirrors the small part of the hashlib
interface we need (update / digest / hexdigest / copy).
"""
from __future__ import annotations

import math
import struct

_MASK = 0xFFFFFFFF

# Per-round left-rotation amounts.
_SHIFTS = (
    [7, 12, 17, 22] * 4
    + [5, 9, 14, 20] * 4
    + [4, 11, 16, 23] * 4
    + [6, 10, 15, 21] * 4
)

# K[i] = floor(|sin(i + 1)| * 2^32)
_K = tuple(int(abs(math.sin(i + 1)) * 2**32) & _MASK for i in range(64))

_INIT_STATE = (0x67452301, 0xEFCDAB89, 0x98BADCFE, 0x10325476)


def _rotl(x: int, c: int) -> int:
    return ((x << c) | (x >> (32 - c))) & _MASK


def _compress(state: tuple[int, int, int, int], block: bytes) -> tuple[int, int, int, int]:
    m = struct.unpack("<16I", block)
    a, b, c, d = state

    for i in range(64):
        if i < 16:
            f = (b & c) | (~b & d)
            g = i
        elif i < 32:
            f = (d & b) | (~d & c)
            g = (5 * i + 1) % 16
        elif i < 48:
            f = b ^ c ^ d
            g = (3 * i + 5) % 16
        else:
            f = c ^ (b | ~d)
            g = (7 * i) % 16

        f = (f + a + _K[i] + m[g]) & _MASK
        a, d, c = d, c, b
        b = (b + _rotl(f, _SHIFTS[i])) & _MASK

    return (
        (state[0] + a) & _MASK,
        (state[1] + b) & _MASK,
        (state[2] + c) & _MASK,
        (state[3] + d) & _MASK,
    )


class MD5:
    name = "md5"
    digest_size = 16
    block_size = 64

    def __init__(self, data: bytes = b"") -> None:
        self._state = _INIT_STATE
        self._buffer = b""
        self._length = 0
        if data:
            self.update(data)

    def update(self, data: bytes) -> None:
        data = bytes(data)
        self._length += len(data)

        buf = self._buffer + data
        full = len(buf) - (len(buf) % self.block_size)
        state = self._state
        for off in range(0, full, self.block_size):
            state = _compress(state, buf[off : off + self.block_size])
        self._state = state
        self._buffer = buf[full:]

    def copy(self) -> "MD5":
        other = MD5()
        other._state = self._state
        other._buffer = self._buffer
        other._length = self._length
        return other

    def digest(self) -> bytes:
        # 0x80, zeros up to 56 mod 64, then the bit length as 64-bit little endian.
        bit_len = (self._length * 8) & 0xFFFFFFFFFFFFFFFF
        padding = b"\x80" + b"\x00" * ((55 - self._length) % 64)
        tail = self._buffer + padding + struct.pack("<Q", bit_len)

        state = self._state
        for off in range(0, len(tail), self.block_size):
            state = _compress(state, tail[off : off + self.block_size])
        return struct.pack("<4I", *state)

    def hexdigest(self) -> str:
        return self.digest().hex()


def md5_hex(data: bytes) -> str:
    return MD5(data).hexdigest()


def md5_text(text: str) -> str:
    return md5_hex(text.encode("utf-8"))
