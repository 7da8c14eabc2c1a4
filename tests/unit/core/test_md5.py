"""Tests for script_bootstrap.core.md5."""

from __future__ import annotations

import hashlib

import pytest

from script_bootstrap.core.md5 import MD5, md5_hex, md5_text

# RFC 1321 appendix A.5 test suite
RFC_VECTORS = [
    (b"", "d41d8cd98f00b204e9800998ecf8427e"),
    (b"a", "0cc175b9c0f1b6a831c399e269772661"),
    (b"abc", "900150983cd24fb0d6963f7d28e17f72"),
    (b"message digest", "f96b697d7cb7938d525a2f31aaf161d0"),
    (b"abcdefghijklmnopqrstuvwxyz", "c3fcd3d76192e4007dfb496cca67e13b"),
    (
        b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789",
        "d174ab98d277d9f5a5611c2c9f419d9f",
    ),
    (
        b"1234567890" * 8,
        "57edf4a22be3c955ac49da2e2107b67a",
    ),
]


class TestReferenceVectors:
    """Digest must match RFC 1321 exactly."""

    @pytest.mark.parametrize("data,expected", RFC_VECTORS)
    def test_rfc_vector(self, data: bytes, expected: str) -> None:
        assert md5_hex(data) == expected

    def test_text_helper_encodes_utf8(self) -> None:
        assert md5_text("abc") == "900150983cd24fb0d6963f7d28e17f72"
        assert md5_text("ção") == hashlib.md5("ção".encode("utf-8")).hexdigest()


class TestPaddingBoundaries:
    """Lengths around the 56/64 byte padding edges."""

    @pytest.mark.parametrize("length", [55, 56, 57, 63, 64, 65, 119, 120, 128, 1000])
    def test_matches_hashlib(self, length: int) -> None:
        data = bytes((i * 7 + 3) % 256 for i in range(length))
        assert md5_hex(data) == hashlib.md5(data).hexdigest()


class TestStreaming:
    def test_incremental_updates_equal_one_shot(self) -> None:
        data = b"The quick brown fox jumps over the lazy dog" * 5
        h = MD5()
        for i in range(0, len(data), 13):
            h.update(data[i : i + 13])
        assert h.hexdigest() == md5_hex(data)

    def test_digest_does_not_finalize_state(self) -> None:
        h = MD5(b"abc")
        first = h.hexdigest()
        assert h.hexdigest() == first
        h.update(b"def")
        assert h.hexdigest() == hashlib.md5(b"abcdef").hexdigest()

    def test_copy_is_independent(self) -> None:
        h = MD5(b"abc")
        c = h.copy()
        c.update(b"more")
        assert h.hexdigest() == "900150983cd24fb0d6963f7d28e17f72"
        assert c.hexdigest() == hashlib.md5(b"abcmore").hexdigest()

    def test_digest_is_16_bytes_lowercase_hex(self) -> None:
        h = MD5(b"x")
        assert len(h.digest()) == 16
        hexd = h.hexdigest()
        assert len(hexd) == 32
        assert hexd == hexd.lower()
