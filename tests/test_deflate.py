import random
import zlib

import pytest

from rasterkit.deflate import zlib_compress


def _random_bytes(count, seed=1234):
    return random.Random(seed).randbytes(count)


@pytest.mark.parametrize(
    "payload",
    [
        b"a",
        b"abc",
        b"abcd",
        b"hello hello hello hello",
        b"\x00" * 1000,
        bytes(range(256)) * 20,
        b"the quick brown fox jumps over the lazy dog. " * 50,
    ],
)
def test_round_trip(payload):
    assert zlib.decompress(zlib_compress(payload)) == payload


def test_header_bytes():
    out = zlib_compress(b"some data to compress")
    assert out[:2] == b"\x78\x5e"


def test_trailer_is_adler32():
    payload = b"checksum me " * 30
    out = zlib_compress(payload)
    assert int.from_bytes(out[-4:], "big") == zlib.adler32(payload)


def test_repetitive_data_shrinks():
    payload = b"a" * 10000
    out = zlib_compress(payload)
    assert len(out) < len(payload) // 10
    assert zlib.decompress(out) == payload


def test_low_quality_is_clamped():
    payload = b"abcabcabdabcabcabe" * 40
    assert zlib_compress(payload, 1) == zlib_compress(payload, 5)


@pytest.mark.parametrize("quality", [5, 8, 16, 64])
def test_quality_levels_round_trip(quality):
    payload = (b"pattern-" + bytes(range(40))) * 30
    assert zlib.decompress(zlib_compress(payload, quality)) == payload


def test_incompressible_data_uses_stored_blocks():
    payload = _random_bytes(40000)
    out = zlib_compress(payload)
    blocks = (len(payload) + 32766) // 32767
    assert len(out) <= len(payload) + 2 + blocks * 5 + 4
    assert out[2] == 0  # first of two stored blocks is not final
    assert zlib.decompress(out) == payload


def test_small_random_round_trip():
    payload = _random_bytes(3000, seed=7)
    assert zlib.decompress(zlib_compress(payload)) == payload


def test_long_distance_match_round_trip():
    chunk = _random_bytes(300, seed=99)
    payload = chunk + _random_bytes(20000, seed=5) + chunk
    assert zlib.decompress(zlib_compress(payload)) == payload


def test_accepts_bytearray():
    payload = bytearray(b"xyzxyzxyzxyz")
    assert zlib.decompress(zlib_compress(payload)) == bytes(payload)