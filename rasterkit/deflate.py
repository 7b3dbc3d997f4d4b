"""Small zlib-format compressor: fixed-Huffman DEFLATE with hash-chain matching."""

from __future__ import annotations

import struct
import zlib
from bisect import bisect_right

from rasterkit.common import BytesLike

_LENGTH_BASE = (
    3, 4, 5, 6, 7, 8, 9, 10, 11, 13, 15, 17, 19, 23, 27, 31, 35, 43, 51, 59,
    67, 83, 99, 115, 131, 163, 195, 227, 258, 259,
)
_LENGTH_EXTRA = (
    0, 0, 0, 0, 0, 0, 0, 0, 1, 1, 1, 1, 2, 2, 2, 2, 3, 3, 3, 3,
    4, 4, 4, 4, 5, 5, 5, 5, 0,
)
_DIST_BASE = (
    1, 2, 3, 4, 5, 7, 9, 13, 17, 25, 33, 49, 65, 97, 129, 193, 257, 385, 513,
    769, 1025, 1537, 2049, 3073, 4097, 6145, 8193, 12289, 16385, 24577, 32768,
)
_DIST_EXTRA = (
    0, 0, 0, 0, 1, 1, 2, 2, 3, 3, 4, 4, 5, 5, 6, 6, 7, 7, 8, 8,
    9, 9, 10, 10, 11, 11, 12, 12, 13, 13,
)

_HASH_SIZE = 16384
_WINDOW = 32768
_MAX_MATCH = 258
_MAX_STORED = 32767
_MASK32 = 0xFFFFFFFF


def _bit_reverse(code: int, bits: int) -> int:
    result = 0
    for _ in range(bits):
        result = (result << 1) | (code & 1)
        code >>= 1
    return result


def _hash3(data: bytes, pos: int) -> int:
    h = data[pos] + (data[pos + 1] << 8) + (data[pos + 2] << 16)
    h ^= (h << 3) & _MASK32
    h = (h + (h >> 5)) & _MASK32
    h ^= (h << 4) & _MASK32
    h = (h + (h >> 17)) & _MASK32
    h ^= (h << 25) & _MASK32
    h = (h + (h >> 6)) & _MASK32
    return h & (_HASH_SIZE - 1)


def _match_length(data: bytes, a: int, b: int, limit: int) -> int:
    limit = min(limit, _MAX_MATCH)
    n = 0
    while n < limit and data[a + n] == data[b + n]:
        n += 1
    return n


class _BitWriter:
    """Accumulates DEFLATE bits least-significant first."""

    def __init__(self, prefix: bytes) -> None:
        self.out = bytearray(prefix)
        self._buffer = 0
        self._count = 0

    def add(self, code: int, bits: int) -> None:
        self._buffer |= code << self._count
        self._count += bits
        while self._count >= 8:
            self.out.append(self._buffer & 0xFF)
            self._buffer >>= 8
            self._count -= 8

    def huffman(self, symbol: int) -> None:
        """Emit a literal/length symbol with the fixed Huffman code."""
        if symbol <= 143:
            self.add(_bit_reverse(0x30 + symbol, 8), 8)
        elif symbol <= 255:
            self.add(_bit_reverse(0x190 + symbol - 144, 9), 9)
        elif symbol <= 279:
            self.add(_bit_reverse(symbol - 256, 7), 7)
        else:
            self.add(_bit_reverse(0xC0 + symbol - 280, 8), 8)

    def align(self) -> None:
        while self._count:
            self.add(0, 1)


def zlib_compress(data: BytesLike, quality: int = 8) -> bytes:
    """Compress ``data`` into a zlib stream; ``quality`` bounds the hash chain length."""
    data = bytes(data)
    size = len(data)
    quality = max(quality, 5)

    writer = _BitWriter(b"\x78\x5e")
    writer.add(1, 1)  # final block
    writer.add(1, 2)  # fixed Huffman codes

    table: dict[int, list[int]] = {}
    i = 0
    while i < size - 3:
        h = _hash3(data, i)
        best = 3
        best_pos: int | None = None
        chain = table.setdefault(h, [])
        for pos in chain:
            if pos > i - _WINDOW:
                d = _match_length(data, pos, i, size - i)
                if d >= best:
                    best = d
                    best_pos = pos
        if len(chain) == 2 * quality:
            del chain[:quality]
        chain.append(i)

        if best_pos is not None:
            # Lazy matching: prefer a literal if the next byte starts a longer match.
            for pos in table.get(_hash3(data, i + 1), ()):
                if pos > i - (_WINDOW - 1):
                    if _match_length(data, pos, i + 1, size - i - 1) > best:
                        best_pos = None
                        break

        if best_pos is not None:
            distance = i - best_pos
            j = bisect_right(_LENGTH_BASE, best) - 1
            writer.huffman(j + 257)
            if _LENGTH_EXTRA[j]:
                writer.add(best - _LENGTH_BASE[j], _LENGTH_EXTRA[j])
            j = bisect_right(_DIST_BASE, distance) - 1
            writer.add(_bit_reverse(j, 5), 5)
            if _DIST_EXTRA[j]:
                writer.add(distance - _DIST_BASE[j], _DIST_EXTRA[j])
            i += best
        else:
            writer.huffman(data[i])
            i += 1

    for byte in data[i:]:
        writer.huffman(byte)
    writer.huffman(256)
    writer.align()

    out = writer.out
    if len(out) > size + 2 + ((size + _MAX_STORED - 1) // _MAX_STORED) * 5:
        # Compression expanded the data: fall back to stored blocks.
        del out[2:]
        start = 0
        while start < size:
            block = min(size - start, _MAX_STORED)
            out.append(1 if size - start == block else 0)
            out += struct.pack("<HH", block, ~block & 0xFFFF)
            out += data[start:start + block]
            start += block

    out += struct.pack(">I", zlib.adler32(data) & _MASK32)
    return bytes(out)