"""PNG writer with per-row filter selection and the built-in zlib compressor."""

from __future__ import annotations

import struct
import zlib

from rasterkit.common import (
    BytesLike,
    ImageWriteError,
    PathLike,
    WriteOptions,
    write_file,
)
from rasterkit.deflate import zlib_compress

_SIGNATURE = bytes((137, 80, 78, 71, 13, 10, 26, 10))
_COLOUR_TYPE = {1: 0, 2: 4, 3: 2, 4: 6}
# On the first row there is no prior row; filters are rewritten to equivalents.
_FIRST_ROW_FILTER = (0, 1, 0, 5, 6)


def paeth(a: int, b: int, c: int) -> int:
    """Return the Paeth predictor of left ``a``, above ``b`` and upper-left ``c``."""
    p = a + b - c
    pa, pb, pc = abs(p - a), abs(p - b), abs(p - c)
    if pa <= pb and pa <= pc:
        return a & 0xFF
    if pb <= pc:
        return b & 0xFF
    return c & 0xFF


def _filter_row(
    raw: bytes,
    start: int,
    prior: int,
    width: int,
    comp: int,
    filter_type: int,
    first: bool,
) -> bytes:
    kind = _FIRST_ROW_FILTER[filter_type] if first else filter_type
    count = width * comp
    cur = raw[start:start + count]
    if kind == 0:
        return bytes(cur)
    up = b"" if first else raw[prior:prior + count]

    out = bytearray(count)
    for i, value in enumerate(cur):
        left = cur[i - comp] if i >= comp else 0
        if kind == 1:
            predicted = left
        elif kind == 2:
            predicted = up[i]
        elif kind == 3:
            predicted = (left + up[i]) >> 1
        elif kind == 4:
            predicted = paeth(left, up[i], up[i - comp] if i >= comp else 0)
        elif kind == 5:
            predicted = left >> 1
        else:
            predicted = paeth(left, 0, 0)
        out[i] = (value - predicted) & 0xFF
    return bytes(out)


def _cost(line: bytes) -> int:
    return sum(v if v < 128 else 256 - v for v in line)


def _chunk(tag: bytes, body: bytes) -> bytes:
    return (
        struct.pack(">I", len(body))
        + tag
        + body
        + struct.pack(">I", zlib.crc32(tag + body) & 0xFFFFFFFF)
    )


def encode_png(
    width: int,
    height: int,
    comp: int,
    data: BytesLike,
    stride: int = 0,
    options: WriteOptions | None = None,
) -> bytes:
    """Encode pixels as a PNG file; ``stride`` 0 means rows are packed."""
    options = options or WriteOptions()
    if width < 0 or height < 0:
        raise ImageWriteError(f"invalid image size {width}x{height}")
    if comp not in _COLOUR_TYPE:
        raise ImageWriteError(f"unsupported component count {comp}")
    if stride == 0:
        stride = width * comp
    if stride < 0:
        raise ImageWriteError(f"invalid row stride {stride}")
    raw = bytes(data)
    if height > 0 and width > 0:
        needed = stride * (height - 1) + width * comp
        if len(raw) < needed:
            raise ImageWriteError(
                f"pixel data holds {len(raw)} bytes, {needed} are needed"
            )

    forced = options.force_png_filter
    if forced >= 5:
        forced = -1
    flip = options.flip_vertically

    filtered = bytearray()
    for y in range(height):
        row = height - 1 - y if flip else y
        start = row * stride
        prior = start + stride if flip else start - stride
        first = y == 0
        if forced > -1:
            filter_type = forced
            line = _filter_row(raw, start, prior, width, comp, forced, first)
        else:
            lines = [
                _filter_row(raw, start, prior, width, comp, kind, first)
                for kind in range(5)
            ]
            filter_type = min(range(5), key=lambda kind: _cost(lines[kind]))
            line = lines[filter_type]
        filtered.append(filter_type)
        filtered += line

    compressed = zlib_compress(bytes(filtered), options.png_compression_level)
    header = struct.pack(">IIBBBBB", width, height, 8, _COLOUR_TYPE[comp], 0, 0, 0)
    return (
        _SIGNATURE
        + _chunk(b"IHDR", header)
        + _chunk(b"IDAT", compressed)
        + _chunk(b"IEND", b"")
    )


def write_png(
    path: PathLike,
    width: int,
    height: int,
    comp: int,
    data: BytesLike,
    stride: int = 0,
    options: WriteOptions | None = None,
) -> None:
    """Encode pixels as PNG and write them to ``path``."""
    write_file(path, encode_png(width, height, comp, data, stride, options))