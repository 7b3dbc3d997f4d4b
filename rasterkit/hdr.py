"""Radiance RGBE (.hdr) writer with per-component run-length encoding."""

from __future__ import annotations

import math
import struct
from array import array
from typing import Iterable

from rasterkit.common import ImageWriteError, PathLike, WriteOptions, write_file

_HEADER = b"#?RADIANCE\n# Written by rasterkit\nFORMAT=32-bit_rle_rgbe\n"
_F32 = struct.Struct("f")
_MAX_DUMP = 128
_MAX_RUN = 127


def _f32(value: float) -> float:
    return _F32.unpack(_F32.pack(value))[0]


_TINY = _f32(1e-32)


def linear_to_rgbe(r: float, g: float, b: float) -> bytes:
    """Convert one linear colour to its four shared-exponent RGBE bytes."""
    r, g, b = _f32(r), _f32(g), _f32(b)
    maxcomp = max(r, max(g, b))
    if maxcomp < _TINY:
        return bytes(4)
    mantissa, exponent = math.frexp(maxcomp)
    normalize = _f32(_f32(mantissa * 256.0) / maxcomp)
    scaled = (int(_f32(value * normalize)) & 0xFF for value in (r, g, b))
    return bytes((*scaled, (exponent + 128) & 0xFF))


def _pixel_rgbe(scanline: array, x: int, comp: int) -> bytes:
    base = x * comp
    if comp >= 3:
        return linear_to_rgbe(scanline[base], scanline[base + 1], scanline[base + 2])
    value = scanline[base]
    return linear_to_rgbe(value, value, value)


def _rle_component(out: bytearray, values: bytes) -> None:
    width = len(values)
    x = 0
    while x < width:
        run = x
        while run + 2 < width:
            if values[run] == values[run + 1] == values[run + 2]:
                break
            run += 1
        if run + 2 >= width:
            run = width
        while x < run:
            length = min(run - x, _MAX_DUMP)
            out.append(length)
            out += values[x:x + length]
            x += length
        if run + 2 < width:
            while run < width and values[run] == values[x]:
                run += 1
            while x < run:
                length = min(run - x, _MAX_RUN)
                out.append(length + 128)
                out.append(values[x])
                x += length


def _encode_scanline(out: bytearray, scanline: array, width: int, comp: int) -> None:
    pixels = [_pixel_rgbe(scanline, x, comp) for x in range(width)]
    if width < 8 or width >= 32768:
        for pixel in pixels:
            out += pixel
        return
    out += bytes((2, 2, (width >> 8) & 0xFF, width & 0xFF))
    for channel in range(4):
        _rle_component(out, bytes(pixel[channel] for pixel in pixels))


def encode_hdr(
    width: int,
    height: int,
    comp: int,
    data: Iterable[float],
    options: WriteOptions | None = None,
) -> bytes:
    """Encode linear float pixels as a Radiance HDR file and return its bytes."""
    options = options or WriteOptions()
    if width <= 0 or height <= 0:
        raise ImageWriteError(f"invalid image size {width}x{height}")
    if comp not in (1, 2, 3, 4):
        raise ImageWriteError(f"unsupported component count {comp}")
    values = array("f", data)
    row_size = width * comp
    if len(values) < row_size * height:
        raise ImageWriteError(
            f"pixel data holds {len(values)} values, {row_size * height} are needed"
        )

    out = bytearray(_HEADER)
    out += f"EXPOSURE=          1.0000000000000\n\n-Y {height} +X {width}\n".encode("ascii")
    for i in range(height):
        row = height - 1 - i if options.flip_vertically else i
        start = row * row_size
        _encode_scanline(out, values[start:start + row_size], width, comp)
    return bytes(out)


def write_hdr(
    path: PathLike,
    width: int,
    height: int,
    comp: int,
    data: Iterable[float],
    options: WriteOptions | None = None,
) -> None:
    """Encode float pixels as HDR and write them to ``path``."""
    write_file(path, encode_hdr(width, height, comp, data, options))