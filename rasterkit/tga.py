"""Truevision TGA writer, with optional run-length encoding."""

from __future__ import annotations

import struct

from rasterkit.common import (
    BytesLike,
    PathLike,
    WriteOptions,
    _encode_pixel,
    _encode_rows,
    check_image,
    write_file,
)

_HEADER = struct.Struct("<BBBHHBHHHHBB")
_MAX_PACKET = 128


def _header(image_type: int, width: int, height: int, bits: int, alpha_bits: int) -> bytes:
    return _HEADER.pack(
        0, 0, image_type, 0, 0, 0, 0, 0,
        width & 0xFFFF, height & 0xFFFF, bits & 0xFF, alpha_bits & 0xFF,
    )


def _packet_length(pixels: list[bytes], start: int) -> tuple[int, bool]:
    """Return the length of the packet starting at ``start`` and whether it is literal."""
    count = len(pixels)
    if start >= count - 1:
        return 1, True

    first = pixels[start]
    length = 2
    literal = first != pixels[start + 1]
    if literal:
        prev = start
        for k in range(start + 2, count):
            if length >= _MAX_PACKET:
                break
            if pixels[prev] != pixels[k]:
                prev += 1
                length += 1
            else:
                length -= 1
                break
    else:
        for k in range(start + 2, count):
            if length >= _MAX_PACKET:
                break
            if pixels[k] == first:
                length += 1
            else:
                break
    return length, literal


def _encode_rle_row(out: bytearray, pixels: list[bytes], comp: int, has_alpha: int) -> None:
    start = 0
    while start < len(pixels):
        length, literal = _packet_length(pixels, start)
        if literal:
            out.append((length - 1) & 0xFF)
            for pixel in pixels[start:start + length]:
                _encode_pixel(out, pixel, comp, -1, has_alpha, False)
        else:
            out.append((length - 129) & 0xFF)
            _encode_pixel(out, pixels[start], comp, -1, has_alpha, False)
        start += length


def encode_tga(
    width: int,
    height: int,
    comp: int,
    data: BytesLike,
    options: WriteOptions | None = None,
) -> bytes:
    """Encode pixels as a TGA file and return its bytes."""
    options = options or WriteOptions()
    raw = check_image(width, height, comp, data)

    has_alpha = 1 if comp in (2, 4) else 0
    colour_bytes = comp - 1 if has_alpha else comp
    image_type = 3 if colour_bytes < 2 else 2
    bits = (colour_bytes + has_alpha) * 8
    alpha_bits = has_alpha * 8

    if not options.tga_with_rle:
        body = _encode_rows(
            raw,
            width,
            height,
            comp,
            rgb_dir=-1,
            bottom_up=True,
            write_alpha=has_alpha,
            pad=0,
            expand_mono=False,
            flip=options.flip_vertically,
        )
        return _header(image_type, width, height, bits, alpha_bits) + body

    out = bytearray(_header(image_type + 8, width, height, bits, alpha_bits))
    rows = range(height) if options.flip_vertically else reversed(range(height))
    row_size = width * comp
    for row in rows:
        start = row * row_size
        pixels = [raw[offset:offset + comp] for offset in range(start, start + row_size, comp)]
        _encode_rle_row(out, pixels, comp, has_alpha)
    return bytes(out)


def write_tga(
    path: PathLike,
    width: int,
    height: int,
    comp: int,
    data: BytesLike,
    options: WriteOptions | None = None,
) -> None:
    """Encode pixels as TGA and write them to ``path``."""
    write_file(path, encode_tga(width, height, comp, data, options))