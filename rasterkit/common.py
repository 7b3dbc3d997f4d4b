"""Shared options, validation, file output and pixel serialisation for the writers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]
PathLike = Union[str, "os.PathLike[str]"]

# Background used when an RGBA pixel has to be flattened without its alpha.
_BACKGROUND = (255, 0, 255)


@dataclass
class WriteOptions:
    """Settings shared by all writers."""

    tga_with_rle: bool = True
    png_compression_level: int = 8
    force_png_filter: int = -1
    flip_vertically: bool = False


class ImageWriteError(ValueError):
    """Raised when an image cannot be encoded or written."""


def check_image(width: int, height: int, comp: int, data: BytesLike) -> bytes:
    """Validate image geometry and pixel data, returning the data as bytes."""
    if width < 0 or height < 0:
        raise ImageWriteError(f"invalid image size {width}x{height}")
    if comp not in (1, 2, 3, 4):
        raise ImageWriteError(f"unsupported component count {comp}")
    raw = bytes(data)
    needed = width * height * comp
    if len(raw) < needed:
        raise ImageWriteError(
            f"pixel data holds {len(raw)} bytes, {needed} are needed"
        )
    return raw


def write_file(path: PathLike, payload: BytesLike) -> None:
    """Write an encoded image to ``path``."""
    try:
        with open(path, "wb") as handle:
            handle.write(payload)
    except OSError as exc:
        raise ImageWriteError(f"cannot write {os.fspath(path)!r}: {exc}") from exc


def _composite(value: int, alpha: int, background: int) -> int:
    product = (value - background) * alpha
    quotient = abs(product) // 255
    return (background + (quotient if product >= 0 else -quotient)) & 0xFF


def _encode_pixel(
    out: bytearray,
    pixel: bytes,
    comp: int,
    rgb_dir: int,
    write_alpha: int,
    expand_mono: bool,
) -> None:
    """Append one pixel; ``write_alpha`` < 0 puts alpha first, > 0 last, 0 drops it."""
    if write_alpha < 0:
        out.append(pixel[comp - 1])

    if comp in (1, 2):
        if expand_mono:
            out += bytes((pixel[0], pixel[0], pixel[0]))
        else:
            out.append(pixel[0])
    elif comp == 4 and not write_alpha:
        flat = [_composite(pixel[k], pixel[3], _BACKGROUND[k]) for k in range(3)]
        out += bytes((flat[1 - rgb_dir], flat[1], flat[1 + rgb_dir]))
    else:
        out += bytes((pixel[1 - rgb_dir], pixel[1], pixel[1 + rgb_dir]))

    if write_alpha > 0:
        out.append(pixel[comp - 1])


def _encode_rows(
    raw: bytes,
    width: int,
    height: int,
    comp: int,
    *,
    rgb_dir: int,
    bottom_up: bool,
    write_alpha: int,
    pad: int,
    expand_mono: bool,
    flip: bool,
) -> bytes:
    """Serialise all rows of an image, each followed by ``pad`` zero bytes."""
    if height <= 0:
        return b""
    rows = range(height)
    if bottom_up != flip:
        rows = reversed(rows)
    row_size = width * comp
    padding = bytes(pad)
    out = bytearray()
    for row in rows:
        start = row * row_size
        for offset in range(start, start + row_size, comp):
            _encode_pixel(
                out, raw[offset:offset + comp], comp, rgb_dir, write_alpha, expand_mono
            )
        out += padding
    return bytes(out)