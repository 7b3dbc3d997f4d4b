"""Windows BMP writer: 24-bit RGB, or 32-bit with alpha for four-channel input."""

from __future__ import annotations

import struct

from rasterkit.common import (
    BytesLike,
    PathLike,
    WriteOptions,
    _encode_rows,
    check_image,
    write_file,
)

_FILE_HEADER = struct.Struct("<2sIHHI")
_INFO_HEADER = struct.Struct("<IIIHHIIIIII")
_V4_EXTRA = struct.Struct("<IIII" "I" "9I")


def encode_bmp(
    width: int,
    height: int,
    comp: int,
    data: BytesLike,
    options: WriteOptions | None = None,
) -> bytes:
    """Encode pixels as a BMP file and return its bytes."""
    options = options or WriteOptions()
    raw = check_image(width, height, comp, data)

    if comp != 4:
        pad = (-width * 3) & 3
        header = _FILE_HEADER.pack(
            b"BM", 14 + 40 + (width * 3 + pad) * height, 0, 0, 14 + 40
        ) + _INFO_HEADER.pack(40, width, height, 1, 24, 0, 0, 0, 0, 0, 0)
        write_alpha = 0
    else:
        pad = 0
        header = (
            _FILE_HEADER.pack(b"BM", 14 + 108 + width * height * 4, 0, 0, 14 + 108)
            + _INFO_HEADER.pack(108, width, height, 1, 32, 3, 0, 0, 0, 0, 0)
            + _V4_EXTRA.pack(0xFF0000, 0xFF00, 0xFF, 0xFF000000, 0, *([0] * 9))
        )
        write_alpha = 1

    pixels = _encode_rows(
        raw,
        width,
        height,
        comp,
        rgb_dir=-1,
        bottom_up=True,
        write_alpha=write_alpha,
        pad=pad,
        expand_mono=True,
        flip=options.flip_vertically,
    )
    return header + pixels


def write_bmp(
    path: PathLike,
    width: int,
    height: int,
    comp: int,
    data: BytesLike,
    options: WriteOptions | None = None,
) -> None:
    """Encode pixels as BMP and write them to ``path``."""
    write_file(path, encode_bmp(width, height, comp, data, options))