"""Baseline JPEG writer with standard Huffman tables and optional 4:2:0 chroma."""

from __future__ import annotations

from rasterkit.common import (
    BytesLike,
    ImageWriteError,
    PathLike,
    WriteOptions,
    check_image,
    write_file,
)

_ZIGZAG = (
    0, 1, 5, 6, 14, 15, 27, 28, 2, 4, 7, 13, 16, 26, 29, 42, 3, 8, 12, 17, 25, 30, 41, 43,
    9, 11, 18, 24, 31, 40, 44, 53, 10, 19, 23, 32, 39, 45, 52, 54, 20, 22, 33, 38, 46, 51,
    55, 60, 21, 34, 37, 47, 50, 56, 59, 61, 35, 36, 48, 49, 57, 58, 62, 63,
)

_DC_LUM_COUNTS = (0, 0, 1, 5, 1, 1, 1, 1, 1, 1, 0, 0, 0, 0, 0, 0, 0)
_DC_LUM_VALUES = tuple(range(12))
_AC_LUM_COUNTS = (0, 0, 2, 1, 3, 3, 2, 4, 3, 5, 5, 4, 4, 0, 0, 1, 0x7D)
_AC_LUM_VALUES = (
    0x01, 0x02, 0x03, 0x00, 0x04, 0x11, 0x05, 0x12, 0x21, 0x31, 0x41, 0x06, 0x13, 0x51, 0x61, 0x07,
    0x22, 0x71, 0x14, 0x32, 0x81, 0x91, 0xA1, 0x08, 0x23, 0x42, 0xB1, 0xC1, 0x15, 0x52, 0xD1, 0xF0,
    0x24, 0x33, 0x62, 0x72, 0x82, 0x09, 0x0A, 0x16, 0x17, 0x18, 0x19, 0x1A, 0x25, 0x26, 0x27, 0x28,
    0x29, 0x2A, 0x34, 0x35, 0x36, 0x37, 0x38, 0x39, 0x3A, 0x43, 0x44, 0x45, 0x46, 0x47, 0x48, 0x49,
    0x4A, 0x53, 0x54, 0x55, 0x56, 0x57, 0x58, 0x59, 0x5A, 0x63, 0x64, 0x65, 0x66, 0x67, 0x68, 0x69,
    0x6A, 0x73, 0x74, 0x75, 0x76, 0x77, 0x78, 0x79, 0x7A, 0x83, 0x84, 0x85, 0x86, 0x87, 0x88, 0x89,
    0x8A, 0x92, 0x93, 0x94, 0x95, 0x96, 0x97, 0x98, 0x99, 0x9A, 0xA2, 0xA3, 0xA4, 0xA5, 0xA6, 0xA7,
    0xA8, 0xA9, 0xAA, 0xB2, 0xB3, 0xB4, 0xB5, 0xB6, 0xB7, 0xB8, 0xB9, 0xBA, 0xC2, 0xC3, 0xC4, 0xC5,
    0xC6, 0xC7, 0xC8, 0xC9, 0xCA, 0xD2, 0xD3, 0xD4, 0xD5, 0xD6, 0xD7, 0xD8, 0xD9, 0xDA, 0xE1, 0xE2,
    0xE3, 0xE4, 0xE5, 0xE6, 0xE7, 0xE8, 0xE9, 0xEA, 0xF1, 0xF2, 0xF3, 0xF4, 0xF5, 0xF6, 0xF7, 0xF8,
    0xF9, 0xFA,
)
_DC_CHROM_COUNTS = (0, 0, 3, 1, 1, 1, 1, 1, 1, 1, 1, 1, 0, 0, 0, 0, 0)
_DC_CHROM_VALUES = tuple(range(12))
_AC_CHROM_COUNTS = (0, 0, 2, 1, 2, 4, 4, 3, 4, 7, 5, 4, 4, 0, 1, 2, 0x77)
_AC_CHROM_VALUES = (
    0x00, 0x01, 0x02, 0x03, 0x11, 0x04, 0x05, 0x21, 0x31, 0x06, 0x12, 0x41, 0x51, 0x07, 0x61, 0x71,
    0x13, 0x22, 0x32, 0x81, 0x08, 0x14, 0x42, 0x91, 0xA1, 0xB1, 0xC1, 0x09, 0x23, 0x33, 0x52, 0xF0,
    0x15, 0x62, 0x72, 0xD1, 0x0A, 0x16, 0x24, 0x34, 0xE1, 0x25, 0xF1, 0x17, 0x18, 0x19, 0x1A, 0x26,
    0x27, 0x28, 0x29, 0x2A, 0x35, 0x36, 0x37, 0x38, 0x39, 0x3A, 0x43, 0x44, 0x45, 0x46, 0x47, 0x48,
    0x49, 0x4A, 0x53, 0x54, 0x55, 0x56, 0x57, 0x58, 0x59, 0x5A, 0x63, 0x64, 0x65, 0x66, 0x67, 0x68,
    0x69, 0x6A, 0x73, 0x74, 0x75, 0x76, 0x77, 0x78, 0x79, 0x7A, 0x82, 0x83, 0x84, 0x85, 0x86, 0x87,
    0x88, 0x89, 0x8A, 0x92, 0x93, 0x94, 0x95, 0x96, 0x97, 0x98, 0x99, 0x9A, 0xA2, 0xA3, 0xA4, 0xA5,
    0xA6, 0xA7, 0xA8, 0xA9, 0xAA, 0xB2, 0xB3, 0xB4, 0xB5, 0xB6, 0xB7, 0xB8, 0xB9, 0xBA, 0xC2, 0xC3,
    0xC4, 0xC5, 0xC6, 0xC7, 0xC8, 0xC9, 0xCA, 0xD2, 0xD3, 0xD4, 0xD5, 0xD6, 0xD7, 0xD8, 0xD9, 0xDA,
    0xE2, 0xE3, 0xE4, 0xE5, 0xE6, 0xE7, 0xE8, 0xE9, 0xEA, 0xF2, 0xF3, 0xF4, 0xF5, 0xF6, 0xF7, 0xF8,
    0xF9, 0xFA,
)

_Y_QUANT = (
    16, 11, 10, 16, 24, 40, 51, 61, 12, 12, 14, 19, 26, 58, 60, 55, 14, 13, 16, 24, 40, 57, 69, 56,
    14, 17, 22, 29, 51, 87, 80, 62, 18, 22, 37, 56, 68, 109, 103, 77, 24, 35, 55, 64, 81, 104, 113,
    92, 49, 64, 78, 87, 103, 121, 120, 101, 72, 92, 95, 98, 112, 100, 103, 99,
)
_UV_QUANT = (17, 18, 24, 47, 99, 99, 99, 99, 18, 21, 26, 66, 99, 99, 99, 99, 24, 26, 56) + (99,) * 45

_AASF = tuple(
    v * 2.828427125
    for v in (1.0, 1.387039845, 1.306562965, 1.175875602, 1.0, 0.785694958, 0.541196100, 0.275899379)
)

_HEAD0 = bytes(
    (0xFF, 0xD8, 0xFF, 0xE0, 0, 0x10, ord("J"), ord("F"), ord("I"), ord("F"), 0, 1, 1, 0, 0, 1, 0, 1,
     0, 0, 0xFF, 0xDB, 0, 0x84, 0)
)
_HEAD2 = bytes((0xFF, 0xDA, 0, 0xC, 3, 1, 0, 2, 0x11, 3, 0x11, 0, 0x3F, 0))

Code = tuple[int, int]


def _huffman_table(counts: tuple[int, ...], values: tuple[int, ...]) -> dict[int, Code]:
    """Build canonical (code, length) pairs keyed by symbol from JPEG count/value lists."""
    table: dict[int, Code] = {}
    symbols = iter(values)
    code = 0
    for length, count in enumerate(counts[1:], start=1):
        for _ in range(count):
            table[next(symbols)] = (code, length)
            code += 1
        code <<= 1
    return table


_YDC = _huffman_table(_DC_LUM_COUNTS, _DC_LUM_VALUES)
_YAC = _huffman_table(_AC_LUM_COUNTS, _AC_LUM_VALUES)
_UVDC = _huffman_table(_DC_CHROM_COUNTS, _DC_CHROM_VALUES)
_UVAC = _huffman_table(_AC_CHROM_COUNTS, _AC_CHROM_VALUES)
_NO_CODE: Code = (0, 0)


class _BitWriter:
    """Packs entropy-coded bits most-significant first, stuffing 0x00 after 0xFF."""

    def __init__(self, out: bytearray) -> None:
        self.out = out
        self._buffer = 0
        self._count = 0

    def write(self, bits: Code) -> None:
        value, length = bits
        self._count += length
        self._buffer |= value << (24 - self._count)
        while self._count >= 8:
            byte = (self._buffer >> 16) & 0xFF
            self.out.append(byte)
            if byte == 0xFF:
                self.out.append(0)
            self._buffer = (self._buffer << 8) & 0xFFFFFF
            self._count -= 8


def _dct8(d: list[float]) -> list[float]:
    d0, d1, d2, d3, d4, d5, d6, d7 = d
    tmp0, tmp7 = d0 + d7, d0 - d7
    tmp1, tmp6 = d1 + d6, d1 - d6
    tmp2, tmp5 = d2 + d5, d2 - d5
    tmp3, tmp4 = d3 + d4, d3 - d4

    tmp10, tmp13 = tmp0 + tmp3, tmp0 - tmp3
    tmp11, tmp12 = tmp1 + tmp2, tmp1 - tmp2
    out0, out4 = tmp10 + tmp11, tmp10 - tmp11
    z1 = (tmp12 + tmp13) * 0.707106781
    out2, out6 = tmp13 + z1, tmp13 - z1

    tmp10 = tmp4 + tmp5
    tmp11 = tmp5 + tmp6
    tmp12 = tmp6 + tmp7
    z5 = (tmp10 - tmp12) * 0.382683433
    z2 = tmp10 * 0.541196100 + z5
    z4 = tmp12 * 1.306562965 + z5
    z3 = tmp11 * 0.707106781
    z11, z13 = tmp7 + z3, tmp7 - z3
    return [out0, z11 + z4, out2, z13 - z2, out4, z13 + z2, out6, z11 - z4]


def _magnitude_bits(value: int) -> Code:
    length = max(abs(value).bit_length(), 1)
    adjusted = value - 1 if value < 0 else value
    return adjusted & ((1 << length) - 1), length


def _encode_block(
    writer: _BitWriter,
    block: list[float],
    scale: list[float],
    dc: int,
    dc_table: dict[int, Code],
    ac_table: dict[int, Code],
) -> int:
    """Transform, quantise and entropy-code one 8x8 block; return its DC value."""
    for r in range(0, 64, 8):
        block[r:r + 8] = _dct8(block[r:r + 8])
    for c in range(8):
        block[c::8] = _dct8(block[c::8])

    du = [0] * 64
    for j, (value, factor) in enumerate(zip(block, scale)):
        v = value * factor
        du[_ZIGZAG[j]] = int(v - 0.5 if v < 0 else v + 0.5)

    diff = du[0] - dc
    if diff == 0:
        writer.write(dc_table[0])
    else:
        bits = _magnitude_bits(diff)
        writer.write(dc_table.get(bits[1], _NO_CODE))
        writer.write(bits)

    eob = ac_table[0x00]
    zero_run16 = ac_table[0xF0]
    end = 63
    while end > 0 and du[end] == 0:
        end -= 1
    if end == 0:
        writer.write(eob)
        return du[0]

    i = 1
    while i <= end:
        start = i
        while du[i] == 0 and i <= end:
            i += 1
        zeros = i - start
        for _ in range(zeros >> 4):
            writer.write(zero_run16)
        zeros &= 15
        bits = _magnitude_bits(du[i])
        writer.write(ac_table.get((zeros << 4) + bits[1], _NO_CODE))
        writer.write(bits)
        i += 1
    if end != 63:
        writer.write(eob)
    return du[0]


def _quant_tables(quality: int) -> tuple[bytes, bytes]:
    y_table = bytearray(64)
    uv_table = bytearray(64)
    for i in range(64):
        y_table[_ZIGZAG[i]] = min(max((_Y_QUANT[i] * quality + 50) // 100, 1), 255)
        uv_table[_ZIGZAG[i]] = min(max((_UV_QUANT[i] * quality + 50) // 100, 1), 255)
    return bytes(y_table), bytes(uv_table)


def _scales(table: bytes) -> list[float]:
    return [
        1.0 / (table[_ZIGZAG[row * 8 + col]] * _AASF[row] * _AASF[col])
        for row in range(8)
        for col in range(8)
    ]


def _headers(width: int, height: int, subsample: bool, y_table: bytes, uv_table: bytes) -> bytes:
    head1 = bytes((
        0xFF, 0xC0, 0, 0x11, 8, (height >> 8) & 0xFF, height & 0xFF, (width >> 8) & 0xFF,
        width & 0xFF, 3, 1, 0x22 if subsample else 0x11, 0, 2, 0x11, 1, 3, 0x11, 1,
        0xFF, 0xC4, 0x01, 0xA2, 0,
    ))
    return b"".join((
        _HEAD0, y_table, b"\x01", uv_table, head1,
        bytes(_DC_LUM_COUNTS[1:]), bytes(_DC_LUM_VALUES),
        b"\x10", bytes(_AC_LUM_COUNTS[1:]), bytes(_AC_LUM_VALUES),
        b"\x01", bytes(_DC_CHROM_COUNTS[1:]), bytes(_DC_CHROM_VALUES),
        b"\x11", bytes(_AC_CHROM_COUNTS[1:]), bytes(_AC_CHROM_VALUES),
        _HEAD2,
    ))


def _planes(
    raw: bytes, width: int, height: int, comp: int, flip: bool
) -> tuple[list[float], list[float], list[float]]:
    """Convert pixels to level-shifted Y and centred U, V planes in output row order."""
    green = 1 if comp > 2 else 0
    blue = 2 if comp > 2 else 0
    ys: list[float] = []
    us: list[float] = []
    vs: list[float] = []
    for out_row in range(height):
        row = height - 1 - out_row if flip else out_row
        base = row * width * comp
        for p in range(base, base + width * comp, comp):
            r, g, b = raw[p], raw[p + green], raw[p + blue]
            ys.append(0.29900 * r + 0.58700 * g + 0.11400 * b - 128)
            us.append(-0.16874 * r - 0.33126 * g + 0.50000 * b)
            vs.append(0.50000 * r - 0.41869 * g - 0.08131 * b)
    return ys, us, vs


def _gather(plane: list[float], width: int, height: int, x0: int, y0: int, size: int) -> list[float]:
    """Cut a square out of a plane, repeating the last row and column past the edges."""
    return [
        plane[min(row, height - 1) * width + min(col, width - 1)]
        for row in range(y0, y0 + size)
        for col in range(x0, x0 + size)
    ]


def encode_jpeg(
    width: int,
    height: int,
    comp: int,
    data: BytesLike,
    quality: int = 0,
    options: WriteOptions | None = None,
) -> bytes:
    """Encode pixels as a baseline JPEG; ``quality`` 1..100, 0 means 90. Alpha is ignored."""
    options = options or WriteOptions()
    if width <= 0 or height <= 0:
        raise ImageWriteError(f"invalid image size {width}x{height}")
    raw = check_image(width, height, comp, data)

    quality = quality or 90
    subsample = quality <= 90
    quality = min(max(quality, 1), 100)
    quality = 5000 // quality if quality < 50 else 200 - quality * 2

    y_table, uv_table = _quant_tables(quality)
    y_scale, uv_scale = _scales(y_table), _scales(uv_table)

    out = bytearray(_headers(width, height, subsample, y_table, uv_table))
    writer = _BitWriter(out)
    ys, us, vs = _planes(raw, width, height, comp, options.flip_vertically)
    dcy = dcu = dcv = 0

    if subsample:
        for y in range(0, height, 16):
            for x in range(0, width, 16):
                big_y = _gather(ys, width, height, x, y, 16)
                for oy, ox in ((0, 0), (0, 8), (8, 0), (8, 8)):
                    block = [big_y[(oy + r) * 16 + ox + c] for r in range(8) for c in range(8)]
                    dcy = _encode_block(writer, block, y_scale, dcy, _YDC, _YAC)
                big_u = _gather(us, width, height, x, y, 16)
                big_v = _gather(vs, width, height, x, y, 16)
                sub_u = []
                sub_v = []
                for yy in range(8):
                    for xx in range(8):
                        j = yy * 32 + xx * 2
                        sub_u.append((big_u[j] + big_u[j + 1] + big_u[j + 16] + big_u[j + 17]) * 0.25)
                        sub_v.append((big_v[j] + big_v[j + 1] + big_v[j + 16] + big_v[j + 17]) * 0.25)
                dcu = _encode_block(writer, sub_u, uv_scale, dcu, _UVDC, _UVAC)
                dcv = _encode_block(writer, sub_v, uv_scale, dcv, _UVDC, _UVAC)
    else:
        for y in range(0, height, 8):
            for x in range(0, width, 8):
                dcy = _encode_block(writer, _gather(ys, width, height, x, y, 8), y_scale, dcy, _YDC, _YAC)
                dcu = _encode_block(writer, _gather(us, width, height, x, y, 8), uv_scale, dcu, _UVDC, _UVAC)
                dcv = _encode_block(writer, _gather(vs, width, height, x, y, 8), uv_scale, dcv, _UVDC, _UVAC)

    writer.write((0x7F, 7))
    out += b"\xff\xd9"
    return bytes(out)


def write_jpeg(
    path: PathLike,
    width: int,
    height: int,
    comp: int,
    data: BytesLike,
    quality: int = 0,
    options: WriteOptions | None = None,
) -> None:
    """Encode pixels as JPEG and write them to ``path``."""
    write_file(path, encode_jpeg(width, height, comp, data, quality, options))