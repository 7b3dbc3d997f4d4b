import struct

import pytest

from rasterkit.bmp import encode_bmp, write_bmp
from rasterkit.common import ImageWriteError, WriteOptions


def _fields(payload):
    magic, size, _, _, offset = struct.unpack_from("<2sIHHI", payload, 0)
    info = struct.unpack_from("<IIIHHIIIIII", payload, 14)
    return magic, size, offset, info


def test_rgb_header_fields():
    width, height = 3, 2
    payload = encode_bmp(width, height, 3, bytes(width * height * 3))
    magic, size, offset, info = _fields(payload)
    assert magic == b"BM"
    assert size == len(payload)
    assert offset == 14 + 40
    assert info[0] == 40
    assert info[1] == width
    assert info[2] == height
    assert info[3] == 1
    assert info[4] == 24


def test_rgb_rows_are_bgr_bottom_up_and_padded():
    data = bytes([1, 2, 3, 4, 5, 6])  # 1x2 image: top pixel then bottom pixel
    payload = encode_bmp(1, 2, 3, data)
    assert payload[54:] == bytes([6, 5, 4, 0, 3, 2, 1, 0])


def test_row_length_is_multiple_of_four():
    for width in range(1, 6):
        payload = encode_bmp(width, 3, 3, bytes(width * 9))
        assert (len(payload) - 54) % 4 == 0
        assert (len(payload) - 54) // 3 >= width * 3


def test_monochrome_expands_to_rgb():
    payload = encode_bmp(1, 1, 1, bytes([7]))
    assert payload[54:] == bytes([7, 7, 7, 0])


def test_grey_alpha_drops_alpha():
    payload = encode_bmp(1, 1, 2, bytes([9, 200]))
    assert payload[54:] == bytes([9, 9, 9, 0])


def test_rgba_writes_bgra_with_bitfields():
    data = bytes([10, 20, 30, 40])
    payload = encode_bmp(1, 1, 4, data)
    magic, size, offset, info = _fields(payload)
    assert magic == b"BM"
    assert offset == 14 + 108
    assert info[0] == 108
    assert info[4] == 32
    assert info[5] == 3
    masks = struct.unpack_from("<IIII", payload, 14 + 40)
    assert masks == (0xFF0000, 0xFF00, 0xFF, 0xFF000000)
    assert payload[-4:] == bytes([30, 20, 10, 40])


def test_rgba_rows_bottom_up():
    data = bytes([1, 2, 3, 4, 5, 6, 7, 8])
    payload = encode_bmp(1, 2, 4, data)
    assert payload[-8:] == bytes([7, 6, 5, 8, 3, 2, 1, 4])


def test_flip_vertically_writes_top_down():
    data = bytes([1, 2, 3, 4, 5, 6])
    plain = encode_bmp(1, 2, 3, data)
    flipped = encode_bmp(1, 2, 3, data, WriteOptions(flip_vertically=True))
    assert flipped[:54] == plain[:54]
    assert flipped[54:] == bytes([3, 2, 1, 0, 6, 5, 4, 0])


def test_zero_height_writes_only_header():
    payload = encode_bmp(4, 0, 3, b"")
    assert len(payload) == 54
    assert _fields(payload)[1] == 54


def test_negative_size_raises():
    with pytest.raises(ImageWriteError):
        encode_bmp(-1, 1, 3, bytes(3))


def test_short_data_raises():
    with pytest.raises(ImageWriteError):
        encode_bmp(2, 2, 3, bytes(5))


def test_write_bmp_matches_encode(tmp_path):
    data = bytes(range(2 * 2 * 3))
    target = tmp_path / "image.bmp"
    write_bmp(target, 2, 2, 3, data)
    assert target.read_bytes() == encode_bmp(2, 2, 3, data)