import struct

import pytest

from rasterkit.tinyico import (
    IconEntry,
    IconError,
    IconResource,
    extract_argb,
    flip_argb_vertically,
    open_group_icon,
    open_icon,
)

PNG_SIGNATURE = bytes((0x89, 0x50, 0x4E, 0x47, 0x0D, 0x0A, 0x1A, 0x0A))


def _bmp_header(width, height, bpp, colours=0):
    return struct.pack("<IiiHHIIiiII", 40, width, height * 2, 1, bpp, 0, 0, 0, 0, colours, 0)


def _image_32(width, height, body):
    return _bmp_header(width, height, 32) + body


def _ico(images):
    """Build an icon file from (width, height, bpp, image_bytes) tuples."""
    header = struct.pack("<HHH", 0, 1, len(images))
    offset = len(header) + 16 * len(images)
    table = b""
    blobs = b""
    for width, height, bpp, blob in images:
        table += struct.pack("<BBBBHHII", width, height, 0, 0, 1, bpp, len(blob), offset)
        blobs += blob
        offset += len(blob)
    return header + table + blobs


def _group(entries):
    """Build a group-icon resource from (width, height, bpp, id) tuples."""
    header = struct.pack("<HHH", 0, 1, len(entries))
    table = b"".join(
        struct.pack("<BBBBHHIH", w, h, 0, 0, 1, bpp, 0, ident) for w, h, bpp, ident in entries
    )
    return header + table


A = bytes((0x01, 0x02, 0x03, 0x04))
B = bytes((0x05, 0x06, 0x07, 0x08))
C = bytes((0x09, 0x0A, 0x0B, 0x0C))
D = bytes((0x0D, 0x0E, 0x0F, 0x10))
BODY_32 = A + B + C + D
EXPECTED_32 = bytes(
    (0x0B, 0x0A, 0x09, 0x0C, 0x0F, 0x0E, 0x0D, 0x10,
     0x03, 0x02, 0x01, 0x04, 0x07, 0x06, 0x05, 0x08)
)

PALETTE = bytes((10, 20, 30, 0, 40, 50, 60, 0))
COLOUR0 = (30, 20, 10)
COLOUR1 = (60, 50, 40)


def test_extract_32bpp_swaps_channels_and_flips_rows():
    width, height, pixels = extract_argb(_image_32(2, 2, BODY_32))
    assert (width, height) == (2, 2)
    assert pixels == EXPECTED_32


def test_extract_8bpp_uses_palette_and_mask():
    indices = bytes((0, 1, 0, 1, 0, 1, 0, 1))
    mask = bytes((0b10000001,))
    image = _bmp_header(8, 1, 8, 2) + PALETTE + indices + mask
    width, height, pixels = extract_argb(image)
    assert (width, height) == (8, 1)
    expected = bytearray()
    for p, index in enumerate(indices):
        colour = COLOUR1 if index else COLOUR0
        alpha = 0 if p in (0, 7) else 255
        expected += bytes((*colour, alpha))
    assert pixels == bytes(expected)


def test_extract_4bpp_pair_shares_mask_bit():
    image = _bmp_header(2, 1, 4, 2) + PALETTE + bytes((0x10,)) + bytes((0x80,))
    width, height, pixels = extract_argb(image)
    assert (width, height) == (2, 1)
    assert pixels == bytes((*COLOUR1, 0, *COLOUR0, 0))


def test_extract_4bpp_second_mask_bit_is_ignored():
    image = _bmp_header(2, 1, 4, 2) + PALETTE + bytes((0x01,)) + bytes((0x40,))
    _, _, pixels = extract_argb(image)
    assert pixels == bytes((*COLOUR0, 255, *COLOUR1, 255))


def test_extract_rejects_png_images():
    with pytest.raises(IconError) as info:
        extract_argb(PNG_SIGNATURE + bytes(40))
    assert info.value.code == IconError.UNDEFINED


@pytest.mark.parametrize("bpp", [1, 16, 24])
def test_extract_rejects_unsupported_depths(bpp):
    with pytest.raises(IconError) as info:
        extract_argb(_bmp_header(1, 1, bpp) + bytes(64))
    assert info.value.code == IconError.UNDEFINED


def test_extract_rejects_palette_on_true_colour():
    with pytest.raises(IconError) as info:
        extract_argb(_bmp_header(1, 1, 32, 1) + bytes(64))
    assert info.value.code == IconError.UNDEFINED


def test_extract_rejects_short_header():
    with pytest.raises(IconError) as info:
        extract_argb(_bmp_header(1, 1, 32)[:20])
    assert info.value.code == IconError.BAD_ICON_IMAGE


def test_extract_rejects_truncated_pixels():
    with pytest.raises(IconError) as info:
        extract_argb(_image_32(2, 2, BODY_32[:-1]))
    assert info.value.code == IconError.BAD_ICON_IMAGE


def test_extract_rejects_palette_index_out_of_range():
    image = _bmp_header(8, 1, 8, 2) + PALETTE + bytes((5,) * 8) + bytes(1)
    with pytest.raises(IconError) as info:
        extract_argb(image)
    assert info.value.code == IconError.BAD_ICON_IMAGE


def test_open_icon_reads_entries_and_extracts():
    image = _image_32(2, 2, BODY_32)
    resource = open_icon(_ico([(2, 2, 32, image)]))
    assert resource.count == 1
    assert not resource.group
    entry = resource.entries[0]
    assert (entry.width, entry.height, entry.bpp, entry.nbytes) == (2, 2, 32, len(image))
    assert entry.offset == 22
    assert resource.extract_argb(0) == extract_argb(image)


def test_open_icon_with_two_images():
    first = _image_32(2, 2, BODY_32)
    second = _image_32(1, 1, A)
    resource = open_icon(_ico([(2, 2, 32, first), (1, 1, 32, second)]))
    assert resource.count == 2
    assert resource.entries[1].offset == resource.entries[0].offset + len(first)
    assert resource.extract_argb(1) == (1, 1, bytes((0x03, 0x02, 0x01, 0x04)))


def test_open_icon_rejects_short_data():
    with pytest.raises(IconError) as info:
        open_icon(struct.pack("<HHH", 0, 1, 1))
    assert info.value.code == IconError.ILLEGAL_PARAMS


@pytest.mark.parametrize("reserved,kind,count", [(1, 1, 1), (0, 2, 1), (0, 1, 0)])
def test_open_icon_rejects_bad_header(reserved, kind, count):
    data = struct.pack("<HHH", reserved, kind, count) + bytes(16)
    with pytest.raises(IconError) as info:
        open_icon(data)
    assert info.value.code == IconError.BAD_ICON_HEADER


def test_open_icon_rejects_truncated_directory():
    data = struct.pack("<HHH", 0, 1, 3) + bytes(16)
    with pytest.raises(IconError) as info:
        open_icon(data)
    assert info.value.code == IconError.BROKEN_ICON


@pytest.mark.parametrize("index", [-1, 1])
def test_resource_extract_out_of_range(index):
    resource = open_icon(_ico([(2, 2, 32, _image_32(2, 2, BODY_32))]))
    with pytest.raises(IconError) as info:
        resource.extract_argb(index)
    assert info.value.code == IconError.OUT_OF_RANGE


def test_resource_extract_offset_past_end():
    entry = IconEntry(1, 1, 0, 0, 1, 32, 4, offset=1000)
    resource = IconResource(bytes(30), [entry])
    with pytest.raises(IconError) as info:
        resource.extract_argb(0)
    assert info.value.code == IconError.BROKEN_ICON


def test_open_group_icon_reads_ids():
    resource = open_group_icon(_group([(16, 16, 32, 7), (32, 32, 32, 9)]))
    assert resource.group
    assert [e.id for e in resource.entries] == [7, 9]
    assert [e.width for e in resource.entries] == [16, 32]
    assert all(e.offset is None for e in resource.entries)


def test_open_group_icon_requires_exact_size():
    with pytest.raises(IconError) as info:
        open_group_icon(_group([(16, 16, 32, 7)]) + b"\x00")
    assert info.value.code == IconError.BROKEN_ICON


def test_open_group_icon_rejects_short_data():
    with pytest.raises(IconError) as info:
        open_group_icon(bytes(10))
    assert info.value.code == IconError.ILLEGAL_PARAMS


def test_group_icon_entries_cannot_be_extracted():
    resource = open_group_icon(_group([(16, 16, 32, 7)]))
    with pytest.raises(IconError) as info:
        resource.extract_argb(0)
    assert info.value.code == IconError.UNDEFINED


def test_entry_info_for_icon_names_offset():
    resource = open_icon(_ico([(2, 2, 32, _image_32(2, 2, BODY_32))]))
    text = resource.entry_info(0)
    assert text.startswith("TIEntry[0] { width: 2, height: 2,")
    assert text.endswith(f"offset: {resource.entries[0].offset} }}")
    assert "bpp: 32" in text


def test_entry_info_for_group_names_id():
    resource = open_group_icon(_group([(16, 16, 32, 7), (32, 32, 8, 9)]))
    text = resource.entry_info(1)
    assert text.startswith("TIEntry[1] { width: 32, height: 32,")
    assert text.endswith("id: 9 }")


def test_entry_info_out_of_range():
    resource = open_group_icon(_group([(16, 16, 32, 7)]))
    with pytest.raises(IconError) as info:
        resource.entry_info(5)
    assert info.value.code == IconError.OUT_OF_RANGE


def test_flip_reverses_rows():
    rows = [bytes([r]) * 8 for r in range(3)]
    flipped = flip_argb_vertically(b"".join(rows), 2, 3)
    assert flipped == b"".join(reversed(rows))


def test_flip_twice_is_identity():
    data = bytes(range(48))
    assert flip_argb_vertically(flip_argb_vertically(data, 3, 4), 3, 4) == data


def test_flip_rejects_short_data():
    with pytest.raises(ValueError):
        flip_argb_vertically(bytes(7), 1, 2)