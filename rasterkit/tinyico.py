"""Reader for Windows icon directories and their DIB-encoded images."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Callable, Union

BytesLike = Union[bytes, bytearray, memoryview]

_INFO_HEADER = struct.Struct("<IiiHHIIiiII")
_DIR_HEADER = struct.Struct("<HHH")
_ENTRY = struct.Struct("<BBBBHHII")
_GROUP_ENTRY = struct.Struct("<BBBBHHIH")
_PNG_SIGNATURE = bytes((0x89, 0x50, 0x4E, 0x47, 0x0D, 0x0A, 0x1A, 0x0A))

# Smallest directories: the three-field header followed by one entry.
_MIN_ICON_SIZE = _DIR_HEADER.size + _ENTRY.size
_MIN_GROUP_SIZE = _DIR_HEADER.size + _GROUP_ENTRY.size


class IconError(ValueError):
    """Raised when an icon or one of its images cannot be read."""

    ILLEGAL_PARAMS = 1
    BAD_ICON_HEADER = 2
    BAD_ICON_IMAGE = 3
    BROKEN_ICON = 4
    BAD_ALLOC = 5
    INVALID_HRES = 6
    UNDEFINED = 7
    OUT_OF_RANGE = 8

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass
class IconEntry:
    """One image described by an icon directory.

    Entries of an icon file carry ``offset``; entries of a group-icon resource carry ``id``.
    """

    width: int
    height: int
    ncol: int
    reserved: int
    planes: int
    bpp: int
    nbytes: int
    offset: int | None = None
    id: int | None = None


@dataclass
class IconResource:
    """A parsed icon directory together with the bytes it was read from."""

    data: bytes
    entries: list[IconEntry] = field(default_factory=list)
    group: bool = False

    @property
    def count(self) -> int:
        return len(self.entries)

    def _entry(self, index: int) -> IconEntry:
        if not 0 <= index < len(self.entries):
            raise IconError(
                IconError.OUT_OF_RANGE,
                f"entry {index} out of range for {len(self.entries)} entries",
            )
        return self.entries[index]

    def extract_argb(self, index: int) -> tuple[int, int, bytes]:
        """Decode the image of entry ``index``; see :func:`extract_argb`."""
        entry = self._entry(index)
        if self.group or entry.offset is None:
            raise IconError(
                IconError.UNDEFINED,
                "group icon entries refer to separate resources by id",
            )
        if entry.offset >= len(self.data):
            raise IconError(
                IconError.BROKEN_ICON,
                f"entry {index} points past the end of the icon",
            )
        return extract_argb(self.data[entry.offset:])

    def entry_info(self, index: int) -> str:
        """Describe entry ``index`` in one line."""
        entry = self._entry(index)
        if self.group:
            label, value = "id", entry.id
        else:
            label, value = "offset", entry.offset
        return (
            f"TIEntry[{index}] {{ width: {entry.width}, height: {entry.height}, "
            f"ncol: {entry.ncol}, reserved: {entry.reserved}, planes: {entry.planes}, "
            f"bpp: {entry.bpp}, nbytes: {entry.nbytes}, {label}: {value} }}"
        )


def _read_directory(raw: bytes) -> int:
    reserved, kind, count = _DIR_HEADER.unpack_from(raw)
    if reserved != 0 or kind != 1 or count == 0:
        raise IconError(IconError.BAD_ICON_HEADER, "not an icon directory")
    return count


def open_icon(data: BytesLike) -> IconResource:
    """Parse an icon file (directory entries hold file offsets)."""
    raw = bytes(data)
    if len(raw) < _MIN_ICON_SIZE:
        raise IconError(IconError.ILLEGAL_PARAMS, "data too short for an icon directory")
    count = _read_directory(raw)
    if _DIR_HEADER.size + count * _ENTRY.size > len(raw):
        raise IconError(IconError.BROKEN_ICON, "icon directory is truncated")
    entries = []
    for i in range(count):
        fields = _ENTRY.unpack_from(raw, _DIR_HEADER.size + i * _ENTRY.size)
        entries.append(IconEntry(*fields[:7], offset=fields[7]))
    return IconResource(raw, entries, group=False)


def open_group_icon(data: BytesLike) -> IconResource:
    """Parse a group-icon resource (directory entries hold resource ids)."""
    raw = bytes(data)
    if len(raw) < _MIN_GROUP_SIZE:
        raise IconError(IconError.ILLEGAL_PARAMS, "data too short for a group icon")
    count = _read_directory(raw)
    if _DIR_HEADER.size + count * _GROUP_ENTRY.size != len(raw):
        raise IconError(IconError.BROKEN_ICON, "group icon size does not match its count")
    entries = []
    for i in range(count):
        fields = _GROUP_ENTRY.unpack_from(raw, _DIR_HEADER.size + i * _GROUP_ENTRY.size)
        entries.append(IconEntry(*fields[:7], id=fields[7]))
    return IconResource(raw, entries, group=True)


def _require(body: bytes, size: int) -> None:
    if len(body) < size:
        raise IconError(
            IconError.BAD_ICON_IMAGE,
            f"image data holds {len(body)} bytes, {size} are needed",
        )


def _palette(body: bytes, count: int) -> list[tuple[int, int, int]]:
    _require(body, 4 * count)
    return [(body[o + 2], body[o + 1], body[o]) for o in range(0, 4 * count, 4)]


def _lookup(palette: list[tuple[int, int, int]], index: int) -> tuple[int, int, int]:
    if index >= len(palette):
        raise IconError(
            IconError.BAD_ICON_IMAGE,
            f"colour index {index} outside a palette of {len(palette)}",
        )
    return palette[index]


def _convert_4bpp(body: bytes, npixels: int, colours: int) -> bytes:
    palette = _palette(body, colours)
    index_start = 4 * colours
    mask_start = index_start + npixels // 2
    _require(
        body,
        max(index_start + (npixels + 1) // 2, mask_start + (npixels + 7) // 8),
    )
    out = bytearray()
    for p in range(npixels):
        packed = body[index_start + p // 2]
        nibble = packed >> 4 if p % 2 == 0 else packed & 0x0F
        # Both pixels of a nibble pair take their transparency from the pair's first bit.
        masked = body[mask_start + p // 8] & (0x80 >> (p & 6))
        out += bytes((*_lookup(palette, nibble), 0x00 if masked else 0xFF))
    return bytes(out)


def _convert_8bpp(body: bytes, npixels: int, colours: int) -> bytes:
    palette = _palette(body, colours)
    index_start = 4 * colours
    mask_start = index_start + npixels
    _require(body, mask_start + (npixels + 7) // 8)
    out = bytearray()
    for p in range(npixels):
        masked = body[mask_start + p // 8] & (0x80 >> (p % 8))
        colour = _lookup(palette, body[index_start + p])
        out += bytes((*colour, 0x00 if masked else 0xFF))
    return bytes(out)


def _convert_32bpp(body: bytes, npixels: int, colours: int) -> bytes:
    size = 4 * npixels
    _require(body, size)
    out = bytearray(body[:size])
    out[0::4] = body[2:size:4]
    out[2::4] = body[0:size:4]
    return bytes(out)


_CONVERTERS: dict[int, Callable[[bytes, int, int], bytes]] = {
    4: _convert_4bpp,
    8: _convert_8bpp,
    32: _convert_32bpp,
}


def extract_argb(data: BytesLike) -> tuple[int, int, bytes]:
    """Decode one DIB icon image into top-down RGBA bytes.

    Returns ``(width, height, pixels)``. 4, 8 and 32 bits per pixel are supported;
    PNG-compressed images and other depths raise :class:`IconError`.
    """
    raw = bytes(data)
    if raw[:8] == _PNG_SIGNATURE:
        raise IconError(IconError.UNDEFINED, "PNG-compressed icon images are not supported")
    if len(raw) < _INFO_HEADER.size:
        raise IconError(IconError.BAD_ICON_IMAGE, "data too short for a bitmap header")

    fields = _INFO_HEADER.unpack_from(raw)
    width, full_height, bpp, colours = fields[1], fields[2], fields[4], fields[9]
    if width < 0 or full_height < 0:
        raise IconError(IconError.BAD_ICON_IMAGE, f"invalid image size {width}x{full_height}")
    # The stored height covers both the colour and the mask bitmaps.
    height = full_height // 2

    if bpp > 8 and colours != 0:
        raise IconError(IconError.UNDEFINED, "palette given for a true-colour image")
    converter = _CONVERTERS.get(bpp)
    if converter is None:
        raise IconError(IconError.UNDEFINED, f"unsupported bit depth {bpp}")

    pixels = converter(raw[_INFO_HEADER.size:], width * height, colours)
    return width, height, flip_argb_vertically(pixels, width, height)


def flip_argb_vertically(pixels: BytesLike, width: int, height: int) -> bytes:
    """Return four-byte-per-pixel image data with its rows in reverse order."""
    raw = bytes(pixels)
    stride = width * 4
    if width < 0 or height < 0 or len(raw) < stride * height:
        raise ValueError(f"pixel data does not hold a {width}x{height} image")
    rows = [raw[r * stride:(r + 1) * stride] for r in range(height)]
    return b"".join(reversed(rows)) + raw[stride * height:]