# rasterkit

Small, dependency-free image tooling written in plain Python:

- **Image writers** for PNG, BMP, TGA (with or without RLE), Radiance HDR and
  baseline JPEG. Each format has an `encode_*` function that returns `bytes`
  and a `write_*` function that saves to a path.
- **A rectangle packer** (skyline bottom-left or best-fit) for building
  texture atlases.
- **An ICO reader** that parses icon directories and decodes 4, 8 and 32 bit
  DIB images to RGBA pixels.

## Installing

```
pip install .
```

## Writing images

Pixels are given as a flat sequence of bytes, row by row from the top left,
with `comp` interleaved channels per pixel: 1 = grey, 2 = grey + alpha,
3 = RGB, 4 = RGBA.

```python
from rasterkit.common import WriteOptions
from rasterkit.png import encode_png, write_png
from rasterkit.bmp import write_bmp
from rasterkit.tga import write_tga
from rasterkit.jpeg import write_jpeg

width, height = 2, 2
rgb = bytes([255, 0, 0,  0, 255, 0,
             0, 0, 255,  255, 255, 255])

options = WriteOptions()
png_bytes = encode_png(width, height, 3, rgb, 0, options)
write_png("out.png", width, height, 3, rgb, 0, options)
write_bmp("out.bmp", width, height, 3, rgb, options)
write_tga("out.tga", width, height, 3, rgb, options)
write_jpeg("out.jpg", width, height, 3, rgb, 90, options)
```

`WriteOptions` is a dataclass with the settings shared by the writers:

| field                   | default | meaning                                          |
|-------------------------|---------|--------------------------------------------------|
| `tga_with_rle`          | `True`  | run-length encode TGA output                     |
| `png_compression_level` | `8`     | hash-chain length for the PNG compressor         |
| `force_png_filter`      | `-1`    | 0..4 forces one PNG row filter; -1 picks per row |
| `flip_vertically`       | `False` | write rows bottom to top                         |

Notes per format:

- **PNG** keeps the channel count of the input. `stride` is the distance in
  bytes between rows; `0` means rows are packed.
- **BMP** expands grey to RGB. Three-channel input (and grey) is written as
  24-bit; four-channel input as 32-bit with an alpha mask.
- **TGA** writes grey or colour images, with alpha for 2 and 4 channels.
- **JPEG** ignores alpha. `quality` runs from 1 to 100; `0` means 90. At 90
  and below the chroma is subsampled 4:2:0.
- **HDR** takes linear floats instead of bytes; alpha is dropped and grey is
  copied into all three channels.

```python
from rasterkit.hdr import write_hdr, linear_to_rgbe

write_hdr("out.hdr", 1, 1, 3, [0.5, 1.0, 2.0], WriteOptions())
linear_to_rgbe(0.5, 1.0, 2.0)   # four RGBE bytes
```

Invalid sizes, channel counts or too-short pixel data raise
`rasterkit.common.ImageWriteError` (a `ValueError`), as does a failure to
write the file. `rasterkit.common.check_image` performs the same validation
on its own.

The zlib stream used by the PNG writer is available as
`rasterkit.deflate.zlib_compress(data, quality)`, and the Paeth predictor as
`rasterkit.png.paeth(a, b, c)`.

## Packing rectangles

```python
from rasterkit.rectpack import RectPacker, PackRect, Heuristic

packer = RectPacker(256, 256, 256)          # width, height, number of nodes
packer.set_heuristic(Heuristic.BF_SORT_HEIGHT)
rects = [PackRect(id=0, w=64, h=32), PackRect(id=1, w=100, h=100)]
all_packed = packer.pack(rects)
for r in rects:
    print(r.id, r.x, r.y, r.was_packed)
```

`pack` fills in `x`, `y` and `was_packed` on each rectangle and returns
whether all of them fitted. Rectangles that did not fit get
`x == y == rasterkit.rectpack.MAX_COORD`. Rectangles with zero width or
height are placed at (0, 0). With fewer nodes than the target width, widths
are rounded up so the packer never runs out of nodes; call
`packer.allow_out_of_mem(True)` to pack at full precision instead, at the
risk of some rectangles failing. Calling `pack` again continues packing into
the same target.

## Reading icons

```python
from rasterkit.tinyico import open_icon

with open("app.ico", "rb") as fh:
    icon = open_icon(fh.read())
for index in range(icon.count):
    print(icon.entry_info(index))
width, height, pixels = icon.extract_argb(0)
```

`open_group_icon` reads the directory layout used for group-icon resources,
whose entries hold resource ids rather than offsets; their images cannot be
extracted from the directory itself. `rasterkit.tinyico.extract_argb(data)`
decodes a single DIB image and returns `(width, height, pixels)` with the
pixels top-down, four bytes each (R, G, B, A). `flip_argb_vertically`
reverses the rows of such pixel data. Problems with the data raise
`IconError` (a `ValueError`), whose `code` attribute tells what went wrong.

## What it does not do

- It writes images but does not read them; the only decoder is for DIB
  images inside icons.
- PNG-compressed icon images and 16 or 24 bit icon images are not decoded.
- It does not upload textures, render fonts or draw anything on screen.

## Running the tests

```
pip install .[test]
pytest
```