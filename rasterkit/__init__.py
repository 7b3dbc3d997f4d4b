"""Image writers (PNG, BMP, TGA, HDR, JPEG), a rectangle packer and an icon reader."""

__version__ = "0.1.0"