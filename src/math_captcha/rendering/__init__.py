"""
Module: rendering

Purpose:
    External typesetting toolchain (latex + dvipng) and the color
    normalization feeding its command line.

Key Classes:
    - TexToolchain: Runs the write/typeset/rasterize/verify stages
    - RenderedImage: Finished image path and size

Key Functions:
    - parse_color(): Color string -> dvipng "rgb R G B"

Dependencies:
    - PIL: Output verification

Used By:
    - math_captcha.manager
"""

from .colors import parse_color
from .toolchain import ARTIFACT_SUFFIXES, RenderedImage, TexToolchain

__all__ = [
    "parse_color",
    "ARTIFACT_SUFFIXES",
    "RenderedImage",
    "TexToolchain",
]
