"""
Module: rendering.colors

Purpose:
    Normalize user color strings into the "rgb R G B" form dvipng
    expects for its -fg/-bg arguments.

Key Functions:
    - parse_color(): Hex or rgb() string -> dvipng color

Used By:
    - rendering.toolchain: Builds the dvipng command line
"""

from __future__ import annotations

import re
from typing import Tuple

from math_captcha.errors import InvalidConfigError

TRANSPARENT_PATTERN = re.compile(r"transparent", re.IGNORECASE)
RGB_PATTERN = re.compile(
    r"rgb[( ]?(\d{1,3}\.?\d*)[, ]+(\d{1,3}\.?\d*)[, ]+(\d{1,3}\.?\d*)\)?"
)
HEX_PATTERN = re.compile(r"^#?([0-9a-fA-F]{6})")


def _parse_channels(color: str) -> Tuple[float, float, float]:
    match = RGB_PATTERN.search(color)
    if match:
        red, green, blue = (float(group) for group in match.groups())
        return red, green, blue

    match = HEX_PATTERN.match(color.strip())
    if not match:
        raise InvalidConfigError(f"Unrecognized color: {color!r}")
    digits = match.group(1)
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


def parse_color(color: str) -> str:
    """
    Convert a color to dvipng's "rgb R G B" notation.

    Channels may be 0-255 or 0-1. If any channel exceeds 1 the whole
    triplet is treated as 0-255 and scaled down. Strings mentioning
    "transparent" (any case) pass through untouched.

    Args:
        color: "#RRGGBB", "RRGGBB", "rgb(r, g, b)" or "transparent"

    Returns:
        "rgb R G B" with three decimals per channel, or the input
        unchanged for transparent colors

    Raises:
        InvalidConfigError: If the color cannot be parsed

    Example:
        >>> parse_color("#ff8000")
        'rgb 1.000 0.502 0.000'
        >>> parse_color("rgb(0.5, 0.25, 1)")
        'rgb 0.500 0.250 1.000'
    """
    if TRANSPARENT_PATTERN.search(color):
        return color

    red, green, blue = _parse_channels(color)
    if red > 1 or green > 1 or blue > 1:
        red, green, blue = red / 255, green / 255, blue / 255

    return f"rgb {red:.3f} {green:.3f} {blue:.3f}"
