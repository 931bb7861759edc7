"""
Color Space Conversion Utilities

hex ⇄ sRGB ⇄ CIE XYZ ⇄ CIE L*a*b* (D65) conversion functions.

Malformed hex input never raises: it decodes to black (0, 0, 0) so that
ranking always succeeds for string input.
"""

import re
from typing import Optional, Tuple

import numpy as np

from dye_analyzer.schemas.match import LabColor

# sRGB (D65) -> XYZ, rows produce X, Y, Z
SRGB_TO_XYZ = np.array(
    [
        [0.4124564, 0.3575761, 0.1804375],
        [0.2126729, 0.7151522, 0.0721750],
        [0.0193339, 0.1191920, 0.9503041],
    ]
)

# D65 reference white
REF_X = 95.047
REF_Y = 100.0
REF_Z = 108.883

LINEAR_THRESHOLD = 0.04045
LAB_EPSILON = 0.008856

_HEX_RE = re.compile(r"^[0-9A-F]{6}$")


def normalize_hex(hex_code: str) -> str:
    """
    Strip a leading '#' and uppercase.

    Example:
        >>> normalize_hex("#ff00aa")
        'FF00AA'
    """
    return hex_code.replace("#", "").strip().upper()


def is_valid_hex(hex_code: str) -> bool:
    """True if hex_code is exactly 6 hex digits once normalized."""
    return bool(_HEX_RE.match(normalize_hex(hex_code)))


def hex_to_rgb(hex_code: str) -> Tuple[int, int, int]:
    """
    Parse a hex color string to an (R, G, B) tuple.

    Args:
        hex_code: 6-digit hex, with or without '#', any case

    Returns:
        (r, g, b) in 0~255. Anything that is not 6 hex digits yields (0, 0, 0).

    Example:
        >>> hex_to_rgb("FF8000")
        (255, 128, 0)
        >>> hex_to_rgb("nope")
        (0, 0, 0)
    """
    value = normalize_hex(hex_code)
    if not _HEX_RE.match(value):
        return 0, 0, 0
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def rgb_to_hex(r: int, g: int, b: int) -> str:
    """Format channels as uppercase hex, clamping each to 0~255."""
    r, g, b = (max(0, min(255, int(c))) for c in (r, g, b))
    return f"{r:02X}{g:02X}{b:02X}"


def rgb_string_to_hex(rgb_string: str) -> Optional[str]:
    """
    Convert an "R:G:B" string (as stored on item metadata) to hex.

    Returns:
        Uppercase hex, or None if the string is not three integers
    """
    parts = rgb_string.split(":")
    if len(parts) != 3:
        return None
    try:
        r, g, b = (int(p) for p in parts)
    except ValueError:
        return None
    return rgb_to_hex(r, g, b)


def srgb_to_linear(channel: float) -> float:
    """
    Undo sRGB gamma for one normalized channel (0.0~1.0).

    Linear segment at or below 0.04045, 2.4 power law above.
    """
    if channel > LINEAR_THRESHOLD:
        return ((channel + 0.055) / 1.055) ** 2.4
    return channel / 12.92


def rgb_to_xyz(rgb: Tuple[int, int, int]) -> Tuple[float, float, float]:
    """
    Convert sRGB (0~255) to CIE XYZ scaled to 0~100.

    Args:
        rgb: (r, g, b) integer channels

    Returns:
        (X, Y, Z)
    """
    linear = np.array([srgb_to_linear(c / 255.0) for c in rgb])
    x, y, z = SRGB_TO_XYZ.dot(linear) * 100.0
    return float(x), float(y), float(z)


def _lab_f(t: float) -> float:
    if t > LAB_EPSILON:
        return t ** (1.0 / 3.0)
    return 7.787 * t + 16.0 / 116.0


def xyz_to_lab(xyz: Tuple[float, float, float]) -> LabColor:
    """
    Convert CIE XYZ (0~100) to CIE L*a*b* against the D65 white point.

    Example:
        >>> lab = xyz_to_lab((95.047, 100.0, 108.883))
        >>> round(lab.L, 3), round(lab.a, 3), round(lab.b, 3)
        (100.0, 0.0, 0.0)
    """
    fx = _lab_f(xyz[0] / REF_X)
    fy = _lab_f(xyz[1] / REF_Y)
    fz = _lab_f(xyz[2] / REF_Z)

    return LabColor(L=116.0 * fy - 16.0, a=500.0 * (fx - fy), b=200.0 * (fy - fz))


def hex_to_lab(hex_code: str) -> LabColor:
    """
    Convert a hex color directly to CIE L*a*b*.

    Pure and deterministic; malformed input is treated as black.
    """
    return xyz_to_lab(rgb_to_xyz(hex_to_rgb(hex_code)))


def is_color_dark(hex_code: str) -> bool:
    """True if perceived luminance is below 0.5 (use light text on it)."""
    r, g, b = hex_to_rgb(hex_code)
    luminance = (0.299 * r + 0.587 * g + 0.114 * b) / 255.0
    return luminance < 0.5
