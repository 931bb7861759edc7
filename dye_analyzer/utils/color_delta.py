"""
Color Delta Calculation Module

CIE76 (ΔE*ab) perceptual distance and RGB Manhattan distance.

Ranker tier thresholds are calibrated to this plain Euclidean Lab distance.
"""

from typing import Sequence, Union

import numpy as np

from dye_analyzer.schemas.match import LabColor
from dye_analyzer.utils.color_space import hex_to_lab, hex_to_rgb

LabLike = Union[LabColor, Sequence[float], np.ndarray]


def delta_e_cie1976(lab1: LabLike, lab2: LabLike) -> float:
    """
    CIE76 color difference (ΔE*ab).

    Euclidean distance between two L*a*b* colors.

    Args:
        lab1: First color (L*, a*, b*)
        lab2: Second color (L*, a*, b*)

    Returns:
        ΔE*ab (float, >= 0)

    Examples:
        >>> delta_e_cie1976((50, 2.5, -10), (55, 3.5, -9))
        5.196...
    """
    L1, a1, b1 = lab1[0], lab1[1], lab1[2]
    L2, a2, b2 = lab2[0], lab2[1], lab2[2]

    return float(np.sqrt((L1 - L2) ** 2 + (a1 - a2) ** 2 + (b1 - b2) ** 2))


def delta_e_hex(hex1: str, hex2: str) -> float:
    """ΔE*ab between two hex colors, converting both without caching."""
    return delta_e_cie1976(hex_to_lab(hex1), hex_to_lab(hex2))


def absolute_distance(hex1: str, hex2: str) -> int:
    """
    Sum of absolute per-channel RGB differences (0~765).

    Example:
        >>> absolute_distance("FF0000", "00FF00")
        510
    """
    rgb1 = np.array(hex_to_rgb(hex1), dtype=np.int32)
    rgb2 = np.array(hex_to_rgb(hex2), dtype=np.int32)
    return int(np.abs(rgb1 - rgb2).sum())
