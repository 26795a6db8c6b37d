"""
Tone curves and lookup tables.

A curve is a list of control points (x, y) in 0..255, sorted by x, whose
first point sits on x=0 and last on x=255. Values between control points are
linearly interpolated.
"""
import math
from typing import List, NamedTuple, Sequence, Tuple

import numpy as np


class CurvePoint(NamedTuple):
    x: float
    y: float


DEFAULT_CURVE: Tuple[CurvePoint, ...] = (CurvePoint(0, 0), CurvePoint(255, 255))


def round_half_up(value: float) -> int:
    """Rounding used by the curve editor: .5 always goes up."""
    return int(math.floor(value + 0.5))


def _bracket(points: Sequence[CurvePoint], x: int) -> Tuple[CurvePoint, CurvePoint]:
    # Falls back to first/last for x outside the covered range
    p1 = points[0]
    p2 = points[-1]
    for i in range(len(points) - 1):
        curr = points[i]
        nxt = points[i + 1]
        if curr[0] <= x <= nxt[0]:
            return curr, nxt
    return p1, p2


def _interpolate(points: Sequence[CurvePoint], x: int) -> float:
    p1, p2 = _bracket(points, x)
    if p2[0] == p1[0]:
        return float(p1[1])
    t = (x - p1[0]) / (p2[0] - p1[0])
    return p1[1] + t * (p2[1] - p1[1])


def build_lut(points: Sequence[CurvePoint]) -> List[float]:
    """
    256-entry lookup table with values normalised to 0..1.

    Fewer than two points give a flat mid-grey table.
    """
    if len(points) < 2:
        return [0.5] * 256
    return [_interpolate(points, x) / 255.0 for x in range(256)]


def build_lut256(points: Sequence[CurvePoint]) -> List[int]:
    """Same as `build_lut` but with integer values in 0..255."""
    if len(points) < 2:
        return [128] * 256

    lut = []
    for x in range(256):
        p1, p2 = _bracket(points, x)
        if p2[0] == p1[0]:
            lut.append(int(p1[1]))
        else:
            lut.append(round_half_up(_interpolate(points, x)))
    return lut


def is_modified(points: Sequence[CurvePoint], default_points: Sequence[CurvePoint] = DEFAULT_CURVE) -> bool:
    """Exact comparison, no tolerance."""
    if len(points) != len(default_points):
        return True
    for p, dp in zip(points, default_points):
        if p[0] != dp[0] or p[1] != dp[1]:
            return True
    return False


def compose_luts(master: Sequence[float], channel: Sequence[float]) -> List[float]:
    """Run every input through `master` then `channel` (both normalised tables)."""
    composed = []
    for x in range(256):
        idx = min(255, max(0, round_half_up(master[x] * 255)))
        composed.append(channel[idx])
    return composed


def build_channel_tables(curves) -> np.ndarray:
    """
    Composed 8-bit tables for R, G and B, shape (3, 256), dtype uint8.

    The master RGB curve is applied first, then the per-channel curve.
    """
    master = build_lut(curves.rgb)
    tables = np.empty((3, 256), dtype=np.uint8)
    for i, channel_points in enumerate((curves.red, curves.green, curves.blue)):
        composed = compose_luts(master, build_lut(channel_points))
        tables[i] = [min(255, max(0, round_half_up(v * 255))) for v in composed]
    return tables


# =========================================================
# Control point editing
# =========================================================

def _clamp_channel(v: float) -> float:
    return max(0.0, min(255.0, v))


def add_point(points: Sequence[CurvePoint], point: CurvePoint) -> Tuple[CurvePoint, ...]:
    """Insert keeping the points sorted by x (after existing points with equal x)."""
    result = list(points)
    for i, p in enumerate(result):
        if p[0] > point[0]:
            result.insert(i, CurvePoint(*point))
            return tuple(result)
    result.append(CurvePoint(*point))
    return tuple(result)


def remove_point(points: Sequence[CurvePoint], index: int) -> Tuple[CurvePoint, ...]:
    """Endpoints can't be removed."""
    if index <= 0 or index >= len(points) - 1:
        return tuple(points)
    return tuple(p for i, p in enumerate(points) if i != index)


def update_point(points: Sequence[CurvePoint], index: int, point: CurvePoint) -> Tuple[CurvePoint, ...]:
    """Move a point; values are clamped to 0..255 and endpoint x stays pinned."""
    if index < 0 or index >= len(points):
        return tuple(points)

    x = _clamp_channel(point[0])
    y = _clamp_channel(point[1])
    if index == 0:
        x = 0
    elif index == len(points) - 1:
        x = 255

    result = list(points)
    result[index] = CurvePoint(x, y)
    return tuple(result)
