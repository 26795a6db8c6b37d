"""
Interactive crop editing.

The crop rectangle lives in container percent while the user drags it. A drag
is an explicit state machine fed by pointer_down / pointer_move / pointer_up
calls from the host, so nothing is registered globally and nothing can leak.

Aspect locks are expressed as width / height in the crop's own percent units;
use `aspect_ratio_for_frame` to convert a pixel ratio (16:9 etc.) for a
non-square frame.
"""
from typing import Optional, Tuple

from loguru import logger

from lumicut import config
from lumicut.geometry import FULL_FRAME, Point, Rect, Size, clamp
from lumicut.pipeline.settings import CropArea

HANDLES = ('move', 'n', 's', 'e', 'w', 'ne', 'nw', 'se', 'sw')
CORNER_HANDLES = ('ne', 'nw', 'se', 'sw')
EDGE_HANDLES = ('n', 's', 'e', 'w')

IDLE = 'idle'
DRAGGING = 'dragging'


def aspect_ratio_for_frame(ratio: Optional[float], frame_size: Size) -> Optional[float]:
    """Pixel aspect ratio -> ratio between percent width and percent height."""
    if ratio is None:
        return None
    frame_w, frame_h = frame_size
    if frame_w <= 0:
        return ratio
    return ratio * frame_h / frame_w


def _fit_to_bounds(x: float, y: float, w: float, h: float, bounds: Rect,
                   ratio: Optional[float]) -> Tuple[float, float, float, float]:
    """Shrink (proportionally when locked) to fit, then shift inside the bounds."""
    bx, by, bw, bh = bounds
    if ratio is not None:
        if w > bw or h > bh:
            scale = min(bw / w if w > 0 else 1.0, bh / h if h > 0 else 1.0)
            w *= scale
            h *= scale
    else:
        w = min(w, bw)
        h = min(h, bh)
    x = clamp(x, bx, bx + bw - w)
    y = clamp(y, by, by + bh - h)
    return x, y, w, h


def _locked_limit(value: float, min_value: float, max_value: float) -> float:
    # Bounds win over the size floor
    return min(max(value, min_value), max_value)


def crop_drag_update(
    crop_start: CropArea,
    delta: Point,
    handle: str,
    aspect_lock: Optional[float] = None,
    bounds: Rect = FULL_FRAME,
    min_size: float = config.MIN_CROP_SIZE,
) -> CropArea:
    """
    New crop rectangle for a drag that started at `crop_start`.

    Args:
        crop_start: crop at pointer-down
        delta: pointer movement since pointer-down, container percent
        handle: 'move' or one of the edge / corner handles
        aspect_lock: None for free resizing, else width / height to preserve
        bounds: the image's footprint in container percent
        min_size: size floor for both dimensions

    Returns:
        CropArea inside `bounds`
    """
    if handle not in HANDLES:
        raise ValueError(f"Unknown crop handle: {handle!r}")
    if aspect_lock is not None and aspect_lock <= 0:
        raise ValueError(f"aspect lock must be positive, got {aspect_lock}")

    dx, dy = delta
    bx, by, bw, bh = bounds
    bx1, by1 = bx + bw, by + bh

    sx, sy, sw, sh = crop_start.x, crop_start.y, crop_start.width, crop_start.height
    left, top, right, bottom = sx, sy, sx + sw, sy + sh

    if handle == 'move':
        x = clamp(sx + dx, bx, bx1 - sw)
        y = clamp(sy + dy, by, by1 - sh)
        x, y, w, h = _fit_to_bounds(x, y, sw, sh, bounds, aspect_lock)
        return CropArea(x, y, w, h)

    if aspect_lock is None:
        # Free resize: the opposite edge/corner stays put
        if 'w' in handle:
            left = clamp(left + dx, bx, right - min_size)
        if 'e' in handle:
            right = clamp(right + dx, left + min_size, bx1)
        if 'n' in handle:
            top = clamp(top + dy, by, bottom - min_size)
        if 's' in handle:
            bottom = clamp(bottom + dy, top + min_size, by1)
        x, y, w, h = left, top, right - left, bottom - top

    elif handle in ('e', 'w'):
        # Width follows the pointer, height follows the ratio, centred vertically
        ratio = aspect_lock
        cy = sy + sh / 2
        if handle == 'w':
            anchor_x = right
            width = sw - dx
            max_w = anchor_x - bx
        else:
            anchor_x = left
            width = sw + dx
            max_w = bx1 - anchor_x
        max_h = 2 * min(cy - by, by1 - cy)
        width = _locked_limit(width, max(min_size, min_size * ratio), min(max_w, max_h * ratio))
        height = width / ratio
        x = anchor_x - width if handle == 'w' else anchor_x
        y = cy - height / 2
        w, h = width, height

    elif handle in ('n', 's'):
        ratio = aspect_lock
        cx = sx + sw / 2
        if handle == 'n':
            anchor_y = bottom
            height = sh - dy
            max_h = anchor_y - by
        else:
            anchor_y = top
            height = sh + dy
            max_h = by1 - anchor_y
        max_w = 2 * min(cx - bx, bx1 - cx)
        height = _locked_limit(height, max(min_size, min_size / ratio), min(max_h, max_w / ratio))
        width = height * ratio
        x = cx - width / 2
        y = anchor_y - height if handle == 'n' else anchor_y
        w, h = width, height

    else:
        # Locked corner: the larger of the two pointer deltas drives the size
        ratio = aspect_lock
        grow_x = dx if 'e' in handle else -dx
        grow_y = dy if 's' in handle else -dy
        if abs(grow_x) >= abs(grow_y * ratio):
            width = sw + grow_x
        else:
            width = sw + grow_y * ratio

        anchor_x = right if 'w' in handle else left
        anchor_y = bottom if 'n' in handle else top
        max_w = (anchor_x - bx) if 'w' in handle else (bx1 - anchor_x)
        max_h = (anchor_y - by) if 'n' in handle else (by1 - anchor_y)

        width = _locked_limit(width, max(min_size, min_size * ratio), min(max_w, max_h * ratio))
        height = width / ratio
        x = anchor_x - width if 'w' in handle else anchor_x
        y = anchor_y - height if 'n' in handle else anchor_y
        w, h = width, height

    x, y, w, h = _fit_to_bounds(x, y, w, h, bounds, aspect_lock)
    return CropArea(x, y, w, h)


def apply_aspect_lock(
    crop: CropArea,
    ratio: Optional[float],
    bounds: Rect = FULL_FRAME,
    min_size: float = config.MIN_CROP_SIZE,
) -> CropArea:
    """
    Re-shape an existing crop to `ratio`, keeping its centre.

    The wider (or taller) side is trimmed to hit the ratio, the result is
    grown to the size floor if needed and finally fitted into the bounds.
    """
    if ratio is None:
        return crop
    if ratio <= 0:
        raise ValueError(f"aspect ratio must be positive, got {ratio}")

    cx = crop.x + crop.width / 2
    cy = crop.y + crop.height / 2
    w, h = crop.width, crop.height

    if h > 0 and w / h > ratio:
        w = h * ratio
    else:
        h = w / ratio

    if w < min_size or h < min_size:
        grow = max(min_size / w if w > 0 else 1.0, min_size / h if h > 0 else 1.0)
        w *= grow
        h *= grow

    x, y, w, h = _fit_to_bounds(cx - w / 2, cy - h / 2, w, h, bounds, ratio)
    return CropArea(x, y, w, h)


def hit_test(crop: CropArea, point: Point, radius: float = 3.0) -> Optional[str]:
    """
    Handle under `point` (container percent): corners first, then edges,
    then the interior ('move'). None when outside.
    """
    x, y, w, h = crop.x, crop.y, crop.width, crop.height
    handles = {
        'nw': (x, y),
        'ne': (x + w, y),
        'sw': (x, y + h),
        'se': (x + w, y + h),
        'w': (x, y + h / 2),
        'e': (x + w, y + h / 2),
        'n': (x + w / 2, y),
        's': (x + w / 2, y + h),
    }
    px, py = point
    for key in CORNER_HANDLES + EDGE_HANDLES:
        hx, hy = handles[key]
        if abs(px - hx) + abs(py - hy) < radius:
            return key
    if x < px < x + w and y < py < y + h:
        return 'move'
    return None


class CropDragController:
    """
    idle -> dragging(handle) on pointer_down, back to idle on pointer_up or
    pointer_cancel.

    Pointer coordinates are container pixels when `container_size` is given,
    otherwise container percent.
    """

    def __init__(self, bounds: Rect = FULL_FRAME, aspect_lock: Optional[float] = None,
                 container_size: Optional[Size] = None):
        self.bounds = bounds
        self.aspect_lock = aspect_lock
        self.container_size = container_size

        self.state = IDLE
        self.handle: Optional[str] = None
        self.crop_start: Optional[CropArea] = None
        self.pointer_start: Optional[Point] = None
        self.crop: Optional[CropArea] = None

    @property
    def is_dragging(self) -> bool:
        return self.state == DRAGGING

    def _to_percent(self, point) -> Point:
        if self.container_size is None:
            return Point(float(point[0]), float(point[1]))
        cw, ch = self.container_size
        return Point(
            point[0] / cw * 100.0 if cw else 0.0,
            point[1] / ch * 100.0 if ch else 0.0,
        )

    def pointer_down(self, handle: str, point, crop: CropArea) -> None:
        if handle not in HANDLES:
            raise ValueError(f"Unknown crop handle: {handle!r}")
        if self.state == DRAGGING:
            # A second pointer while dragging restarts from the current crop
            self.pointer_up()
        self.state = DRAGGING
        self.handle = handle
        self.crop_start = crop
        self.crop = crop
        self.pointer_start = self._to_percent(point)
        logger.debug(f"[Crop] Drag start: {handle} at {self.pointer_start}")

    def pointer_move(self, point) -> Optional[CropArea]:
        """Updated crop, or None when no drag is in progress."""
        if self.state != DRAGGING:
            return None
        current = self._to_percent(point)
        delta = Point(current.x - self.pointer_start.x, current.y - self.pointer_start.y)
        self.crop = crop_drag_update(self.crop_start, delta, self.handle, self.aspect_lock, self.bounds)
        return self.crop

    def pointer_up(self) -> Optional[CropArea]:
        """End the drag and return the final crop."""
        final = self.crop
        if self.state == DRAGGING:
            logger.debug(f"[Crop] Drag end: {self.handle} -> {final}")
        self.state = IDLE
        self.handle = None
        self.crop_start = None
        self.pointer_start = None
        return final

    def pointer_cancel(self) -> Optional[CropArea]:
        return self.pointer_up()

    def set_aspect_lock(self, ratio: Optional[float], crop: CropArea) -> CropArea:
        """Change the lock; an existing crop is re-derived around its centre."""
        self.aspect_lock = ratio
        self.crop = apply_aspect_lock(crop, ratio, self.bounds)
        return self.crop
