"""
Geometry helpers.

Two coordinate systems are used throughout the package:

* pixel space - absolute positions inside a container, canvas or image
* percent space - 0..100 along each axis of some reference frame

Crop rectangles are stored in percent space so they survive resizes of the
preview box; export math converts them to pixels at the very end.
"""
from typing import List, NamedTuple, Sequence, Tuple, Union


class Size(NamedTuple):
    width: float
    height: float


class Point(NamedTuple):
    x: float
    y: float


class Rect(NamedTuple):
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)


FULL_FRAME = Rect(0.0, 0.0, 100.0, 100.0)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def is_quarter_turn(rotation: int) -> bool:
    """True for 90 / 270 degree rotations, which swap width and height."""
    return rotation % 180 == 90


def rotated_size(size: Size, rotation: int) -> Size:
    if is_quarter_turn(rotation):
        return Size(size[1], size[0])
    return Size(size[0], size[1])


# =========================================================
# Percent <-> pixel conversions
# =========================================================

def percent_to_pixels(percent: float, total: float) -> float:
    return percent / 100.0 * total


def pixels_to_percent(pixels: float, total: float) -> float:
    if total == 0:
        return 0.0
    return pixels / total * 100.0


def rect_percent_to_pixels(rect: Rect, frame: Size) -> Rect:
    return Rect(
        percent_to_pixels(rect[0], frame[0]),
        percent_to_pixels(rect[1], frame[1]),
        percent_to_pixels(rect[2], frame[0]),
        percent_to_pixels(rect[3], frame[1]),
    )


def rect_pixels_to_percent(rect: Rect, frame: Size) -> Rect:
    return Rect(
        pixels_to_percent(rect[0], frame[0]),
        pixels_to_percent(rect[1], frame[1]),
        pixels_to_percent(rect[2], frame[0]),
        pixels_to_percent(rect[3], frame[1]),
    )


# =========================================================
# Image placement
# =========================================================

def compute_cover_placement(
    container: Union[Rect, Size],
    image_size: Size,
    zoom: float = 1.0,
    focal: Point = Point(50.0, 50.0),
) -> Rect:
    """
    Place an image so that it covers the container, then zoom it.

    The focal point (0-100 per axis) selects the visible part of the image:
    offset = (container - scaled_image) * focal / 100. When the scaled image
    is smaller than the container the same formula positions the letterbox.

    Args:
        container: target rectangle (a Size is treated as a rect at the origin)
        image_size: natural image size in pixels
        zoom: extra scale applied on top of the cover scale
        focal: focal point in percent

    Returns:
        Rect of the drawn image in container pixel coordinates
    """
    if len(container) == 2:
        origin_x, origin_y = 0.0, 0.0
        cont_w, cont_h = container
    else:
        origin_x, origin_y, cont_w, cont_h = container

    img_w, img_h = image_size
    if img_w <= 0 or img_h <= 0 or cont_w <= 0 or cont_h <= 0:
        return Rect(origin_x, origin_y, 0.0, 0.0)

    base_scale = max(cont_w / img_w, cont_h / img_h)
    scale = base_scale * zoom
    width = img_w * scale
    height = img_h * scale

    x = origin_x + (cont_w - width) * (focal[0] / 100.0)
    y = origin_y + (cont_h - height) * (focal[1] / 100.0)
    return Rect(x, y, width, height)


def compute_contain_placement(container_size: Size, image_size: Size, rotation: int = 0) -> Rect:
    """
    Fit the (rotated) image entirely inside the container, centred.

    For 90/270 rotations the footprint of the image is its transposed size.
    Returns the footprint rectangle in container pixels.
    """
    cont_w, cont_h = container_size
    img_w, img_h = rotated_size(Size(*image_size), rotation)
    if img_w <= 0 or img_h <= 0 or cont_w <= 0 or cont_h <= 0:
        return Rect(0.0, 0.0, 0.0, 0.0)

    scale = min(cont_w / img_w, cont_h / img_h)
    width = img_w * scale
    height = img_h * scale
    return Rect((cont_w - width) / 2, (cont_h - height) / 2, width, height)


def compute_image_bounds(container_size: Size, image_size: Size, rotation: int = 0) -> Rect:
    """Contain placement of the rotated image, in container percent."""
    placement = compute_contain_placement(container_size, image_size, rotation)
    return rect_pixels_to_percent(placement, container_size)


def container_to_image_crop(crop: Rect, image_bounds: Rect) -> Rect:
    """
    Map a container-relative crop onto the image's own 0-100 frame.

    Parts of the crop lying outside the image are clipped away.
    """
    bx, by, bw, bh = image_bounds
    if bw <= 0 or bh <= 0:
        return FULL_FRAME

    left = clamp((crop[0] - bx) / bw * 100.0, 0.0, 100.0)
    top = clamp((crop[1] - by) / bh * 100.0, 0.0, 100.0)
    right = clamp((crop[0] + crop[2] - bx) / bw * 100.0, 0.0, 100.0)
    bottom = clamp((crop[1] + crop[3] - by) / bh * 100.0, 0.0, 100.0)
    return Rect(left, top, right - left, bottom - top)


# =========================================================
# Grid layout
# =========================================================

def cumulative_positions(percentages: Sequence[float], total_size: float) -> List[float]:
    """Turn track sizes (percent, summing to ~100) into pixel boundaries starting at 0."""
    positions = [0.0]
    for pct in percentages:
        positions.append(positions[-1] + (pct / 100.0) * total_size)
    return positions


def grid_line_positions(positions: Sequence[float]) -> List[float]:
    """Inner boundaries only (the outer edges are drawn as a frame)."""
    return list(positions[1:-1])


def calculate_canvas_size(aspect: Tuple[float, float], base_size: float = 1200) -> Size:
    """Long edge is `base_size`, short edge follows the aspect ratio."""
    ratio = aspect[0] / aspect[1]
    if ratio >= 1:
        return Size(base_size, base_size / ratio)
    return Size(base_size * ratio, base_size)


def cell_bounds(
    row: int,
    col: int,
    row_span: int,
    col_span: int,
    row_positions: Sequence[float],
    col_positions: Sequence[float],
) -> Rect:
    """Pixel bounds of a grid cell; `row` / `col` are 1-based like CSS grid lines."""
    def _at(positions, index):
        if 0 <= index < len(positions):
            return positions[index]
        return 0.0

    x = _at(col_positions, col - 1)
    y = _at(row_positions, row - 1)
    width = _at(col_positions, col - 1 + col_span) - x
    height = _at(row_positions, row - 1 + row_span) - y
    return Rect(x, y, width, height)


def resize_track(sizes: Sequence[float], index: int, delta: float, min_size: float = 10.0) -> List[float]:
    """
    Move the boundary between track `index` and `index + 1` by `delta` percent.

    The neighbour absorbs the change. Moves that would squeeze either track
    below `min_size` are refused and the sizes are returned unchanged.
    """
    result = list(sizes)
    if index < 0 or index >= len(result) - 1:
        return result

    current = result[index]
    following = result[index + 1]
    new_current = clamp(current + delta, min_size, 100.0 - min_size)
    new_following = following - (new_current - current)

    if new_following >= min_size:
        result[index] = new_current
        result[index + 1] = new_following
    return result
