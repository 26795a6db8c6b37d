"""
网格拼图模块
Grid collage: a rows x columns layout whose cells can span several rows,
each showing one image with cover placement and a focal point.
"""
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from PIL import Image, ImageColor, ImageDraw
from loguru import logger

from lumicut import config
from lumicut.effects import RenderSurface
from lumicut.geometry import (
    Point,
    Rect,
    Size,
    calculate_canvas_size,
    cell_bounds,
    clamp,
    compute_cover_placement,
    cumulative_positions,
    resize_track,
)
from lumicut.pipeline.render import RasterImage


def _new_id() -> str:
    return uuid.uuid4().hex[:9]


def _equal_sizes(count: int) -> List[float]:
    return [100.0 / count] * count


@dataclass
class GridCell:
    row: int          # 1-based
    col: int          # 1-based
    row_span: int = 1
    col_span: int = 1
    position: Point = Point(50.0, 50.0)
    id: str = field(default_factory=_new_id)


@dataclass
class GridLineSettings:
    show_inner_lines: bool = True
    show_edges: bool = True
    thickness: int = 2            # px, 1-10
    color: str = '#000000'

    def __post_init__(self):
        self.thickness = int(clamp(self.thickness, 1, 10))


def _initial_cells(rows: int, cols: int) -> List[GridCell]:
    return [GridCell(row=r, col=c) for r in range(1, rows + 1) for c in range(1, cols + 1)]


class GridLayout:
    """
    Mutable grid state.

    Row heights and column widths are percentages summing to 100. Changing the
    grid size rebuilds every cell; resizing a track moves the boundary with
    its neighbour and never lets a track drop below MIN_TRACK_SIZE.
    """

    def __init__(self, rows: int = 3, columns: int = 3, aspect: str = '1:1',
                 lines: Optional[GridLineSettings] = None):
        self.rows = 0
        self.columns = 0
        self.cells: List[GridCell] = []
        self.row_heights: List[float] = []
        self.column_widths: List[float] = []
        self.aspect = (1, 1)
        self.lines = lines or GridLineSettings()
        self.set_grid_size(rows, columns)
        self.set_aspect(aspect)

    def set_grid_size(self, rows: int, columns: int):
        self.rows = int(clamp(rows, config.MIN_GRID_TRACKS, config.MAX_GRID_TRACKS))
        self.columns = int(clamp(columns, config.MIN_GRID_TRACKS, config.MAX_GRID_TRACKS))
        self.cells = _initial_cells(self.rows, self.columns)
        self.row_heights = _equal_sizes(self.rows)
        self.column_widths = _equal_sizes(self.columns)

    def set_aspect(self, aspect):
        """Preset label ('16:9') or a (width, height) pair."""
        if isinstance(aspect, str):
            if aspect not in config.GRID_ASPECT_PRESETS:
                raise ValueError(f"Unknown grid aspect preset: {aspect!r}")
            aspect = config.GRID_ASPECT_PRESETS[aspect]
        width, height = aspect
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid grid aspect: {aspect}")
        self.aspect = (width, height)

    def reset(self):
        self.set_grid_size(3, 3)
        self.aspect = config.GRID_ASPECT_PRESETS['1:1']
        self.lines = GridLineSettings()

    def find_cell(self, cell_id: str) -> Optional[GridCell]:
        for cell in self.cells:
            if cell.id == cell_id:
                return cell
        return None

    def delete_cell(self, cell_id: str) -> bool:
        """
        Remove a cell; the cell below in the same column takes over its rows,
        otherwise the cell above grows down into them.
        """
        cell = self.find_cell(cell_id)
        if cell is None:
            return False

        below = next((c for c in self.cells
                      if c.col == cell.col and c.row == cell.row + cell.row_span and c.id != cell_id), None)
        if below is not None:
            below.row = cell.row
            below.row_span += cell.row_span
        else:
            above = next((c for c in self.cells
                          if c.col == cell.col and c.row + c.row_span == cell.row and c.id != cell_id), None)
            if above is not None:
                above.row_span += cell.row_span

        self.cells = [c for c in self.cells if c.id != cell_id]
        return True

    def set_cell_position(self, cell_id: str, x: float, y: float):
        cell = self.find_cell(cell_id)
        if cell is not None:
            cell.position = Point(clamp(x, 0.0, 100.0), clamp(y, 0.0, 100.0))

    def resize_row(self, index: int, delta: float):
        self.row_heights = resize_track(self.row_heights, index, delta, config.MIN_TRACK_SIZE)

    def resize_column(self, index: int, delta: float):
        self.column_widths = resize_track(self.column_widths, index, delta, config.MIN_TRACK_SIZE)

    def canvas_size(self, base_size: float = config.GRID_BASE_SIZE) -> Size:
        return calculate_canvas_size(self.aspect, base_size)

    def track_positions(self, canvas: Size) -> Tuple[List[float], List[float]]:
        """(row_positions, col_positions) in pixels, each starting at 0."""
        return (cumulative_positions(self.row_heights, canvas.height),
                cumulative_positions(self.column_widths, canvas.width))

    def cell_rect(self, cell: GridCell, canvas: Size) -> Rect:
        row_positions, col_positions = self.track_positions(canvas)
        return cell_bounds(cell.row, cell.col, cell.row_span, cell.col_span, row_positions, col_positions)


def _draw_cell(canvas: Image.Image, image: RasterImage, bounds: Rect, focal: Point):
    left, top = int(round(bounds.x)), int(round(bounds.y))
    right, bottom = int(round(bounds.right)), int(round(bounds.bottom))
    cell_w, cell_h = right - left, bottom - top
    if cell_w <= 0 or cell_h <= 0:
        return

    placement = compute_cover_placement(Size(cell_w, cell_h), image.natural_size, 1.0, focal)
    draw_w = max(1, int(round(placement.width)))
    draw_h = max(1, int(round(placement.height)))
    src = image.to_rgba().resize((draw_w, draw_h), Image.Resampling.LANCZOS)

    # Clip to the cell
    tile = Image.new('RGBA', (cell_w, cell_h), (0, 0, 0, 0))
    tile.paste(src, (int(round(placement.x)), int(round(placement.y))))
    canvas.alpha_composite(tile, (left, top))


def _draw_lines(canvas: Image.Image, lines: GridLineSettings,
                row_positions: List[float], col_positions: List[float]):
    draw = ImageDraw.Draw(canvas)
    color = ImageColor.getcolor(lines.color, 'RGBA')
    width, height = canvas.size
    t = lines.thickness
    half = t / 2

    if lines.show_inner_lines:
        for x in col_positions[1:-1]:
            x0 = int(round(x - half))
            draw.rectangle([x0, 0, x0 + t - 1, height - 1], fill=color)
        for y in row_positions[1:-1]:
            y0 = int(round(y - half))
            draw.rectangle([0, y0, width - 1, y0 + t - 1], fill=color)

    if lines.show_edges:
        draw.rectangle([0, 0, width - 1, height - 1], outline=color, width=t)


def compose_grid(
    layout: GridLayout,
    images: Mapping[str, RasterImage],
    base_size: float = config.GRID_BASE_SIZE,
) -> RenderSurface:
    """
    Render the collage.

    Args:
        layout: grid state
        images: cell id -> decoded image; cells without an image stay transparent
        base_size: long edge of the output in pixels

    Returns:
        RenderSurface holding the collage
    """
    canvas_size = layout.canvas_size(base_size)
    width, height = int(round(canvas_size.width)), int(round(canvas_size.height))
    canvas_size = Size(width, height)
    row_positions, col_positions = layout.track_positions(canvas_size)

    canvas = Image.new('RGBA', (width, height), (0, 0, 0, 0))
    drawn = 0
    for cell in layout.cells:
        image = images.get(cell.id)
        if image is None:
            continue
        bounds = cell_bounds(cell.row, cell.col, cell.row_span, cell.col_span, row_positions, col_positions)
        _draw_cell(canvas, image, bounds, cell.position)
        drawn += 1

    _draw_lines(canvas, layout.lines, row_positions, col_positions)
    logger.debug(f"[Grid] {layout.rows}x{layout.columns} collage {width}x{height}, {drawn} images")
    return RenderSurface.from_image(canvas)


def images_by_cell(layout: GridLayout, images: List[RasterImage]) -> Dict[str, RasterImage]:
    """Assign images to cells in reading order (row, then column)."""
    ordered = sorted(layout.cells, key=lambda c: (c.row, c.col))
    return {cell.id: image for cell, image in zip(ordered, images)}
