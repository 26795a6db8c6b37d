import math
from typing import List, Optional, Tuple

import numpy as np
from PIL import Image
from loguru import logger

from lumicut import config
from lumicut.effects import (
    RenderSurface,
    apply_curves,
    apply_filter_chain,
    apply_grain,
    apply_posterize,
    apply_vignette,
)
from lumicut.errors import ImageNotReadyError, RenderSurfaceError
from lumicut.filters import blur_primitive, build_filter_chain, sharpness_primitive
from lumicut.geometry import FULL_FRAME, Rect, Size, container_to_image_crop, rotated_size
from lumicut.pipeline.settings import EditSettings, Transform


class RasterImage:
    """
    Decoded, read-only source image.

    Wraps a Pillow image; the pipeline only reads its pixels and dimensions.
    """

    def __init__(self, image: Image.Image):
        if image is None:
            raise ImageNotReadyError()
        self._image = image

    @property
    def natural_width(self) -> int:
        return self._image.width

    @property
    def natural_height(self) -> int:
        return self._image.height

    @property
    def natural_size(self) -> Size:
        return Size(self.natural_width, self.natural_height)

    def to_rgba(self) -> Image.Image:
        """RGBA copy of the pixels; the wrapped image itself is never handed out."""
        if self._image.mode == 'RGBA':
            return self._image.copy()
        return self._image.convert('RGBA')


def compute_output_size(image_size: Size, transform: Transform, crop: Rect) -> Tuple[int, int]:
    """
    Pixel size of the exported buffer.

    `crop` is image-relative percent of the rotated, zoomed image. Never
    smaller than 1x1, however small the crop or the source.
    """
    base_w, base_h = rotated_size(image_size, transform.rotation)
    canvas_w = int(base_w * transform.zoom)
    canvas_h = int(base_h * transform.zoom)
    width = int(crop[2] / 100 * canvas_w)
    height = int(crop[3] / 100 * canvas_h)
    return max(1, width), max(1, height)


def compute_scale_factor(width: int, height: int) -> float:
    """Relative to the 600px reference the preview effects are tuned for."""
    return max(1.0, max(width, height) / config.REFERENCE_SIZE)


_TRANSPOSE = {
    90: Image.Transpose.ROTATE_270,   # Pillow rotates counter-clockwise
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}


def _rotate_offset(dx: float, dy: float, rotation: int) -> Tuple[float, float]:
    # Clockwise rotation in y-down coordinates
    rad = math.radians(rotation)
    cos_a = round(math.cos(rad))
    sin_a = round(math.sin(rad))
    return dx * cos_a - dy * sin_a, dx * sin_a + dy * cos_a


def draw_transformed(image: RasterImage, transform: Transform, crop: Rect) -> RenderSurface:
    """
    Draw the source into a buffer the size of the crop.

    Equivalent to: translate to canvas centre, rotate, scale by zoom,
    translate by the pan offset (percent of the natural image size), draw the
    image centred, with the canvas shifted so the crop origin lands at (0, 0).
    Rotation is always a right angle, so it is done with an exact transpose.
    """
    natural = image.natural_size
    base_w, base_h = rotated_size(natural, transform.rotation)
    canvas_w = int(base_w * transform.zoom)
    canvas_h = int(base_h * transform.zoom)

    out_w, out_h = compute_output_size(natural, transform, crop)
    crop_x = crop[0] / 100 * canvas_w
    crop_y = crop[1] / 100 * canvas_h
    surface = RenderSurface(out_w, out_h)

    src = image.to_rgba()
    if transform.rotation in _TRANSPOSE:
        src = src.transpose(_TRANSPOSE[transform.rotation])

    zoom = transform.zoom
    if zoom != 1:
        scaled_w = max(1, int(round(src.width * zoom)))
        scaled_h = max(1, int(round(src.height * zoom)))
        src = src.resize((scaled_w, scaled_h), Image.Resampling.BICUBIC)

    offset_x = transform.position[0] / 100 * natural[0]
    offset_y = transform.position[1] / 100 * natural[1]
    rot_dx, rot_dy = _rotate_offset(offset_x, offset_y, transform.rotation)

    left = canvas_w / 2 - src.width / 2 + rot_dx * zoom - crop_x
    top = canvas_h / 2 - src.height / 2 + rot_dy * zoom - crop_y

    canvas = Image.new('RGBA', (out_w, out_h), (0, 0, 0, 0))
    canvas.paste(src, (int(round(left)), int(round(top))))
    surface.put_pixels(np.asarray(canvas))
    return surface


def render(
    image: Optional[RasterImage],
    settings: EditSettings,
    image_bounds: Optional[Rect] = None,
    rng: Optional[np.random.Generator] = None,
) -> RenderSurface:
    """
    Render the full-resolution result of `settings` (before splitting).

    Stages, in order: crop mapping, output sizing, transformed draw,
    declarative filters, blur, curves, posterize, grain, vignette, sharpness.

    Args:
        image: decoded source; None raises ImageNotReadyError
        settings: edit settings; `settings.crop` is container-relative
        image_bounds: the image's footprint inside the container (percent).
                      None means the crop is already image-relative.
        rng: random generator for grain

    Raises:
        ImageNotReadyError: no decoded image
        RenderSurfaceError: the output buffer could not be obtained
    """
    if image is None:
        raise ImageNotReadyError()

    # 1. Container-relative crop -> image-relative crop
    bounds = FULL_FRAME if image_bounds is None else image_bounds
    crop = container_to_image_crop(settings.crop.as_rect(), bounds)

    # 2. Output size, 3. scale factor
    transform = settings.transform
    out_w, out_h = compute_output_size(image.natural_size, transform, crop)
    scale_factor = compute_scale_factor(out_w, out_h)
    logger.debug(
        f"[Render] {image.natural_width}x{image.natural_height} -> {out_w}x{out_h} "
        f"(rot={transform.rotation}, zoom={transform.zoom:.2f}, scale={scale_factor:.3f})"
    )

    # 4. Geometry
    surface = draw_transformed(image, transform, crop)
    if not surface.available:
        raise RenderSurfaceError()

    adjustments = settings.adjustments
    filters = settings.filters

    # 5. Declarative filters (blur excluded)
    chain = build_filter_chain(adjustments, filters, scale_factor, include_blur=False)
    if chain:
        logger.debug(f"[Render] Filter chain: {' '.join(str(p) for p in chain)}")
        apply_filter_chain(surface, chain)

    # 6. Blur, scaled to output resolution
    blur = blur_primitive(filters.blur, scale_factor)
    if blur is not None:
        apply_filter_chain(surface, [blur])

    # 7. Curves
    if settings.curves.is_modified():
        apply_curves(surface, settings.curves)

    # 8. Pixel effects, fixed order
    apply_posterize(surface, filters.posterize)
    apply_grain(surface, filters.grain, scale_factor, rng=rng)
    apply_vignette(surface, filters.vignette)

    # 9. Sharpness approximation
    sharp = sharpness_primitive(adjustments.sharpness, mode='export')
    if sharp is not None:
        apply_filter_chain(surface, [sharp])

    return surface


def slice_boundaries(total_width: int, count: int) -> List[int]:
    """Integer x boundaries of `count` equal strips; the last one ends at total_width."""
    count = max(1, int(count))
    return [int(math.floor(i * total_width / count)) for i in range(count)] + [total_width]


def split_surface(surface: RenderSurface, count: int) -> List[RenderSurface]:
    """
    Cut into `count` vertical strips whose widths sum to the surface width.

    A surface narrower than `count` pixels gives one 1px strip per column.
    """
    if count > surface.width:
        logger.warning(f"[Render] {surface.width}px is too narrow for {count} slices, using {surface.width}")
        count = surface.width
    if count <= 1:
        return [surface]
    bounds = slice_boundaries(surface.width, count)
    return [
        surface.region(bounds[i], 0, bounds[i + 1] - bounds[i], surface.height)
        for i in range(count)
    ]
