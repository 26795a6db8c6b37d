"""
像素效果模块
Pixel buffer effects and the render surface they operate on.

A RenderSurface owns an RGBA uint8 buffer (row-major, 4 bytes per pixel).
Declarative filter chains are executed through a scratch surface
(`apply_filter_chain`); curve, posterize, grain and vignette mutate the buffer
directly.
"""
import math
from typing import Optional, Sequence

import numpy as np
from PIL import Image, ImageFilter
from loguru import logger

from lumicut.curves import build_channel_tables
from lumicut.errors import RenderSurfaceError
from lumicut.filters import FilterPrimitive
from lumicut.math_ops import (
    apply_color_matrix_inplace,
    apply_linear_transfer_inplace,
    apply_channel_luts_inplace,
)


class RenderSurface:
    """
    Off-screen RGBA pixel buffer.

    A freshly created surface is fully transparent. Once `release()` has been
    called the backing store is gone and every pixel access raises
    RenderSurfaceError.
    """

    def __init__(self, width: int, height: int, pixels: Optional[np.ndarray] = None):
        width = max(0, int(width))
        height = max(0, int(height))
        if pixels is None:
            try:
                pixels = np.zeros((height, width, 4), dtype=np.uint8)
            except MemoryError as e:
                raise RenderSurfaceError(f"render surface unavailable: {width}x{height}") from e
        elif pixels.shape != (height, width, 4) or pixels.dtype != np.uint8:
            raise RenderSurfaceError(
                f"render surface unavailable: expected ({height}, {width}, 4) uint8, "
                f"got {pixels.shape} {pixels.dtype}"
            )
        self.width = width
        self.height = height
        self._pixels = np.ascontiguousarray(pixels)

    @classmethod
    def from_image(cls, image: Image.Image) -> 'RenderSurface':
        rgba = np.array(image.convert('RGBA'), dtype=np.uint8)
        return cls(rgba.shape[1], rgba.shape[0], rgba)

    @property
    def size(self):
        return self.width, self.height

    @property
    def available(self) -> bool:
        return self._pixels is not None

    def pixels(self) -> np.ndarray:
        """The live buffer (not a copy)."""
        if self._pixels is None:
            raise RenderSurfaceError()
        return self._pixels

    def put_pixels(self, pixels: np.ndarray):
        current = self.pixels()
        if pixels.shape != current.shape:
            raise ValueError(f"Shape mismatch: {pixels.shape} != {current.shape}")
        current[...] = pixels

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels(), mode='RGBA')

    def clear(self):
        self.pixels()[...] = 0

    def copy(self) -> 'RenderSurface':
        return RenderSurface(self.width, self.height, self.pixels().copy())

    def region(self, x: int, y: int, width: int, height: int) -> 'RenderSurface':
        """Copy of a sub-rectangle (clipped to the surface)."""
        src = self.pixels()
        out = RenderSurface(width, height)
        x0, y0 = max(0, x), max(0, y)
        x1, y1 = min(self.width, x + width), min(self.height, y + height)
        if x1 > x0 and y1 > y0:
            out.pixels()[y0 - y:y1 - y, x0 - x:x1 - x] = src[y0:y1, x0:x1]
        return out

    def draw(self, source: 'RenderSurface', chain: Sequence[FilterPrimitive] = ()):
        """Composite `source` (same size) over this surface, filtered by `chain`."""
        src = source.pixels()
        dst = self.pixels()
        if src.shape != dst.shape:
            raise ValueError(f"Shape mismatch: {src.shape} != {dst.shape}")
        if chain:
            src = run_filter_chain(src, chain)
        if not dst[..., 3].any():
            dst[...] = src
        else:
            composed = Image.alpha_composite(Image.fromarray(dst, 'RGBA'), Image.fromarray(src, 'RGBA'))
            dst[...] = np.asarray(composed)

    def release(self):
        self._pixels = None


# =========================================================
# Filter primitives
# =========================================================

def _unit(amount: float) -> float:
    return min(1.0, max(0.0, amount))


def grayscale_matrix(amount: float) -> np.ndarray:
    a = 1.0 - _unit(amount)
    return np.array([
        [0.2126 + 0.7874 * a, 0.7152 - 0.7152 * a, 0.0722 - 0.0722 * a],
        [0.2126 - 0.2126 * a, 0.7152 + 0.2848 * a, 0.0722 - 0.0722 * a],
        [0.2126 - 0.2126 * a, 0.7152 - 0.7152 * a, 0.0722 + 0.9278 * a],
    ], dtype=np.float64)


def sepia_matrix(amount: float) -> np.ndarray:
    a = 1.0 - _unit(amount)
    return np.array([
        [0.393 + 0.607 * a, 0.769 - 0.769 * a, 0.189 - 0.189 * a],
        [0.349 - 0.349 * a, 0.686 + 0.314 * a, 0.168 - 0.168 * a],
        [0.272 - 0.272 * a, 0.534 - 0.534 * a, 0.131 + 0.869 * a],
    ], dtype=np.float64)


def saturate_matrix(amount: float) -> np.ndarray:
    s = max(0.0, amount)
    return np.array([
        [0.213 + 0.787 * s, 0.715 - 0.715 * s, 0.072 - 0.072 * s],
        [0.213 - 0.213 * s, 0.715 + 0.285 * s, 0.072 - 0.072 * s],
        [0.213 - 0.213 * s, 0.715 - 0.715 * s, 0.072 + 0.928 * s],
    ], dtype=np.float64)


def hue_rotate_matrix(degrees: float) -> np.ndarray:
    rad = math.radians(degrees)
    cos_a = math.cos(rad)
    sin_a = math.sin(rad)
    return np.array([
        [0.213 + cos_a * 0.787 - sin_a * 0.213,
         0.715 - cos_a * 0.715 - sin_a * 0.715,
         0.072 - cos_a * 0.072 + sin_a * 0.928],
        [0.213 - cos_a * 0.213 + sin_a * 0.143,
         0.715 + cos_a * 0.285 + sin_a * 0.140,
         0.072 - cos_a * 0.072 - sin_a * 0.283],
        [0.213 - cos_a * 0.213 - sin_a * 0.787,
         0.715 - cos_a * 0.715 + sin_a * 0.715,
         0.072 + cos_a * 0.928 + sin_a * 0.072],
    ], dtype=np.float64)


def _to_float(rgba: np.ndarray) -> np.ndarray:
    return np.ascontiguousarray(rgba[..., :3], dtype=np.float32) / np.float32(255.0)


def _to_uint8(rgb: np.ndarray) -> np.ndarray:
    return np.clip(np.floor(rgb * 255.0 + 0.5), 0, 255).astype(np.uint8)


def _gaussian_blur(rgba: np.ndarray, radius: float) -> np.ndarray:
    if radius <= 0:
        return rgba
    # Blur premultiplied so transparent pixels do not darken the colour
    blurred = (Image.fromarray(rgba, 'RGBA')
               .convert('RGBa')
               .filter(ImageFilter.GaussianBlur(radius=radius))
               .convert('RGBA'))
    return np.array(blurred, dtype=np.uint8)


def run_filter_chain(rgba: np.ndarray, chain: Sequence[FilterPrimitive]) -> np.ndarray:
    """
    Return a filtered copy of an (H, W, 4) uint8 buffer.

    Colour primitives run in float; blur works on 8-bit data, so the float
    stage is quantised before and resumed after it.
    """
    result = rgba.copy()
    rgb = None

    for primitive in chain:
        name, amount = primitive.name, primitive.amount

        if name == 'blur':
            if rgb is not None:
                result[..., :3] = _to_uint8(rgb)
                rgb = None
            result = _gaussian_blur(result, amount)
            continue

        if rgb is None:
            rgb = _to_float(result)

        if name == 'brightness':
            apply_linear_transfer_inplace(rgb, max(0.0, amount), 0.0)
        elif name == 'contrast':
            c = max(0.0, amount)
            apply_linear_transfer_inplace(rgb, c, 0.5 - 0.5 * c)
        elif name == 'invert':
            a = _unit(amount)
            apply_linear_transfer_inplace(rgb, 1.0 - 2.0 * a, a)
        elif name == 'grayscale':
            apply_color_matrix_inplace(rgb, grayscale_matrix(amount))
        elif name == 'sepia':
            apply_color_matrix_inplace(rgb, sepia_matrix(amount))
        elif name == 'saturate':
            apply_color_matrix_inplace(rgb, saturate_matrix(amount))
        elif name == 'hue-rotate':
            apply_color_matrix_inplace(rgb, hue_rotate_matrix(amount))
        else:
            raise ValueError(f"Unsupported filter primitive: {name}")

    if rgb is not None:
        result[..., :3] = _to_uint8(rgb)
    return result


def apply_filter_chain(surface: RenderSurface, chain: Sequence[FilterPrimitive]):
    """
    Filter a surface in place by drawing through a scratch buffer.

    The surface is drawn into a same-size scratch surface under the filter,
    the surface is cleared and the scratch is drawn back.
    """
    if not chain:
        return
    scratch = RenderSurface(surface.width, surface.height)
    scratch.draw(surface, chain)
    surface.clear()
    surface.draw(scratch)
    scratch.release()


# =========================================================
# Direct pixel effects
# =========================================================

def apply_curves(surface: RenderSurface, curves):
    """Master RGB curve then per-channel curves on R, G and B; alpha untouched."""
    tables = build_channel_tables(curves)
    apply_channel_luts_inplace(surface.pixels(), tables)


def posterize_levels(intensity: float) -> int:
    return max(2, int(math.floor(16 - (intensity / 100) * 14 + 0.5)))


def apply_posterize(surface: RenderSurface, intensity: float):
    if intensity <= 0:
        return
    levels = posterize_levels(intensity)
    data = surface.pixels()
    rgb = data[..., :3].astype(np.float64)
    stepped = np.floor(rgb / 255.0 * levels + 0.5) / levels * 255.0
    data[..., :3] = np.clip(np.rint(stepped), 0, 255).astype(np.uint8)
    logger.debug(f"[Effects] Posterize: {levels} levels")


def apply_grain(surface: RenderSurface, intensity: float, scale_factor: float = 1.0,
                rng: Optional[np.random.Generator] = None):
    """
    Add uniform noise; one draw per pixel shared by R, G and B.

    Amplitude grows with sqrt(scale_factor) so grain reads the same at any
    output size. Pass a seeded Generator for reproducible output.
    """
    if intensity <= 0:
        return
    if rng is None:
        rng = np.random.default_rng()

    data = surface.pixels()
    amplitude = (intensity / 100) * 100 * math.sqrt(scale_factor)
    noise = (rng.random((surface.height, surface.width)) - 0.5) * amplitude
    rgb = data[..., :3].astype(np.float64) + noise[..., None]
    data[..., :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)


def vignette_alpha(width: int, height: int, intensity: float) -> np.ndarray:
    """
    Opacity of the black vignette overlay per pixel.

    Zero inside 30% of the radius (half the long edge), ramping linearly to
    intensity * 0.7 at the radius and staying there beyond it.
    """
    radius = max(width, height) * 0.5
    inner = radius * 0.3
    max_alpha = (intensity / 100) * 0.7

    ys = np.arange(height, dtype=np.float64) + 0.5 - height / 2
    xs = np.arange(width, dtype=np.float64) + 0.5 - width / 2
    dist = np.sqrt(xs[None, :] ** 2 + ys[:, None] ** 2)
    span = radius - inner
    if span <= 0:
        return np.full((height, width), max_alpha)
    t = np.clip((dist - inner) / span, 0.0, 1.0)
    return t * max_alpha


def apply_vignette(surface: RenderSurface, intensity: float):
    if intensity <= 0:
        return
    data = surface.pixels()
    alpha = vignette_alpha(surface.width, surface.height, intensity)[..., None]

    # Source-over of black with opacity `alpha`, unpremultiplied result
    dst_a = data[..., 3:4].astype(np.float64) / 255.0
    out_a = alpha + dst_a * (1.0 - alpha)
    weight = np.divide(dst_a * (1.0 - alpha), out_a, out=np.zeros_like(out_a), where=out_a > 0)
    rgb = data[..., :3].astype(np.float64) * weight

    data[..., :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    data[..., 3:4] = np.clip(np.rint(out_a * 255.0), 0, 255).astype(np.uint8)
