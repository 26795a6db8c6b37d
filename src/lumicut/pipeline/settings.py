from dataclasses import dataclass, field, fields, replace
from typing import List, Optional, Tuple

from lumicut import config
from lumicut.curves import CurvePoint, DEFAULT_CURVE, is_modified
from lumicut.geometry import Point, Rect, clamp


def normalize_rotation(degrees: float) -> int:
    """Wrap into 0..359 and snap to the nearest right angle."""
    step = config.ROTATION_STEPS[1]
    snapped = int(round((degrees % 360) / step)) * step
    return config.ROTATION_STEPS[(snapped % 360) // step]


@dataclass(frozen=True)
class Transform:
    """Rotation / zoom / pan. Values are normalised on construction."""
    rotation: int = 0
    zoom: float = config.DEFAULT_ZOOM
    position: Point = Point(0.0, 0.0)

    def __post_init__(self):
        object.__setattr__(self, 'rotation', normalize_rotation(self.rotation))
        object.__setattr__(self, 'zoom', clamp(float(self.zoom), config.MIN_ZOOM, config.MAX_ZOOM))
        object.__setattr__(self, 'position', Point(float(self.position[0]), float(self.position[1])))

    def with_rotation(self, degrees: float) -> 'Transform':
        return replace(self, rotation=degrees)

    def rotated_clockwise(self) -> 'Transform':
        return replace(self, rotation=self.rotation + 90)

    def rotated_counter_clockwise(self) -> 'Transform':
        return replace(self, rotation=self.rotation - 90 + 360)

    def with_zoom(self, zoom: float) -> 'Transform':
        return replace(self, zoom=zoom)

    def with_position(self, x: float, y: float) -> 'Transform':
        return replace(self, position=Point(x, y))


@dataclass(frozen=True)
class CropArea:
    """Crop rectangle in percent of its reference frame."""
    x: float = 0.0
    y: float = 0.0
    width: float = 100.0
    height: float = 100.0

    @classmethod
    def from_rect(cls, rect) -> 'CropArea':
        return cls(float(rect[0]), float(rect[1]), float(rect[2]), float(rect[3]))

    def as_rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def clamped(self, min_size: float = config.MIN_CROP_SIZE) -> 'CropArea':
        """Enforce the size floor and keep the rectangle inside 0..100."""
        width = clamp(self.width, min_size, 100.0)
        height = clamp(self.height, min_size, 100.0)
        x = clamp(self.x, 0.0, 100.0 - width)
        y = clamp(self.y, 0.0, 100.0 - height)
        return CropArea(x, y, width, height)

    def is_default(self) -> bool:
        return (self.x, self.y, self.width, self.height) == config.DEFAULT_CROP


@dataclass(frozen=True)
class Adjustments:
    exposure: float = 0.0     # -100..100
    saturation: float = 0.0   # -100..100
    brilliance: float = 0.0   # -100..100
    shadows: float = 0.0      # -100..100
    sharpness: float = 0.0    # 0..100

    def __post_init__(self):
        for name in ('exposure', 'saturation', 'brilliance', 'shadows'):
            object.__setattr__(self, name, clamp(float(getattr(self, name)), -100.0, 100.0))
        object.__setattr__(self, 'sharpness', clamp(float(self.sharpness), 0.0, 100.0))

    def is_default(self) -> bool:
        return self == Adjustments()


@dataclass(frozen=True)
class FilterSettings:
    """Named filter intensities, 0..100; zero means inactive."""
    vintage: float = 0.0
    black_and_white: float = 0.0
    sepia: float = 0.0
    warm: float = 0.0
    cool: float = 0.0
    fade: float = 0.0
    vignette: float = 0.0
    grain: float = 0.0
    blur: float = 0.0
    invert: float = 0.0
    posterize: float = 0.0

    def __post_init__(self):
        for f in fields(self):
            object.__setattr__(self, f.name, clamp(float(getattr(self, f.name)), 0.0, 100.0))

    def active_filters(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) > 0]

    def is_default(self) -> bool:
        return not self.active_filters()


CURVE_CHANNELS = ('rgb', 'red', 'green', 'blue')


def _as_points(points) -> Tuple[CurvePoint, ...]:
    return tuple(CurvePoint(float(p[0]), float(p[1])) for p in points)


@dataclass(frozen=True)
class ColorCurves:
    rgb: Tuple[CurvePoint, ...] = DEFAULT_CURVE
    red: Tuple[CurvePoint, ...] = DEFAULT_CURVE
    green: Tuple[CurvePoint, ...] = DEFAULT_CURVE
    blue: Tuple[CurvePoint, ...] = DEFAULT_CURVE

    def __post_init__(self):
        for name in CURVE_CHANNELS:
            object.__setattr__(self, name, _as_points(getattr(self, name)))

    def channel(self, name: str) -> Tuple[CurvePoint, ...]:
        if name not in CURVE_CHANNELS:
            raise KeyError(name)
        return getattr(self, name)

    def with_channel(self, name: str, points) -> 'ColorCurves':
        if name not in CURVE_CHANNELS:
            raise KeyError(name)
        return replace(self, **{name: points})

    def is_modified(self) -> bool:
        return any(is_modified(getattr(self, name), DEFAULT_CURVE) for name in CURVE_CHANNELS)


@dataclass(frozen=True)
class SplitPlan:
    """Number of equal-width vertical slices; 1 means a single output image."""
    split_count: int = 1

    def __post_init__(self):
        object.__setattr__(self, 'split_count', int(clamp(int(self.split_count), 1, config.MAX_SPLIT_COUNT)))

    @classmethod
    def for_splitter(cls, count: int = config.DEFAULT_SPLIT_COUNT) -> 'SplitPlan':
        return cls(int(clamp(count, config.MIN_SPLIT_COUNT, config.MAX_SPLIT_COUNT)))

    def slice_width_percent(self, crop: CropArea) -> float:
        return crop.width / self.split_count


@dataclass(frozen=True)
class EditSettings:
    """
    Everything the user can change for one image.

    Immutable: editing produces a new value via `dataclasses.replace`, and a
    new image or a reset simply starts again from `EditSettings()`.
    `crop` is container-relative while dragging; the render pipeline maps it
    onto the image with the image bounds it is given.
    """
    transform: Transform = field(default_factory=Transform)
    crop: CropArea = field(default_factory=CropArea)
    aspect_lock: Optional[float] = None
    adjustments: Adjustments = field(default_factory=Adjustments)
    filters: FilterSettings = field(default_factory=FilterSettings)
    curves: ColorCurves = field(default_factory=ColorCurves)
    split: SplitPlan = field(default_factory=SplitPlan)

    def __post_init__(self):
        if self.aspect_lock is not None and self.aspect_lock <= 0:
            raise ValueError(f"aspect lock must be positive, got {self.aspect_lock}")

    def has_any_edits(self) -> bool:
        t = self.transform
        return (
            not self.adjustments.is_default()
            or not self.filters.is_default()
            or self.curves.is_modified()
            or t.rotation != 0
            or t.zoom != 1
            or t.position != (0.0, 0.0)
            or not self.crop.is_default()
        )

    def reset(self) -> 'EditSettings':
        return EditSettings()
