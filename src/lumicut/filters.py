"""
Declarative filter chains.

Adjustment sliders and named filters are translated into an ordered list of
compositable primitives (brightness, contrast, saturate, grayscale, sepia,
hue-rotate, invert, blur). The same list renders to a CSS-style filter string
for the preview and is executed on pixel buffers by `effects.apply_filter_chain`
for export. Primitives are applied in sequence and do not commute, so the
order built here is part of the look.
"""
import re
from dataclasses import dataclass
from typing import List, Sequence

from lumicut import config

PRIMITIVES = {
    'brightness': '',
    'contrast': '',
    'saturate': '',
    'grayscale': '',
    'sepia': '',
    'invert': '',
    'hue-rotate': 'deg',
    'blur': 'px',
}


@dataclass(frozen=True)
class FilterPrimitive:
    name: str
    amount: float

    def __post_init__(self):
        if self.name not in PRIMITIVES:
            raise ValueError(f"Unknown filter primitive: {self.name}")

    @property
    def unit(self) -> str:
        return PRIMITIVES[self.name]

    def __str__(self):
        return f"{self.name}({_format_number(self.amount)}{self.unit})"


def _format_number(value: float) -> str:
    # Shortest round-tripping repr, without a trailing ".0"
    text = repr(float(value))
    if text.endswith('.0'):
        text = text[:-2]
    return text


def build_filter_chain(adjustments, filters, scale_factor: float = 1.0, include_blur: bool = True) -> List[FilterPrimitive]:
    """
    Build the ordered primitive list for a set of adjustments and filters.

    Order: adjustments, standard filters, stylised composites, blur last.
    Entries at their neutral value are skipped.

    Args:
        adjustments: Adjustments value (sharpness is not part of this chain)
        filters: FilterSettings value
        scale_factor: multiplier for resolution dependent primitives (blur)
        include_blur: export renders blur as a separate stage
    """
    chain: List[FilterPrimitive] = []

    # Basic adjustments
    if adjustments.exposure != 0:
        chain.append(FilterPrimitive('brightness', 1 + adjustments.exposure / 100))
    if adjustments.saturation != 0:
        chain.append(FilterPrimitive('saturate', 1 + adjustments.saturation / 100))
    if adjustments.brilliance != 0:
        chain.append(FilterPrimitive('contrast', 1 + adjustments.brilliance / 100))
    if adjustments.shadows != 0:
        chain.append(FilterPrimitive('brightness', 1 + adjustments.shadows / 200))

    # Standard filters
    if filters.invert > 0:
        chain.append(FilterPrimitive('invert', filters.invert / 100))
    if filters.sepia > 0:
        chain.append(FilterPrimitive('sepia', filters.sepia / 100))
    if filters.black_and_white > 0:
        chain.append(FilterPrimitive('grayscale', filters.black_and_white / 100))

    # Vintage: sepia + desaturate + contrast reduction
    if filters.vintage > 0:
        i = filters.vintage / 100
        chain.append(FilterPrimitive('sepia', i * 0.4))
        chain.append(FilterPrimitive('saturate', 1 - i * 0.2))
        chain.append(FilterPrimitive('contrast', 1 - i * 0.1))

    # Warm: sepia tint + saturation boost
    if filters.warm > 0:
        i = filters.warm / 100
        chain.append(FilterPrimitive('sepia', i * 0.3))
        chain.append(FilterPrimitive('saturate', 1 + i * 0.2))
        chain.append(FilterPrimitive('brightness', 1 + i * 0.05))

    # Cool: hue shift + desaturate
    if filters.cool > 0:
        i = filters.cool / 100
        chain.append(FilterPrimitive('saturate', 1 - i * 0.2))
        chain.append(FilterPrimitive('hue-rotate', i * 15))
        chain.append(FilterPrimitive('brightness', 1 - i * 0.05))

    # Fade: reduced contrast + lifted blacks
    if filters.fade > 0:
        i = filters.fade / 100
        chain.append(FilterPrimitive('contrast', 1 - i * 0.3))
        chain.append(FilterPrimitive('brightness', 1 + i * 0.1))

    if include_blur:
        blur = blur_primitive(filters.blur, scale_factor)
        if blur is not None:
            chain.append(blur)

    return chain


def blur_primitive(blur: float, scale_factor: float = 1.0):
    """Blur radius grows with the output scale so exports match the preview."""
    if blur <= 0:
        return None
    return FilterPrimitive('blur', (blur / 10) * scale_factor)


def sharpness_primitive(sharpness: float, mode: str = 'export'):
    """
    Contrast boost standing in for sharpening.

    Preview and export use different coefficients (1/500 vs 0.15/100).
    """
    if sharpness <= 0:
        return None
    if mode == 'preview':
        return FilterPrimitive('contrast', 1 + sharpness / config.PREVIEW_SHARPNESS_DIVISOR)
    if mode == 'export':
        return FilterPrimitive('contrast', 1 + sharpness / 100 * config.EXPORT_SHARPNESS_GAIN)
    raise ValueError(f"mode must be 'preview' or 'export', got {mode!r}")


def build_preview_filter_chain(adjustments, filters) -> List[FilterPrimitive]:
    """Chain used for the live preview, including the preview sharpness term."""
    chain = build_filter_chain(adjustments, filters)
    sharp = sharpness_primitive(adjustments.sharpness, mode='preview')
    if sharp is not None:
        chain.append(sharp)
    return chain


def format_filter_chain(chain: Sequence[FilterPrimitive]) -> str:
    return ' '.join(str(p) for p in chain)


_PRIMITIVE_RE = re.compile(r'([a-z-]+)\(\s*(-?[0-9]*\.?[0-9]+(?:e-?[0-9]+)?)\s*(deg|px)?\s*\)')


def parse_filter_chain(text: str) -> List[FilterPrimitive]:
    """
    Parse a filter string such as "brightness(1.2) blur(3px)".

    Raises:
        ValueError: on unknown primitives or trailing garbage
    """
    chain = []
    pos = 0
    text = text.strip()
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        match = _PRIMITIVE_RE.match(text, pos)
        if not match:
            raise ValueError(f"Invalid filter string near: {text[pos:]!r}")
        name, amount, unit = match.group(1), float(match.group(2)), match.group(3) or ''
        primitive = FilterPrimitive(name, amount)
        if unit and unit != primitive.unit:
            raise ValueError(f"Unexpected unit {unit!r} for {name}")
        chain.append(primitive)
        pos = match.end()
    return chain
