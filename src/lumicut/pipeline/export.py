"""
Encoding and delivery of rendered images.

`render_export` produces encoded buffers; `deliver` hands them to a sink one
at a time with a short pause in between (some sinks, browsers in particular,
throttle bursts of downloads).
"""
import io
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Protocol, Sequence

import numpy as np
from PIL import Image

from lumicut import config
from lumicut.effects import RenderSurface
from lumicut.errors import ExportSinkError, ImageNotReadyError
from lumicut.geometry import Rect
from lumicut.logger import create_logger
from lumicut.pipeline.render import RasterImage, render, split_surface
from lumicut.pipeline.settings import (
    Adjustments,
    ColorCurves,
    CropArea,
    EditSettings,
    FilterSettings,
    SplitPlan,
    Transform,
)


class Sink(Protocol):
    """Receives one encoded image. Raising means the hand-off failed."""

    def __call__(self, data: bytes, filename: str, mime_type: str) -> None:
        ...


@dataclass(frozen=True)
class EncodedBuffer:
    data: bytes
    filename: str
    mime_type: str
    width: int
    height: int


def _format_info(fmt: str):
    try:
        return config.EXPORT_FORMATS[fmt.lower()]
    except KeyError:
        raise ValueError(f"Unsupported export format: {fmt!r} (expected 'png' or 'jpeg')") from None


def encode_surface(surface: RenderSurface, fmt: str = 'png') -> bytes:
    """
    PNG keeps alpha and is lossless; JPEG is written at quality 95 with
    transparent areas flattened onto black.
    """
    pil_format, _, _ = _format_info(fmt)
    img = surface.to_image()
    save_params = {}

    if pil_format == 'JPEG':
        background = Image.new('RGBA', img.size, (0, 0, 0, 255))
        img = Image.alpha_composite(background, img).convert('RGB')
        save_params = {'quality': config.JPEG_QUALITY}

    buffer = io.BytesIO()
    img.save(buffer, format=pil_format, **save_params)
    return buffer.getvalue()


def export_timestamp(now: Optional[datetime] = None) -> str:
    """2024-05-01T12-30-05 style, safe for file names."""
    now = now or datetime.now()
    return now.strftime('%Y-%m-%dT%H-%M-%S')


def build_filenames(count: int, fmt: str, timestamp: str) -> List[str]:
    _, _, ext = _format_info(fmt)
    if count <= 1:
        return [f"edited-{timestamp}.{ext}"]
    return [f"split-{i + 1}-{timestamp}.{ext}" for i in range(count)]


def render_export(
    image: Optional[RasterImage],
    transform: Transform,
    crop_area: CropArea,
    image_bounds: Optional[Rect],
    adjustments: Adjustments,
    filters: FilterSettings,
    curves: ColorCurves,
    split_plan: SplitPlan,
    fmt: str = 'png',
    rng: Optional[np.random.Generator] = None,
    timestamp: Optional[str] = None,
) -> List[EncodedBuffer]:
    """
    Render, split and encode.

    Returns one EncodedBuffer per slice (a single one when not splitting).
    """
    if image is None:
        raise ImageNotReadyError()
    _format_info(fmt)

    settings = EditSettings(
        transform=transform,
        crop=crop_area,
        adjustments=adjustments,
        filters=filters,
        curves=curves,
        split=split_plan,
    )
    surface = render(image, settings, image_bounds=image_bounds, rng=rng)
    slices = split_surface(surface, split_plan.split_count)

    _, mime_type, _ = _format_info(fmt)
    names = build_filenames(len(slices), fmt, timestamp or export_timestamp())
    buffers = []
    for piece, name in zip(slices, names):
        buffers.append(EncodedBuffer(
            data=encode_surface(piece, fmt),
            filename=name,
            mime_type=mime_type,
            width=piece.width,
            height=piece.height,
        ))
    return buffers


def deliver(
    buffers: Sequence[EncodedBuffer],
    sink: Sink,
    delay: float = config.SLICE_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    export_id: Optional[str] = None,
) -> int:
    """
    Hand buffers to the sink in order, pausing `delay` seconds between them.

    A failing sink stops the sequence: buffers already delivered stay
    delivered, the rest are not attempted.

    Returns:
        number of buffers delivered

    Raises:
        ExportSinkError: the sink rejected a buffer
    """
    log = create_logger(file_id=export_id)
    delivered = 0
    for i, buf in enumerate(buffers):
        try:
            sink(buf.data, buf.filename, buf.mime_type)
        except Exception as e:
            log.error(f"❌ Sink rejected {buf.filename} ({i + 1}/{len(buffers)}): {e}")
            raise ExportSinkError(f"Export failed for {buf.filename}: {e}", index=i, filename=buf.filename) from e

        delivered += 1
        log.info(f"✅ Delivered {buf.filename} ({buf.width}x{buf.height})")
        if i < len(buffers) - 1:
            sleep(delay)
    return delivered


def export_image(
    image: Optional[RasterImage],
    settings: EditSettings,
    sink: Sink,
    fmt: str = 'png',
    image_bounds: Optional[Rect] = None,
    rng: Optional[np.random.Generator] = None,
    delay: float = config.SLICE_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> List[EncodedBuffer]:
    """Render `settings` and deliver every resulting buffer to `sink`."""
    timestamp = export_timestamp()
    buffers = render_export(
        image,
        settings.transform,
        settings.crop,
        image_bounds,
        settings.adjustments,
        settings.filters,
        settings.curves,
        settings.split,
        fmt,
        rng=rng,
        timestamp=timestamp,
    )
    deliver(buffers, sink, delay=delay, sleep=sleep, export_id=timestamp)
    return buffers
