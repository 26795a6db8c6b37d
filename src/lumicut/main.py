import argparse
import os
import sys
import threading

from loguru import logger

from lumicut import config
from lumicut.logger import configure


def _parse_curve(text: str):
    """'red=0:0,128:64,255:255' -> ('red', [(0, 0), (128, 64), (255, 255)])"""
    channel, _, points = text.partition('=')
    if not points:
        raise argparse.ArgumentTypeError(f"curve must look like CHANNEL=x:y,x:y,... (got {text!r})")
    try:
        parsed = [tuple(float(v) for v in pair.split(':')) for pair in points.split(',')]
    except ValueError:
        raise argparse.ArgumentTypeError(f"bad curve points: {points!r}") from None
    if any(len(p) != 2 for p in parsed):
        raise argparse.ArgumentTypeError(f"bad curve points: {points!r}")
    return channel.strip().lower(), parsed


def _parse_filter(text: str):
    """'grain=40' -> ('grain', 40.0)"""
    name, _, value = text.partition('=')
    try:
        return name.strip().lower().replace('-', '_'), float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"filter must look like NAME=VALUE (got {text!r})") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='lumicut', description='Crop, grade, split and collage images.')
    parser.add_argument('--version', action='version', version=f'%(prog)s {config.VERSION}')
    parser.add_argument('-v', '--verbose', action='store_true', help='log debug output to the console')
    sub = parser.add_subparsers(dest='command', required=True)

    edit = sub.add_parser('edit', help='edit one image and export it (optionally split)')
    edit.add_argument('input')
    edit.add_argument('-o', '--output-dir', default='.')
    edit.add_argument('-f', '--format', default='png', choices=sorted(config.EXPORT_FORMATS))
    edit.add_argument('--rotate', type=float, default=0, help='degrees, snapped to right angles')
    edit.add_argument('--zoom', type=float, default=config.DEFAULT_ZOOM)
    edit.add_argument('--pan', type=float, nargs=2, default=(0.0, 0.0), metavar=('X', 'Y'))
    edit.add_argument('--crop', type=float, nargs=4, metavar=('X', 'Y', 'W', 'H'),
                      help='crop in percent of the rotated image')
    edit.add_argument('--aspect', choices=list(config.ASPECT_RATIO_VALUES), default='free')
    for name in ('exposure', 'saturation', 'brilliance', 'shadows', 'sharpness'):
        edit.add_argument(f'--{name}', type=float, default=0.0)
    edit.add_argument('--filter', dest='filters', type=_parse_filter, action='append', default=[],
                      metavar='NAME=VALUE', help='e.g. vintage=60, grain=30 (repeatable)')
    edit.add_argument('--curve', dest='curves', type=_parse_curve, action='append', default=[],
                      metavar='CHANNEL=x:y,...', help='rgb, red, green or blue (repeatable)')
    edit.add_argument('--split', type=int, default=1, help=f'1 or {config.MIN_SPLIT_COUNT}-{config.MAX_SPLIT_COUNT}')
    edit.add_argument('--seed', type=int, default=None, help='grain random seed')
    edit.add_argument('--delay', type=float, default=config.SLICE_DELAY_SECONDS)

    grid = sub.add_parser('grid', help='compose a grid collage')
    grid.add_argument('inputs', nargs='+')
    grid.add_argument('-o', '--output-dir', default='.')
    grid.add_argument('-f', '--format', default='png', choices=sorted(config.EXPORT_FORMATS))
    grid.add_argument('--rows', type=int, default=3)
    grid.add_argument('--columns', type=int, default=3)
    grid.add_argument('--aspect', choices=list(config.GRID_ASPECT_PRESETS), default='1:1')
    grid.add_argument('--size', type=int, default=config.GRID_BASE_SIZE, help='long edge in pixels')
    grid.add_argument('--line-color', default='#000000')
    grid.add_argument('--line-width', type=int, default=2)
    grid.add_argument('--no-inner-lines', action='store_true')
    grid.add_argument('--no-edges', action='store_true')
    return parser


def run_edit(args) -> int:
    import numpy as np
    from dataclasses import fields

    from lumicut.crop import apply_aspect_lock, aspect_ratio_for_frame
    from lumicut.file_io import DirectorySink, decode_image
    from lumicut.geometry import Point, rotated_size
    from lumicut.pipeline.export import export_image
    from lumicut.pipeline.settings import (
        CURVE_CHANNELS, Adjustments, ColorCurves, CropArea, EditSettings, FilterSettings, SplitPlan, Transform,
    )

    image, width, height = decode_image(args.input)

    transform = Transform(rotation=args.rotate, zoom=args.zoom, position=Point(*args.pan))
    crop = CropArea.from_rect(args.crop).clamped() if args.crop else CropArea()
    ratio = aspect_ratio_for_frame(config.ASPECT_RATIO_VALUES[args.aspect],
                                   rotated_size((width, height), transform.rotation))
    crop = apply_aspect_lock(crop, ratio)

    known = {f.name for f in fields(FilterSettings)}
    unknown = [name for name, _ in args.filters if name not in known]
    if unknown:
        raise ValueError(f"Unknown filter(s): {', '.join(unknown)} (known: {', '.join(sorted(known))})")

    curves = ColorCurves()
    for channel, points in args.curves:
        if channel not in CURVE_CHANNELS:
            raise ValueError(f"Unknown curve channel: {channel} (known: {', '.join(CURVE_CHANNELS)})")
        curves = curves.with_channel(channel, points)

    settings = EditSettings(
        transform=transform,
        crop=crop,
        aspect_lock=ratio,
        adjustments=Adjustments(args.exposure, args.saturation, args.brilliance, args.shadows, args.sharpness),
        filters=FilterSettings(**dict(args.filters)),
        curves=curves,
        split=SplitPlan(args.split),
    )

    rng = np.random.default_rng(args.seed)
    sink = DirectorySink(args.output_dir)
    buffers = export_image(image, settings, sink, fmt=args.format, rng=rng, delay=args.delay)
    logger.success(f"Exported {len(buffers)} file(s) to {os.path.abspath(args.output_dir)}")
    return 0


def run_grid(args) -> int:
    from lumicut.file_io import DirectorySink, decode_image
    from lumicut.grid import GridLayout, GridLineSettings, compose_grid, images_by_cell
    from lumicut.pipeline.export import EncodedBuffer, build_filenames, deliver, encode_surface, export_timestamp

    lines = GridLineSettings(
        show_inner_lines=not args.no_inner_lines,
        show_edges=not args.no_edges,
        thickness=args.line_width,
        color=args.line_color,
    )
    layout = GridLayout(args.rows, args.columns, args.aspect, lines)
    images = [decode_image(path)[0] for path in args.inputs]
    if len(images) > len(layout.cells):
        logger.warning(f"{len(images) - len(layout.cells)} image(s) do not fit the grid and are ignored")

    surface = compose_grid(layout, images_by_cell(layout, images), base_size=args.size)
    timestamp = export_timestamp()
    name = build_filenames(1, args.format, timestamp)[0].replace('edited-', 'grid-')
    buffer = EncodedBuffer(
        data=encode_surface(surface, args.format),
        filename=name,
        mime_type=config.EXPORT_FORMATS[args.format][1],
        width=surface.width,
        height=surface.height,
    )
    deliver([buffer], DirectorySink(args.output_dir), export_id=timestamp)
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    configure()
    if args.verbose:
        logger.add(sys.stderr, level="DEBUG", filter=lambda r: r["level"].no < 20)

    # --- Fix Numba Cache for Frozen Apps ---
    if getattr(sys, 'frozen', False):
        os.makedirs(config.NUMBA_CACHE_DIR, exist_ok=True)
        os.environ['NUMBA_CACHE_DIR'] = config.NUMBA_CACHE_DIR

    # Start JIT warmup while the input decodes
    from lumicut import math_ops
    warmup_thread = threading.Thread(target=math_ops.warmup, daemon=True)
    warmup_thread.start()

    from lumicut.errors import LumicutError
    try:
        if args.command == 'grid':
            return run_grid(args)
        return run_edit(args)
    except (LumicutError, ValueError) as e:
        logger.error(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
