"""
Tests for encoding and delivering exports.
"""
import io
from datetime import datetime
from unittest.mock import Mock

import numpy as np
import pytest
from PIL import Image

from lumicut.effects import RenderSurface
from lumicut.errors import ExportSinkError, ImageNotReadyError
from lumicut.pipeline.export import (
    EncodedBuffer,
    build_filenames,
    deliver,
    encode_surface,
    export_image,
    export_timestamp,
    render_export,
)
from lumicut.pipeline.render import RasterImage
from lumicut.pipeline.settings import (
    Adjustments,
    ColorCurves,
    CropArea,
    EditSettings,
    FilterSettings,
    SplitPlan,
    Transform,
)


def _buffers(count):
    return [EncodedBuffer(b'x%d' % i, f'split-{i + 1}-t.png', 'image/png', 10, 10) for i in range(count)]


class TestEncoding:
    """Tests for encode_surface."""

    def test_png_is_lossless_with_alpha(self):
        pixels = np.zeros((3, 4, 4), dtype=np.uint8)
        pixels[0, 0] = (1, 2, 3, 4)
        data = encode_surface(RenderSurface(4, 3, pixels), 'png')
        decoded = np.asarray(Image.open(io.BytesIO(data)))
        assert (decoded == pixels).all()

    def test_jpeg_flattens_alpha(self):
        data = encode_surface(RenderSurface(8, 8), 'jpeg')
        img = Image.open(io.BytesIO(data))
        assert img.format == 'JPEG'
        assert img.mode == 'RGB'
        assert np.asarray(img).max() < 8

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            encode_surface(RenderSurface(1, 1), 'gif')


class TestFilenames:
    """Tests for export file naming."""

    def test_single_and_split_names(self):
        assert build_filenames(1, 'png', 'T') == ['edited-T.png']
        assert build_filenames(3, 'jpeg', 'T') == ['split-1-T.jpg', 'split-2-T.jpg', 'split-3-T.jpg']

    def test_timestamp_is_filename_safe(self):
        assert export_timestamp(datetime(2024, 5, 1, 12, 30, 5)) == '2024-05-01T12-30-05'


class TestRenderExport:
    """Tests for render_export."""

    def test_missing_image(self):
        with pytest.raises(ImageNotReadyError):
            render_export(None, Transform(), CropArea(), None, Adjustments(), FilterSettings(),
                          ColorCurves(), SplitPlan(2))

    def test_split_into_slices(self, gradient_image):
        buffers = render_export(gradient_image, Transform(), CropArea(0, 0, 30, 100), None,
                                Adjustments(), FilterSettings(), ColorCurves(), SplitPlan(3),
                                fmt='png', timestamp='T')
        assert [b.width for b in buffers] == [100, 100, 100]
        assert [b.filename for b in buffers] == ['split-1-T.png', 'split-2-T.png', 'split-3-T.png']
        assert all(b.mime_type == 'image/png' for b in buffers)
        assert Image.open(io.BytesIO(buffers[1].data)).size == (100, 500)

    def test_single_jpeg(self, gradient_image):
        buffers = render_export(gradient_image, Transform(), CropArea(), None, Adjustments(),
                                FilterSettings(), ColorCurves(), SplitPlan(1), fmt='jpeg', timestamp='T')
        assert len(buffers) == 1
        assert buffers[0].filename == 'edited-T.jpg'
        assert buffers[0].mime_type == 'image/jpeg'

    def test_tiny_crop_still_encodes(self):
        """A 10% crop of a 5x5 image exports a 1x1 PNG instead of failing."""
        image = RasterImage(Image.new('RGB', (5, 5), (40, 50, 60)))
        buffers = render_export(image, Transform(), CropArea(0, 0, 10, 10), None, Adjustments(),
                                FilterSettings(), ColorCurves(), SplitPlan(1), fmt='png', timestamp='T')
        assert len(buffers) == 1
        assert Image.open(io.BytesIO(buffers[0].data)).size == (1, 1)

    def test_split_wider_than_result(self):
        """Five slices of a 3px wide image become three 1px slices."""
        image = RasterImage(Image.new('RGB', (3, 3), (40, 50, 60)))
        buffers = render_export(image, Transform(), CropArea(), None, Adjustments(),
                                FilterSettings(), ColorCurves(), SplitPlan(5), fmt='jpeg', timestamp='T')
        assert [b.width for b in buffers] == [1, 1, 1]
        assert [b.filename for b in buffers] == ['split-1-T.jpg', 'split-2-T.jpg', 'split-3-T.jpg']
        for buf in buffers:
            assert Image.open(io.BytesIO(buf.data)).size == (1, 3)


class TestDeliver:
    """Tests for deliver."""

    def test_hands_off_in_order_with_pacing(self, no_sleep):
        sink = Mock()
        count = deliver(_buffers(3), sink, sleep=no_sleep)
        assert count == 3
        assert [c.args[1] for c in sink.call_args_list] == ['split-1-t.png', 'split-2-t.png', 'split-3-t.png']
        assert no_sleep.calls == [0.3, 0.3]

    def test_single_buffer_has_no_delay(self, no_sleep):
        deliver(_buffers(1), Mock(), sleep=no_sleep)
        assert no_sleep.calls == []

    def test_failure_aborts_remaining(self, no_sleep):
        """A rejected slice stops the sequence; earlier slices stay delivered."""
        sink = Mock(side_effect=[None, IOError("disk full"), None])
        with pytest.raises(ExportSinkError) as excinfo:
            deliver(_buffers(3), sink, sleep=no_sleep)
        assert excinfo.value.index == 1
        assert excinfo.value.filename == 'split-2-t.png'
        assert sink.call_count == 2
        assert isinstance(excinfo.value.__cause__, IOError)


class TestExportImage:
    """Tests for export_image."""

    def test_export_to_sink(self, gray_image, no_sleep):
        sink = Mock()
        settings = EditSettings(split=SplitPlan(2))
        buffers = export_image(gray_image, settings, sink, fmt='png', sleep=no_sleep)
        assert len(buffers) == 2
        assert sink.call_count == 2
        assert sum(b.width for b in buffers) == 64
