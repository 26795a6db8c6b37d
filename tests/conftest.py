"""
Pytest configuration and shared fixtures for lumicut tests.
"""
import os

# Keep test runs from writing log files into the home directory
os.environ.setdefault('LUMICUT_NO_FILE_LOG', '1')

import numpy as np
import pytest
from PIL import Image

from lumicut.pipeline.render import RasterImage


@pytest.fixture
def gradient_image():
    """
    1000x500 opaque RGB image with distinct values along both axes.

    Returns:
        RasterImage wrapping the generated Pillow image
    """
    xs = np.linspace(0, 255, 1000, dtype=np.float64)
    ys = np.linspace(0, 255, 500, dtype=np.float64)
    r = np.tile(xs, (500, 1))
    g = np.tile(ys[:, None], (1, 1000))
    b = (r + g) / 2
    rgb = np.stack([r, g, b], axis=-1).astype(np.uint8)
    return RasterImage(Image.fromarray(rgb, 'RGB'))


@pytest.fixture
def gray_image():
    """Flat mid-grey (128, 128, 128) 64x48 image."""
    return RasterImage(Image.new('RGB', (64, 48), (128, 128, 128)))


@pytest.fixture
def rng():
    """Seeded generator so grain is reproducible."""
    return np.random.default_rng(1234)


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays instead of waiting."""
    calls = []

    def _sleep(seconds):
        calls.append(seconds)

    _sleep.calls = calls
    return _sleep
