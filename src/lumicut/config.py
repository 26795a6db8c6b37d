import os

VERSION = '0.3.0'

# Crop
MIN_CROP_SIZE = 10.0          # percent, both axes
DEFAULT_CROP = (0.0, 0.0, 100.0, 100.0)

# Transform
MIN_ZOOM = 1.0
MAX_ZOOM = 3.0
DEFAULT_ZOOM = 1.0
ROTATION_STEPS = (0, 90, 180, 270)

# Splitter
MIN_SPLIT_COUNT = 2
MAX_SPLIT_COUNT = 5
DEFAULT_SPLIT_COUNT = 2

# Rendering
# Output long edge at which blur / grain look the same as in the preview
REFERENCE_SIZE = 600.0
JPEG_QUALITY = 95
SLICE_DELAY_SECONDS = 0.3

# Sharpness is approximated with a contrast boost; preview and export
# intentionally use different divisors.
PREVIEW_SHARPNESS_DIVISOR = 500.0
EXPORT_SHARPNESS_GAIN = 0.15

# Crop aspect presets: label -> width / height (None = free)
ASPECT_RATIO_VALUES = {
    'free': None,
    '1:1': 1.0,
    '16:9': 16 / 9,
    '9:16': 9 / 16,
    '4:3': 4 / 3,
    '3:4': 3 / 4,
    '3:2': 3 / 2,
    '2:3': 2 / 3,
}

# Export format -> (Pillow format, mime type, file extension)
EXPORT_FORMATS = {
    'png': ('PNG', 'image/png', 'png'),
    'jpeg': ('JPEG', 'image/jpeg', 'jpg'),
    'jpg': ('JPEG', 'image/jpeg', 'jpg'),
}

SUPPORTED_INPUT_EXTENSIONS = {
    '.png', '.jpg', '.jpeg', '.bmp', '.gif', '.tif', '.tiff', '.webp', '.heic', '.heif'
}

# Grid collage
GRID_BASE_SIZE = 1200
MIN_GRID_TRACKS = 2
MAX_GRID_TRACKS = 4
MIN_TRACK_SIZE = 10.0
GRID_ASPECT_PRESETS = {
    '1:1': (1, 1),
    '4:3': (4, 3),
    '3:2': (3, 2),
    '16:9': (16, 9),
    '9:16': (9, 16),
    '3:4': (3, 4),
}

# Per-user directories
APP_DIR = os.path.expanduser('~/.lumicut')
NUMBA_CACHE_DIR = os.path.join(APP_DIR, 'numba_cache')
