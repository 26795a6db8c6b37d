"""
文件输入输出模块
Decoding of source images and a sink that writes exported buffers to disk.
"""
import io
import os
from typing import BinaryIO, Optional, Tuple, Union

import pillow_heif
from PIL import Image, ImageOps, UnidentifiedImageError

from lumicut import config
from lumicut.errors import DecodeError
from lumicut.logger import Logger, create_logger
from lumicut.pipeline.render import RasterImage

# HEIC / HEIF through Pillow
pillow_heif.register_heif_opener()

Source = Union[str, os.PathLike, bytes, BinaryIO]


def is_supported_file(path: str) -> bool:
    return os.path.splitext(str(path))[1].lower() in config.SUPPORTED_INPUT_EXTENSIONS


def decode_image(source: Source, logger: Optional[Logger] = None) -> Tuple[RasterImage, int, int]:
    """
    解码图像
    Decode a file path, raw bytes or binary stream into a RasterImage.

    EXIF orientation is applied so width / height are the displayed ones.

    Returns:
        (image, natural_width, natural_height)

    Raises:
        DecodeError: unreadable, unsupported or corrupt data
    """
    if logger is None:
        logger = create_logger()

    name = source if isinstance(source, (str, os.PathLike)) else '<stream>'
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)

    try:
        with Image.open(source) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            if img.mode not in ('RGB', 'RGBA'):
                img = img.convert('RGBA' if 'A' in img.getbands() or img.mode == 'P' else 'RGB')
            else:
                img = img.copy()
    except FileNotFoundError as e:
        logger.error(f"❌ File not found: {name}")
        raise DecodeError(f"File not found: {name}") from e
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.error(f"❌ Failed to decode {name}: {e}")
        raise DecodeError(f"Cannot decode image {name}: {e}") from e

    logger.debug(f"Decoded {name}: {img.width}x{img.height} ({img.mode})")
    return RasterImage(img), img.width, img.height


class DirectorySink:
    """
    Export sink writing every buffer into `directory` under its own file name.
    Existing files are overwritten.
    """

    def __init__(self, directory: str, logger: Optional[Logger] = None):
        self.directory = directory
        self.logger = logger or create_logger()
        self.written = []

    def __call__(self, data: bytes, filename: str, mime_type: str) -> None:
        os.makedirs(self.directory, exist_ok=True)
        path = os.path.join(self.directory, os.path.basename(filename))
        with open(path, 'wb') as f:
            f.write(data)
        self.written.append(path)
        self.logger.info(f"  ✅ Saved: {path} ({mime_type}, {len(data)} bytes)")
