# Export functionality using Pillow
import os
import numpy as np

from PIL import Image

from ..config import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Formats without an alpha channel; RGBA is flattened to RGB for these
OPAQUE_EXTENSIONS = ('.jpg', '.jpeg', '.bmp')


def save_image(
    image_rgba: np.ndarray,
    file_path: str,
    quality: int = settings.EXPORT_DEFAULTS["default_jpeg_quality"],
    png_compression: int = settings.EXPORT_DEFAULTS["default_png_compression"],
) -> bool:
    """Saves the given RGBA image to the specified file path using Pillow.

    Args:
        image_rgba (numpy.ndarray): The image to save ((H, W, 4) uint8 RGBA).
        file_path (str): The full path where the image should be saved,
                         including the desired file extension (e.g., .jpg, .png).
        quality (int): The quality setting for JPEG/WebP (1-100, higher is better).
        png_compression (int): Compression level for PNG (0-9, higher is more compressed).

    Returns:
        bool: True if saving was successful, False otherwise.
    """
    if image_rgba is None or image_rgba.size == 0:
        logger.error("Cannot save an empty image.")
        return False

    if not isinstance(file_path, str) or not file_path:
        logger.error("Invalid file path provided for saving.")
        return False

    if image_rgba.dtype != np.uint8:
        logger.warning("Image data type is not uint8. Clipping and converting.")
        image_rgba = np.clip(image_rgba, 0, 255).astype(np.uint8)

    if image_rgba.ndim != 3 or image_rgba.shape[2] != 4:
        logger.error("Image must be in RGBA format (4 channels) to save.")
        return False

    # Create the output directory if it doesn't exist
    output_dir = os.path.dirname(file_path)
    if output_dir and not os.path.exists(output_dir):
        try:
            os.makedirs(output_dir)
            logger.info("Created output directory: %s", output_dir)
        except OSError:
            logger.exception("Could not create directory '%s'", output_dir)
            return False

    ext = os.path.splitext(file_path)[1].lower()
    save_kwargs = {}
    if ext in ('.jpg', '.jpeg'):
        save_kwargs['quality'] = max(1, min(100, quality))  # Clamp quality 1-100 for Pillow JPEG
        save_kwargs['optimize'] = True
    elif ext == '.png':
        save_kwargs['compress_level'] = max(0, min(9, png_compression))  # Clamp 0-9
    elif ext == '.webp':
        save_kwargs['quality'] = max(0, min(100, quality))
    elif ext in ('.tif', '.tiff'):
        save_kwargs['compression'] = 'tiff_lzw'

    try:
        img = Image.fromarray(np.ascontiguousarray(image_rgba), 'RGBA')
        if ext in OPAQUE_EXTENSIONS:
            img = img.convert('RGB')
        img.save(file_path, **save_kwargs)
        logger.info("Successfully saved image to: '%s'", file_path)
        return True
    except (KeyError, ValueError):
        logger.error("Pillow could not determine save format for: '%s'", file_path)
        return False
    except OSError:
        logger.exception("OS error saving image '%s'", file_path)
        return False
