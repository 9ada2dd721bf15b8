# Image import functionality using Pillow
import os
from typing import Optional
import numpy as np

from PIL import Image, ImageOps, UnidentifiedImageError

from ..utils.logger import get_logger

logger = get_logger(__name__)

# Extensions accepted by the command line entry point
SUPPORTED_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.tif', '.tiff', '.bmp', '.webp')


def load_image(file_path) -> Optional[np.ndarray]:
    """Loads an image from the specified file path using Pillow.

    Applies EXIF orientation and converts to 8-bit interleaved RGBA, the
    pixel layout the blur pipeline consumes.

    Args:
        file_path (str): The path to the image file.

    Returns:
        numpy.ndarray: (H, W, 4) uint8 RGBA image, or None if loading fails
                       or the file is not found.
    """
    if not isinstance(file_path, str) or not file_path:
        logger.error("Invalid file path provided.")
        return None

    if not os.path.isfile(file_path):
        logger.error("File not found at '%s'", file_path)
        return None

    try:
        with Image.open(file_path) as img:
            # exif_transpose returns a new image object when it rotates
            img_oriented = ImageOps.exif_transpose(img)

            if img_oriented.mode != 'RGBA':
                logger.debug("Converting image from mode '%s' to 'RGBA'.", img_oriented.mode)
                img_rgba = img_oriented.convert('RGBA')
            else:
                img_rgba = img_oriented

            image_np = np.array(img_rgba, dtype=np.uint8)

        if image_np.size == 0:
            logger.error("Loaded image is empty after processing: '%s'", file_path)
            return None

        logger.info("Loaded image '%s' (%dx%d)", file_path, image_np.shape[1], image_np.shape[0])
        return image_np

    except UnidentifiedImageError:
        logger.error("Pillow could not identify image file format or file is corrupted: '%s'", file_path)
        return None
    except OSError:
        logger.exception("OS error loading image '%s'", file_path)
        return None
