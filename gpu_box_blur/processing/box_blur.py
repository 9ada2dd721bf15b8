# CPU box blur
"""
CPU implementation of the shrinking box blur.

Matches the GPU kernel exactly: neighbours outside the image are skipped
rather than zero-padded, and each sum is divided by the number of
in-bounds neighbours with truncating integer division.
"""

import numpy as np
import cv2

from ..utils.errors import ImageShapeError
from ..utils.logger import get_logger
from ..utils.pixel_codec import DEVICE_DTYPE, ImageDimensions, from_device_form, to_device_form

logger = get_logger(__name__)


def box_blur_reference(pixels: np.ndarray, dimensions: ImageDimensions, radius: int) -> np.ndarray:
    """
    Box blur device-form samples on the CPU.

    Args:
        pixels: int32 (or any integer) RGBA samples, flat or (H, W, 4)
        dimensions: Image width and height
        radius: Non-negative neighbourhood half-width

    Returns:
        Flat int32 samples, same length as ``pixels``.
    """
    pixels = np.asarray(pixels)
    dimensions.validate_buffer(pixels)
    if radius < 0:
        raise ImageShapeError(f"Blur radius must be non-negative, got {radius}")

    flat = pixels.reshape(-1).astype(DEVICE_DTYPE)
    if radius == 0:
        return flat.copy()

    ksize = (2 * radius + 1, 2 * radius + 1)
    image = flat.reshape(dimensions.shape).astype(np.float64)

    # Unnormalized sums with a zero border; integer-valued doubles stay exact
    sums = cv2.boxFilter(
        image, cv2.CV_64F, ksize, normalize=False, borderType=cv2.BORDER_CONSTANT
    )
    counts = cv2.boxFilter(
        np.ones((dimensions.height, dimensions.width), dtype=np.float64),
        cv2.CV_64F, ksize, normalize=False, borderType=cv2.BORDER_CONSTANT,
    )

    sums = np.rint(sums).astype(np.int64).reshape(dimensions.shape)
    counts = np.rint(counts).astype(np.int64).reshape(dimensions.height, dimensions.width, 1)

    # Truncate toward zero like the kernel's integer division
    means = np.sign(sums) * (np.abs(sums) // counts)
    return means.astype(DEVICE_DTYPE).reshape(-1)


def box_blur_image(pixels: np.ndarray, dimensions: ImageDimensions, radius: int) -> np.ndarray:
    """
    Box blur host-form (uint8) samples on the CPU.

    Returns uint8 samples with the same shape as ``pixels``.
    """
    result = box_blur_reference(to_device_form(pixels), dimensions, radius)
    logger.debug(f"CPU blur {dimensions.width}x{dimensions.height} r={radius}")
    return from_device_form(result).reshape(np.shape(pixels))
