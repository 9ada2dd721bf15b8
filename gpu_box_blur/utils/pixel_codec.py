"""
Pixel Codec - Shape conversion between host and device pixel buffers.

Host form is the display-ready 8-bit interleaved RGBA buffer. Device form is
the same samples widened to int32 so the kernel can accumulate sums without
overflow. No color processing happens here.
"""

from dataclasses import dataclass
from typing import Tuple
import numpy as np

from .errors import ImageShapeError

CHANNELS = 4
DEVICE_DTYPE = np.dtype("<i4")
HOST_DTYPE = np.dtype(np.uint8)


@dataclass(frozen=True)
class ImageDimensions:
    """Width and height of one image, fixed for a blur invocation."""
    width: int
    height: int

    def __post_init__(self):
        if int(self.width) <= 0 or int(self.height) <= 0:
            raise ImageShapeError(
                f"Image dimensions must be positive, got {self.width}x{self.height}",
                dimensions=(self.width, self.height),
            )

    @classmethod
    def from_image(cls, image: np.ndarray) -> "ImageDimensions":
        """Dimensions of an (H, W, 4) array."""
        if image.ndim != 3 or image.shape[2] != CHANNELS:
            raise ImageShapeError(
                f"Expected an (H, W, {CHANNELS}) RGBA array, got shape {image.shape}",
                length=int(image.size),
            )
        return cls(width=int(image.shape[1]), height=int(image.shape[0]))

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def sample_count(self) -> int:
        return self.pixel_count * CHANNELS

    @property
    def byte_length(self) -> int:
        """Size of the device form buffer in bytes."""
        return self.sample_count * DEVICE_DTYPE.itemsize

    @property
    def shape(self) -> Tuple[int, int, int]:
        return (self.height, self.width, CHANNELS)

    def validate_buffer(self, buffer: np.ndarray) -> None:
        """Raise ImageShapeError unless ``buffer`` holds exactly one RGBA image of this size."""
        if buffer.size != self.sample_count:
            raise ImageShapeError(
                f"Pixel buffer holds {buffer.size} samples, "
                f"expected {self.sample_count} for {self.width}x{self.height} RGBA",
                dimensions=(self.width, self.height),
                length=int(buffer.size),
            )


def to_device_form(host_image: np.ndarray) -> np.ndarray:
    """
    Widen 8-bit samples to int32, verbatim.

    Args:
        host_image: uint8 samples, flat or (H, W, 4).

    Returns:
        Flat C-contiguous int32 array with the same number of samples.
    """
    host_image = np.asarray(host_image)
    if host_image.dtype != HOST_DTYPE:
        raise ImageShapeError(
            f"Host pixels must be uint8, got {host_image.dtype}",
            length=int(host_image.size),
        )
    return np.ascontiguousarray(host_image.reshape(-1), dtype=DEVICE_DTYPE)


def from_device_form(device_image: np.ndarray) -> np.ndarray:
    """
    Narrow int32 samples to uint8, saturating to [0, 255].

    Out-of-range values are clamped, never wrapped.
    """
    device_image = np.asarray(device_image).reshape(-1)
    return np.clip(device_image, 0, 255).astype(HOST_DTYPE)


def to_device_bytes(device_image: np.ndarray) -> bytes:
    """Little-endian int32 bytes as laid out in the device storage buffer."""
    return np.ascontiguousarray(device_image, dtype=DEVICE_DTYPE).tobytes()


def from_device_bytes(data, sample_count: int) -> np.ndarray:
    """Decode ``sample_count`` int32 samples from mapped buffer bytes into host-owned memory."""
    return np.frombuffer(data, dtype=DEVICE_DTYPE, count=sample_count).copy()


def as_rgba_image(buffer: np.ndarray, dimensions: ImageDimensions) -> np.ndarray:
    """View a flat buffer as an (H, W, 4) image."""
    dimensions.validate_buffer(buffer)
    return buffer.reshape(dimensions.shape)
