# GPU pipeline for one box blur invocation
"""
Runs one blur end to end on the GPU.

codec -> allocate -> dispatch -> await mapping -> codec, with the buffer
set released on every exit path.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional
import numpy as np
import time

from .gpu_device import DeviceContext
from .gpu_engine import KernelDispatcher
from .gpu_readback import await_result
from .gpu_resources import allocate, create_staging_buffer
from .logger import get_logger
from .pixel_codec import ImageDimensions, as_rgba_image, from_device_form, to_device_form

logger = get_logger(__name__)

# Shared by all invocations; caches the compute pipeline per KernelProgram
_default_dispatcher = KernelDispatcher()


@dataclass
class BlurResult:
    """Result of one blur."""
    image: np.ndarray
    dimensions: ImageDimensions
    radius: int
    total_time: float
    used_gpu: bool

    def as_rgba(self) -> np.ndarray:
        """The result as an (H, W, 4) uint8 image."""
        return as_rgba_image(self.image, self.dimensions)


async def blur_pixels(
    context: DeviceContext,
    pixels: np.ndarray,
    dimensions: ImageDimensions,
    radius: int,
    dispatcher: Optional[KernelDispatcher] = None,
) -> BlurResult:
    """
    Blur host-form pixels on the GPU.

    Args:
        context: Ready DeviceContext
        pixels: uint8 RGBA samples, flat or (H, W, 4)
        dimensions: Image width and height
        radius: Non-negative blur radius
        dispatcher: KernelDispatcher to use (module default if None)

    Returns:
        BlurResult whose image has the same shape as ``pixels``.
    """
    context.require_ready()
    dispatcher = dispatcher or _default_dispatcher
    start = time.perf_counter()

    device_pixels = to_device_form(pixels)

    with allocate(context, dimensions, radius, device_pixels) as buffers:
        buffers.staging = create_staging_buffer(context, buffers.byte_length)
        dispatcher.dispatch(context, buffers, dimensions)
        readback = asyncio.ensure_future(
            await_result(context, buffers.staging, buffers.byte_length)
        )
        try:
            device_result = await asyncio.shield(readback)
        except asyncio.CancelledError:
            # Submitted work cannot be cancelled; the buffers outlive the mapping
            await asyncio.gather(readback, return_exceptions=True)
            raise

    image = from_device_form(device_result).reshape(np.shape(pixels))
    elapsed = time.perf_counter() - start
    logger.debug(
        f"GPU blur {dimensions.width}x{dimensions.height} r={radius}: {elapsed * 1000:.1f} ms"
    )
    return BlurResult(
        image=image,
        dimensions=dimensions,
        radius=radius,
        total_time=elapsed,
        used_gpu=True,
    )
