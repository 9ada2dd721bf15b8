"""
GPU Readback - Awaits the staging buffer and copies the result to the host.

Mapping the staging buffer is the only point where a blur suspends. The
result buffer itself is never read from the host.
"""

from typing import Any, Optional
import numpy as np
import wgpu

from .errors import ReadbackError
from .gpu_resources import GPUBuffer
from .logger import get_logger
from .pixel_codec import DEVICE_DTYPE, from_device_bytes

logger = get_logger(__name__)


async def _loss_reason(context: Any, error: Exception) -> Optional[str]:
    """Why the device is gone, or None if the mapping failed on a live device."""
    reason = await context.poll_lost()
    if reason is not None:
        return reason
    # Backends without the lost signal only report loss through the error
    if isinstance(error, wgpu.GPUInternalError) or "lost" in str(error).lower():
        return str(error)
    return None


async def await_result(context: Any, staging: GPUBuffer, byte_length: int) -> np.ndarray:
    """
    Wait until the staging buffer is host-visible and copy it out.

    Args:
        context: DeviceContext the work was submitted to; marked lost when
            the device reports loss (or the failure says so).
        staging: Staging buffer the result was copied into
        byte_length: Number of bytes to read

    Returns:
        Host-owned int32 samples (device form).

    Raises:
        ReadbackError: Mapping failed.
    """
    buffer = staging.buffer
    try:
        await buffer.map_async(wgpu.MapMode.READ, 0, byte_length)
    except (wgpu.GPUError, RuntimeError) as e:
        reason = await _loss_reason(context, e)
        if reason is not None:
            context.mark_lost(reason)
        raise ReadbackError(
            f"Mapping the staging buffer failed: {e}",
            device_lost=reason is not None,
            original_error=e,
        ) from e

    try:
        data = buffer.read_mapped(0, byte_length)
        result = from_device_bytes(data, byte_length // DEVICE_DTYPE.itemsize)
    finally:
        buffer.unmap()

    logger.debug(f"Read back {byte_length} bytes")
    return result
