"""
GPU Resource Wrappers - Per-invocation buffers of one blur.

Each blur allocates its own DeviceBufferSet (size, pixels, radius, result
plus a host-readable staging buffer) and releases all of it when the
invocation ends, on success and on every error path. Nothing here is
pooled or shared between invocations.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional
import numpy as np
import wgpu

from .errors import BufferAllocationError, ImageShapeError
from .logger import get_logger
from .pixel_codec import DEVICE_DTYPE, ImageDimensions, to_device_bytes

logger = get_logger(__name__)

SIZE_DTYPE = np.dtype("<u4")
RADIUS_DTYPE = np.dtype("<i4")

INPUT_USAGE = wgpu.BufferUsage.STORAGE | wgpu.BufferUsage.COPY_DST
RESULT_USAGE = wgpu.BufferUsage.STORAGE | wgpu.BufferUsage.COPY_SRC
STAGING_USAGE = wgpu.BufferUsage.COPY_DST | wgpu.BufferUsage.MAP_READ


class GPUBuffer:
    """
    GPU buffer wrapper for storage and staging data.
    """

    def __init__(self, device: Any, size: int, usage: int, label: str = "") -> None:
        """
        Create a GPU buffer.

        Args:
            device: wgpu device owning the buffer
            size: Buffer size in bytes
            usage: wgpu buffer usage flags
            label: Debug label

        Raises:
            BufferAllocationError: The device refused the allocation.
        """
        self.size = size
        self.label = label
        self._device = device
        try:
            self._buffer = device.create_buffer(label=label, size=size, usage=usage)
        except wgpu.GPUError as e:
            raise BufferAllocationError(
                f"Failed to allocate {size} byte buffer '{label}': {e}",
                byte_length=size,
                original_error=e,
            ) from e

    @property
    def buffer(self) -> Any:
        """Get the underlying wgpu buffer."""
        return self._buffer

    @property
    def released(self) -> bool:
        return self._buffer is None

    def upload(self, data: bytes) -> None:
        """Queue a write of ``data`` at offset 0; ordered before any later submit."""
        self._device.queue.write_buffer(self._buffer, 0, data)

    def destroy(self) -> None:
        """Release GPU resources."""
        if self._buffer is None:
            return
        try:
            self._buffer.destroy()
        except wgpu.GPUError as e:
            logger.debug(f"Destroying buffer '{self.label}' failed: {e}")
        self._buffer = None


@dataclass
class DeviceBufferSet:
    """
    The buffers of one blur invocation.

    Use as a context manager: every buffer, including a staging buffer
    attached later, is destroyed when the block exits.
    """
    size: GPUBuffer
    pixels: GPUBuffer
    radius: GPUBuffer
    result: GPUBuffer
    staging: Optional[GPUBuffer] = None
    dimensions: Optional[ImageDimensions] = field(default=None, compare=False)

    @property
    def byte_length(self) -> int:
        """Size of the pixel and result payloads in bytes."""
        return self.result.size

    def bindings(self) -> List[GPUBuffer]:
        """Device buffers in kernel binding order."""
        return [self.size, self.pixels, self.radius, self.result]

    def __iter__(self) -> Iterator[GPUBuffer]:
        yield from self.bindings()
        if self.staging is not None:
            yield self.staging

    def release(self) -> None:
        """Destroy every buffer of the set."""
        for gpu_buffer in self:
            gpu_buffer.destroy()

    def __enter__(self) -> "DeviceBufferSet":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.release()
        return False


def allocate(
    context: Any,
    dimensions: ImageDimensions,
    radius: int,
    pixels: np.ndarray,
) -> DeviceBufferSet:
    """
    Allocate and populate the device buffers of one invocation.

    Size, pixels and radius are written through the queue, which orders the
    writes before any subsequently submitted command buffer. The result
    buffer is left unwritten; the kernel writes every element of it.

    Args:
        context: Ready DeviceContext
        dimensions: Image width and height
        radius: Non-negative blur radius
        pixels: Device form (int32) samples, ``dimensions.sample_count`` long

    Raises:
        ImageShapeError: Buffer length does not match the dimensions.
        BufferAllocationError: A buffer could not be allocated; buffers
            already created by this call are destroyed first.
    """
    dimensions.validate_buffer(pixels)
    if radius < 0:
        raise ImageShapeError(f"Blur radius must be non-negative, got {radius}")

    device = context.device
    pixel_data = np.ascontiguousarray(pixels, dtype=DEVICE_DTYPE)
    byte_length = pixel_data.nbytes

    max_binding = context.max_storage_buffer_binding_size
    if byte_length > max_binding:
        raise BufferAllocationError(
            f"Pixel buffer of {byte_length} bytes exceeds the device storage "
            f"binding limit of {max_binding} bytes",
            byte_length=byte_length,
        )

    size_data = np.array([dimensions.width, dimensions.height], dtype=SIZE_DTYPE)
    radius_data = np.array([radius], dtype=RADIUS_DTYPE)

    created: List[GPUBuffer] = []
    try:
        for label, nbytes, usage in (
            ("size", size_data.nbytes, INPUT_USAGE),
            ("pixels", byte_length, INPUT_USAGE),
            ("radius", radius_data.nbytes, INPUT_USAGE),
            ("result", byte_length, RESULT_USAGE),
        ):
            created.append(GPUBuffer(device, nbytes, usage, label=label))
    except BufferAllocationError:
        for gpu_buffer in created:
            gpu_buffer.destroy()
        raise

    buffers = DeviceBufferSet(*created, dimensions=dimensions)
    try:
        buffers.size.upload(size_data.tobytes())
        buffers.pixels.upload(to_device_bytes(pixel_data))
        buffers.radius.upload(to_device_bytes(radius_data))
    except BaseException:
        buffers.release()
        raise

    logger.debug(
        f"Allocated blur buffers for {dimensions.width}x{dimensions.height} "
        f"({byte_length} bytes), radius {radius}"
    )
    return buffers


def create_staging_buffer(context: Any, byte_length: int) -> GPUBuffer:
    """Host-readable buffer that only receives copies from the device."""
    return GPUBuffer(context.device, byte_length, STAGING_USAGE, label="staging")
