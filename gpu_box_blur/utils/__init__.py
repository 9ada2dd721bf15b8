# This file makes the 'utils' directory a Python package.

from .errors import (
    AppError,
    FileIOError,
    ImageShapeError,
    GPUError,
    NoAdapterError,
    DeviceCreationError,
    DeviceLostError,
    BufferAllocationError,
    SubmissionError,
    ReadbackError,
    ErrorCategory,
    format_user_error,
)
from .pixel_codec import (
    ImageDimensions,
    to_device_form,
    from_device_form,
    as_rgba_image,
)
from .gpu_device import DeviceContext, KernelProgram
from .gpu_resources import DeviceBufferSet, GPUBuffer, allocate, create_staging_buffer
from .gpu_engine import KernelDispatcher
from .gpu_readback import await_result
from .gpu_pipeline import BlurResult, blur_pixels

__all__ = [
    # Errors
    'AppError',
    'FileIOError',
    'ImageShapeError',
    'GPUError',
    'NoAdapterError',
    'DeviceCreationError',
    'DeviceLostError',
    'BufferAllocationError',
    'SubmissionError',
    'ReadbackError',
    'ErrorCategory',
    'format_user_error',
    # Pixel codec
    'ImageDimensions',
    'to_device_form',
    'from_device_form',
    'as_rgba_image',
    # Device
    'DeviceContext',
    'KernelProgram',
    # Buffers
    'DeviceBufferSet',
    'GPUBuffer',
    'allocate',
    'create_staging_buffer',
    # Dispatch and readback
    'KernelDispatcher',
    'await_result',
    # Pipeline
    'BlurResult',
    'blur_pixels',
]
