# Centralized error types
"""
Provides consistent error types across the blur pipeline.

This module defines:
- Custom exception classes for each failure kind of a blur invocation
- Utility functions for user-facing error messages
"""

from typing import Optional, Tuple, Union
from enum import Enum


class ErrorCategory(Enum):
    """Categories of errors for consistent handling."""
    USER_INPUT = "user_input"        # Invalid image shape or radius
    FILE_IO = "file_io"              # File system errors
    GPU = "gpu"                      # Generic GPU errors
    CAPABILITY = "capability"        # No adapter or device; fatal to the GPU path
    RESOURCE = "resource"            # Device allocation failed; caller may retry
    CONTRACT = "contract"            # Binding/pipeline mismatch; a programming defect
    READBACK = "readback"            # Mapping the staging buffer failed
    DEVICE_LOST = "device_lost"      # Context must be reinitialized


class AppError(Exception):
    """Base exception for application-specific errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.GPU,
        original_error: Optional[Exception] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.category = category
        self.original_error = original_error
        self.user_message = user_message or message

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.args[0]} (caused by: {type(self.original_error).__name__})"
        return self.args[0]


class FileIOError(AppError):
    """File I/O related errors."""

    def __init__(self, message: str, file_path: Optional[str] = None, **kwargs):
        super().__init__(message, category=ErrorCategory.FILE_IO, **kwargs)
        self.file_path = file_path


class ImageShapeError(AppError):
    """Pixel buffer, dimensions or radius do not describe a valid blur."""

    def __init__(
        self,
        message: str,
        dimensions: Optional[Tuple[int, int]] = None,
        length: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.USER_INPUT, **kwargs)
        self.dimensions = dimensions
        self.length = length


class GPUError(AppError):
    """GPU-related errors."""

    def __init__(
        self,
        message: str,
        fallback_available: bool = True,
        category: ErrorCategory = ErrorCategory.GPU,
        **kwargs,
    ):
        super().__init__(message, category=category, **kwargs)
        self.fallback_available = fallback_available


class NoAdapterError(GPUError):
    """The platform offered no compatible adapter."""

    def __init__(self, message: str = "No compatible GPU adapter found", **kwargs):
        kwargs.setdefault("user_message", "No compatible GPU was found on this system.")
        super().__init__(message, category=ErrorCategory.CAPABILITY, **kwargs)


class DeviceCreationError(GPUError):
    """An adapter was found but a device could not be acquired from it."""

    def __init__(self, message: str = "Failed to create GPU device", **kwargs):
        kwargs.setdefault("user_message", "The GPU could not be initialized.")
        super().__init__(message, category=ErrorCategory.CAPABILITY, **kwargs)


class DeviceLostError(GPUError):
    """The device was lost; the context has to be initialized again."""

    def __init__(self, message: str = "GPU device was lost", **kwargs):
        super().__init__(message, category=ErrorCategory.DEVICE_LOST, **kwargs)


class BufferAllocationError(GPUError):
    """A device buffer could not be allocated."""

    def __init__(self, message: str, byte_length: int = 0, **kwargs):
        kwargs.setdefault(
            "user_message",
            "Not enough GPU memory to blur this image. Try a smaller image.",
        )
        super().__init__(message, category=ErrorCategory.RESOURCE, **kwargs)
        self.byte_length = byte_length


class SubmissionError(GPUError):
    """Binding, pipeline or command submission rejected by the device."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message, fallback_available=False, category=ErrorCategory.CONTRACT, **kwargs
        )


class ReadbackError(GPUError):
    """The staging buffer could not be mapped for reading."""

    def __init__(self, message: str, device_lost: bool = False, **kwargs):
        super().__init__(message, category=ErrorCategory.READBACK, **kwargs)
        self.device_lost = device_lost


def format_user_error(error: Union[AppError, MemoryError]) -> str:
    """
    Message shown to the user for a failed blur.

    Application errors carry their own user message. A MemoryError comes
    from host-side allocation of a very large image (CPU filter or
    codec) and gets a size hint.
    """
    if isinstance(error, AppError):
        return error.user_message
    return "Not enough memory to complete this operation. Try with a smaller image."
