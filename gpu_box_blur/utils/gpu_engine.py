"""
GPU Engine - Kernel dispatch for the box blur.

Binds one invocation's buffers to the kernel, records a single compute pass
with one workgroup (of size 1) per output pixel, appends the copy of the
result into the staging buffer and submits. Submission does not wait for
the device; completion is observed by mapping the staging buffer.
"""

from typing import Any, Optional
import wgpu

from .errors import ImageShapeError, SubmissionError
from .gpu_device import DeviceContext, KernelProgram
from .gpu_resources import DeviceBufferSet
from .gpu_shaders import BOX_BLUR_BINDINGS
from .logger import get_logger
from .pixel_codec import ImageDimensions

logger = get_logger(__name__)


class KernelDispatcher:
    """
    Builds the compute pipeline and submits blur work.

    The pipeline depends only on the KernelProgram, never on image content,
    so it is built once per program and reused.
    """

    def __init__(self) -> None:
        self._pipeline: Optional[Any] = None
        self._program: Optional[KernelProgram] = None

    def pipeline_for(self, context: DeviceContext) -> Any:
        """Get the compute pipeline for the context's current program."""
        program = context.program
        if self._pipeline is None or self._program is not program:
            self._pipeline = context.device.create_compute_pipeline(
                label="box_blur",
                layout=program.pipeline_layout,
                compute={"module": program.shader_module, "entry_point": program.entry_point},
            )
            self._program = program
            logger.debug("Built box blur compute pipeline")
        return self._pipeline

    def invalidate(self) -> None:
        """Drop the cached pipeline."""
        self._pipeline = None
        self._program = None

    def dispatch(
        self,
        context: DeviceContext,
        buffers: DeviceBufferSet,
        dimensions: ImageDimensions,
    ) -> None:
        """
        Record and submit the blur of one image.

        Args:
            context: Ready DeviceContext
            buffers: Populated buffer set with a staging buffer attached
            dimensions: Image width and height (the dispatch grid)

        Raises:
            ImageShapeError: The grid exceeds the device's workgroup limit.
            SubmissionError: The device rejected binding, pipeline or
                submission. This is a contract violation and is not retried.
        """
        max_groups = context.max_workgroups_per_dimension
        if dimensions.width > max_groups or dimensions.height > max_groups:
            raise ImageShapeError(
                f"{dimensions.width}x{dimensions.height} exceeds the device limit of "
                f"{max_groups} workgroups per dimension",
                dimensions=(dimensions.width, dimensions.height),
            )
        if buffers.staging is None:
            raise SubmissionError("No staging buffer attached to the buffer set")

        device = context.device
        program = context.program

        try:
            bind_group = device.create_bind_group(
                label="box_blur_resources",
                layout=program.bind_group_layout,
                entries=[
                    {
                        "binding": binding.binding,
                        "resource": {"buffer": gpu_buffer.buffer, "offset": 0, "size": gpu_buffer.size},
                    }
                    for binding, gpu_buffer in zip(BOX_BLUR_BINDINGS, buffers.bindings())
                ],
            )
            pipeline = self.pipeline_for(context)

            encoder = device.create_command_encoder()
            compute_pass = encoder.begin_compute_pass()
            compute_pass.set_pipeline(pipeline)
            compute_pass.set_bind_group(0, bind_group)
            compute_pass.dispatch_workgroups(dimensions.width, dimensions.height, 1)
            compute_pass.end()

            encoder.copy_buffer_to_buffer(
                buffers.result.buffer, 0, buffers.staging.buffer, 0, buffers.byte_length
            )
            device.queue.submit([encoder.finish()])
        except wgpu.GPUError as e:
            logger.error(f"Box blur submission rejected: {e}")
            raise SubmissionError(f"Box blur submission rejected: {e}", original_error=e) from e

        logger.debug(
            f"Submitted box blur: {dimensions.width}x{dimensions.height} workgroups"
        )
