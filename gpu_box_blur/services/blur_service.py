from __future__ import annotations

import asyncio
import time
from typing import Optional

import numpy as np

from ..config import settings
from ..processing.box_blur import box_blur_image
from ..utils.errors import DeviceCreationError, ImageShapeError, NoAdapterError
from ..utils.gpu_device import DeviceContext
from ..utils.gpu_engine import KernelDispatcher
from ..utils.gpu_pipeline import BlurResult, blur_pixels
from ..utils.logger import get_logger
from ..utils.pixel_codec import ImageDimensions

logger = get_logger(__name__)


class BlurService:
    """Facade over the device context and the per-invocation blur pipeline.

    Blurs are serialized against the shared context so at most one command
    sequence is in flight at a time. ``request`` additionally tracks the
    newest request and drops results that were superseded while running.
    """

    def __init__(
        self,
        context: Optional[DeviceContext] = None,
        *,
        use_gpu: bool = True,
        cpu_fallback: Optional[bool] = None,
    ) -> None:
        self._context = context
        self.use_gpu = use_gpu
        self.cpu_fallback = (
            settings.GPU_SETTINGS["cpu_fallback"] if cpu_fallback is None else cpu_fallback
        )
        self._dispatcher = KernelDispatcher()
        self._lock = asyncio.Lock()
        self._latest_token = 0

    @property
    def context(self) -> DeviceContext:
        if self._context is None:
            self._context = DeviceContext.get()
        return self._context

    async def blur(self, pixels: np.ndarray, width: int, height: int, radius: int) -> BlurResult:
        """Blur one RGBA uint8 image; the result has the shape of ``pixels``."""
        pixels = np.asarray(pixels)
        dimensions = ImageDimensions(width, height)
        dimensions.validate_buffer(pixels)
        if radius < 0:
            raise ImageShapeError(f"Blur radius must be non-negative, got {radius}")

        async with self._lock:
            if not self.use_gpu:
                return self._blur_cpu(pixels, dimensions, radius)

            try:
                # Also re-acquires the device after a loss
                await self.context.initialize()
            except (NoAdapterError, DeviceCreationError) as e:
                if not self.cpu_fallback:
                    raise
                logger.warning("GPU unavailable (%s), falling back to CPU", e)
                return self._blur_cpu(pixels, dimensions, radius)

            return await blur_pixels(
                self.context, pixels, dimensions, radius, dispatcher=self._dispatcher
            )

    async def request(
        self, pixels: np.ndarray, width: int, height: int, radius: int
    ) -> Optional[BlurResult]:
        """Blur as the newest request.

        Returns None when another request was issued before this one
        finished; its result must not replace the newer one. Errors are
        raised regardless of staleness.
        """
        self._latest_token += 1
        token = self._latest_token

        result = await self.blur(pixels, width, height, radius)

        if token != self._latest_token:
            logger.info(
                "Discarding stale blur result (request %d superseded by %d)",
                token, self._latest_token,
            )
            return None
        return result

    def blur_sync(self, pixels: np.ndarray, width: int, height: int, radius: int) -> BlurResult:
        """Blocking ``blur`` for callers without an event loop."""
        return asyncio.run(self.blur(pixels, width, height, radius))

    def shutdown(self) -> None:
        self._dispatcher.invalidate()
        if self._context is not None:
            self._context.shutdown()

    def _blur_cpu(self, pixels: np.ndarray, dimensions: ImageDimensions, radius: int) -> BlurResult:
        start = time.perf_counter()
        image = box_blur_image(pixels, dimensions, radius)
        return BlurResult(
            image=image,
            dimensions=dimensions,
            radius=radius,
            total_time=time.perf_counter() - start,
            used_gpu=False,
        )
