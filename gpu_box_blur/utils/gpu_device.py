"""
GPU Device Context - Process-wide wgpu device and blur kernel program.

The context acquires an adapter and device once, builds the fixed
bind-group layout of the box blur kernel and compiles the kernel module.
Every blur invocation borrows it read-only. It is initialized explicitly
(``await context.initialize()``) and torn down with ``shutdown()``.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Dict, Any
import wgpu

from .errors import DeviceCreationError, DeviceLostError, GPUError, NoAdapterError
from .gpu_shaders import BOX_BLUR_BINDINGS, BOX_BLUR_SHADER, ShaderLoader
from .logger import get_logger
from ..config import settings

logger = get_logger(__name__)

# WebGPU defaults, used when the device does not report a limit
DEFAULT_MAX_STORAGE_BINDING_SIZE = 128 * 1024 * 1024
DEFAULT_MAX_WORKGROUPS_PER_DIMENSION = 65535

# Upper bound on waiting for the device lost signal after a failed readback
LOST_POLL_TIMEOUT = 0.05


@dataclass(frozen=True)
class KernelProgram:
    """Immutable layout and compiled module shared by every invocation."""
    bind_group_layout: Any
    pipeline_layout: Any
    shader_module: Any
    entry_point: str = "main"


class DeviceContext:
    """
    Owner of the wgpu device and the box blur KernelProgram.

    States: uninitialized -> ready -> (lost | shut down) -> ready again
    after another ``initialize()``.
    """

    _instance: Optional["DeviceContext"] = None

    def __init__(self, power_preference: Optional[str] = None) -> None:
        self.power_preference = power_preference or settings.GPU_SETTINGS["power_preference"]
        self.device_name: Optional[str] = None
        self.backend_name: Optional[str] = None

        self._adapter: Optional[Any] = None
        self._device: Optional[Any] = None
        self._program: Optional[KernelProgram] = None
        self._limits: Dict[str, Any] = {}
        self._lost_reason: Optional[str] = None
        self._pending: Optional[asyncio.Future] = None

    @classmethod
    def get(cls) -> "DeviceContext":
        """Get the process-wide context (created lazily, not yet initialized)."""
        if cls._instance is None:
            cls._instance = DeviceContext()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Shut down and drop the process-wide context (mainly for testing)."""
        if cls._instance is not None:
            cls._instance.shutdown()
            cls._instance = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> "DeviceContext":
        """
        Acquire adapter and device and build the kernel program.

        Safe to call repeatedly: a ready context returns immediately, and a
        call made while another initialization is pending awaits that one
        instead of starting a second acquisition.

        Raises:
            NoAdapterError: No compatible adapter.
            DeviceCreationError: Device request or program build failed.
        """
        if self.is_ready:
            return self

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._acquire())
        pending = self._pending
        try:
            await asyncio.shield(pending)
        finally:
            if pending.done() and self._pending is pending:
                self._pending = None
        return self

    async def _acquire(self) -> None:
        try:
            adapter = await wgpu.gpu.request_adapter_async(
                power_preference=self.power_preference
            )
        except Exception as e:
            logger.warning(f"wgpu: Adapter request failed: {e}")
            raise NoAdapterError(original_error=e) from e
        if adapter is None:
            logger.warning("wgpu: No compatible GPU adapter found")
            raise NoAdapterError()

        try:
            device = await adapter.request_device_async()
        except Exception as e:
            logger.error(f"wgpu: Failed to create device: {e}")
            raise DeviceCreationError(original_error=e) from e
        if device is None:
            raise DeviceCreationError()

        try:
            program = self._build_program(device)
        except wgpu.GPUError as e:
            logger.error(f"wgpu: Failed to build blur kernel program: {e}")
            raise DeviceCreationError(
                "Failed to compile box blur kernel", original_error=e
            ) from e

        # Extract backend info from adapter summary, e.g. "AMD Radeon... (Vulkan)"
        summary = str(getattr(adapter, "summary", "") or "GPU")
        backend_name = "WebGPU"
        if "(" in summary:
            backend_name = summary.split("(")[-1].replace(")", "").strip()

        self._adapter = adapter
        self._device = device
        self._program = program
        self._limits = dict(device.limits) if hasattr(device, "limits") else {}
        self._lost_reason = None
        self.backend_name = backend_name
        self.device_name = f"{summary.split('(')[0].strip()} ({backend_name})"

        logger.info(f"GPU box blur enabled: {self.device_name}")

    def _build_program(self, device: Any) -> KernelProgram:
        """Bind-group layout (four compute-only storage bindings) and kernel module."""
        entries = []
        for binding in BOX_BLUR_BINDINGS:
            buffer_type = (
                wgpu.BufferBindingType.read_only_storage
                if binding.read_only
                else wgpu.BufferBindingType.storage
            )
            entries.append({
                "binding": binding.binding,
                "visibility": wgpu.ShaderStage.COMPUTE,
                "buffer": {"type": buffer_type},
            })

        bind_group_layout = device.create_bind_group_layout(
            label="box_blur_bindings", entries=entries
        )
        pipeline_layout = device.create_pipeline_layout(
            label="box_blur_layout", bind_group_layouts=[bind_group_layout]
        )
        module = ShaderLoader.compile(device, BOX_BLUR_SHADER)
        return KernelProgram(
            bind_group_layout=bind_group_layout,
            pipeline_layout=pipeline_layout,
            shader_module=module,
            entry_point=settings.GPU_SETTINGS["entry_point"],
        )

    def shutdown(self) -> None:
        """Destroy the device and drop the program."""
        if self._device is not None:
            logger.info("Shutting down GPU device context")
            destroy = getattr(self._device, "destroy", None)
            if destroy is not None:
                try:
                    destroy()
                except wgpu.GPUError as e:
                    logger.debug(f"Destroying the device failed: {e}")
        self._program = None
        self._device = None
        self._adapter = None
        self._limits = {}

    def mark_lost(self, reason: str) -> None:
        """Record device loss; invocations are refused until re-initialized."""
        logger.error(f"GPU device lost: {reason}")
        self._lost_reason = reason
        self.shutdown()

    async def poll_lost(self, timeout: float = LOST_POLL_TIMEOUT) -> Optional[str]:
        """
        Ask the device whether it has been lost.

        wgpu resolves ``device.lost_async()`` once the device is gone; a
        live device leaves it pending, so the wait is bounded by
        ``timeout``. Returns the loss message, or None when the device is
        alive or does not expose the signal.
        """
        lost_async = getattr(self._device, "lost_async", None)
        if lost_async is None:
            return None
        try:
            info = await asyncio.wait_for(lost_async(), timeout)
        except asyncio.TimeoutError:
            return None
        message = getattr(info, "message", None)
        return message or f"device lost ({getattr(info, 'reason', 'unknown')})"

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def is_ready(self) -> bool:
        """True once initialized and neither lost nor shut down."""
        return self._device is not None and self._program is not None

    @property
    def is_lost(self) -> bool:
        return self._lost_reason is not None

    def require_ready(self) -> None:
        """Raise unless an invocation may run against this context."""
        if self.is_lost:
            raise DeviceLostError(f"GPU device was lost ({self._lost_reason}); reinitialize first")
        if not self.is_ready:
            raise GPUError("GPU device context is not initialized")

    @property
    def device(self) -> Any:
        """The wgpu device."""
        self.require_ready()
        return self._device

    @property
    def program(self) -> KernelProgram:
        """The box blur KernelProgram."""
        self.require_ready()
        return self._program

    def limit(self, name: str, default: int) -> int:
        """Device limit by snake_case name; wgpu may report it hyphenated."""
        for key in (name, name.replace("_", "-")):
            if key in self._limits:
                return int(self._limits[key])
        return default

    @property
    def max_storage_buffer_binding_size(self) -> int:
        return self.limit("max_storage_buffer_binding_size", DEFAULT_MAX_STORAGE_BINDING_SIZE)

    @property
    def max_workgroups_per_dimension(self) -> int:
        return self.limit(
            "max_compute_workgroups_per_dimension", DEFAULT_MAX_WORKGROUPS_PER_DIMENSION
        )

    def get_info(self) -> Dict[str, Any]:
        """Get GPU information for display."""
        return {
            "enabled": self.is_ready,
            "lost": self.is_lost,
            "backend": self.backend_name,
            "device_name": self.device_name,
            "power_preference": self.power_preference,
            "max_storage_buffer_binding_size": self.max_storage_buffer_binding_size,
            "max_workgroups_per_dimension": self.max_workgroups_per_dimension,
        }
