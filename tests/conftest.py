import asyncio
from types import SimpleNamespace

import numpy as np
import pytest
import pytest_asyncio
import wgpu

from gpu_box_blur.processing.box_blur import box_blur_reference
from gpu_box_blur.utils.gpu_device import DeviceContext
from gpu_box_blur.utils.pixel_codec import ImageDimensions


# =========================================================================
# Recording wgpu test double
# =========================================================================

class FakeBuffer:
    def __init__(self, device, size, usage, label=""):
        self.device = device
        self.size = size
        self.usage = usage
        self.label = label
        self.data = bytearray(size)
        self.mapped = False
        self.destroyed = False

    async def map_async(self, mode, offset=0, size=None):
        self.device.events.append(("map", self.label))
        await asyncio.sleep(0)
        if self.device.map_error is not None:
            raise self.device.map_error
        if self.destroyed:
            raise RuntimeError("Cannot map a destroyed buffer")
        self.mapped = True

    def read_mapped(self, buffer_offset=0, size=None):
        assert self.mapped, "read_mapped on an unmapped buffer"
        size = self.size if size is None else size
        return memoryview(bytes(self.data[buffer_offset:buffer_offset + size]))

    def unmap(self):
        self.mapped = False

    def destroy(self):
        self.destroyed = True
        self.device.destroyed.append(self.label)


class FakeQueue:
    def __init__(self, device):
        self.device = device

    def write_buffer(self, buffer, buffer_offset, data, data_offset=0, size=None):
        data = bytes(data)
        buffer.data[buffer_offset:buffer_offset + len(data)] = data
        self.device.events.append(("write", buffer.label))

    def submit(self, command_buffers):
        if self.device.submit_error is not None:
            raise self.device.submit_error
        self.device.events.append(("submit", len(command_buffers)))
        for command_buffer in command_buffers:
            for command in command_buffer.commands:
                self.device.execute(command)


class FakeComputePass:
    def __init__(self, encoder):
        self.encoder = encoder
        self.pipeline = None
        self.bind_groups = {}

    def set_pipeline(self, pipeline):
        self.pipeline = pipeline

    def set_bind_group(self, index, bind_group, *args):
        self.bind_groups[index] = bind_group

    def dispatch_workgroups(self, x, y=1, z=1):
        self.encoder.commands.append(
            ("dispatch", self.pipeline, dict(self.bind_groups), (x, y, z))
        )

    def end(self):
        self.encoder.commands.append(("end_pass",))


class FakeCommandBuffer:
    def __init__(self, commands):
        self.commands = commands


class FakeEncoder:
    def __init__(self):
        self.commands = []

    def begin_compute_pass(self, **kwargs):
        self.commands.append(("begin_pass",))
        return FakeComputePass(self)

    def copy_buffer_to_buffer(self, source, source_offset, destination, destination_offset, size):
        self.commands.append(("copy", source, source_offset, destination, destination_offset, size))

    def finish(self):
        return FakeCommandBuffer(self.commands)


class FakeDevice:
    """Records every call and runs dispatches through the CPU reference filter."""

    def __init__(self, limits=None):
        self.queue = FakeQueue(self)
        self.limits = dict(limits or {})
        self.events = []
        self.buffers = []
        self.destroyed = []
        self.dispatches = []
        self.shader_code = None
        self.layout_entries = None
        self.pipelines_created = 0
        self.destroyed_device = False
        self.lost_info = None
        # Failure injection
        self.fail_allocation = None
        self.map_error = None
        self.submit_error = None

    def create_buffer(self, label="", size=0, usage=0, mapped_at_creation=False):
        if self.fail_allocation == label:
            raise wgpu.GPUOutOfMemoryError(f"Out of memory allocating '{label}'")
        buffer = FakeBuffer(self, size, usage, label)
        self.buffers.append(buffer)
        self.events.append(("create", label))
        return buffer

    def create_bind_group_layout(self, label="", entries=()):
        self.layout_entries = list(entries)
        return ("layout", label)

    def create_pipeline_layout(self, label="", bind_group_layouts=()):
        return ("pipeline_layout", tuple(bind_group_layouts))

    def create_shader_module(self, label="", code=""):
        self.shader_code = code
        return ("module", label)

    def create_compute_pipeline(self, label="", layout=None, compute=None):
        self.pipelines_created += 1
        return ("pipeline", layout, compute["entry_point"])

    def create_bind_group(self, label="", layout=None, entries=()):
        entries = list(entries)
        if len(entries) != len(self.layout_entries):
            raise wgpu.GPUValidationError(
                f"Bind group has {len(entries)} entries, layout expects {len(self.layout_entries)}"
            )
        return {entry["binding"]: entry["resource"]["buffer"] for entry in entries}

    def create_command_encoder(self, **kwargs):
        return FakeEncoder()

    def execute(self, command):
        kind = command[0]
        if kind == "dispatch":
            _, pipeline, bind_groups, grid = command
            self.dispatches.append(grid)
            self.events.append(("dispatch", grid))
            self._run_kernel(bind_groups[0], grid)
        elif kind == "copy":
            _, source, source_offset, destination, destination_offset, size = command
            self.events.append(("copy", source.label, destination.label))
            destination.data[destination_offset:destination_offset + size] = (
                source.data[source_offset:source_offset + size]
            )

    def _run_kernel(self, bindings, grid):
        width, height = np.frombuffer(bytes(bindings[0].data), dtype="<u4")
        pixels = np.frombuffer(bytes(bindings[1].data), dtype="<i4")
        radius = int(np.frombuffer(bytes(bindings[2].data), dtype="<i4")[0])
        dims = ImageDimensions(int(width), int(height))

        blurred = box_blur_reference(pixels, dims, radius).reshape(dims.shape)
        out = np.frombuffer(bytes(bindings[3].data), dtype="<i4").reshape(dims.shape).copy()
        gx, gy, _ = grid
        out[:gy, :gx] = blurred[:gy, :gx]
        bindings[3].data[:] = out.tobytes()

    def live_buffers(self):
        return [b for b in self.buffers if not b.destroyed]

    def lose(self, message, reason="unknown"):
        """Resolve the lost signal the way wgpu does when the device goes away."""
        self.lost_info = SimpleNamespace(reason=reason, message=message)

    async def lost_async(self):
        while self.lost_info is None:
            await asyncio.sleep(0.001)
        return self.lost_info

    def destroy(self):
        self.destroyed_device = True
        if self.lost_info is None:
            self.lose("Device was destroyed.", reason="destroyed")


class FakeAdapter:
    summary = "Fake GPU (Vulkan)"

    def __init__(self, gpu):
        self.gpu = gpu

    async def request_device_async(self, **kwargs):
        self.gpu.device_requests += 1
        if self.gpu.device_error is not None:
            raise self.gpu.device_error
        device = FakeDevice(self.gpu.limits)
        self.gpu.devices.append(device)
        return device


class FakeGPU:
    """Stands in for ``wgpu.gpu``."""

    def __init__(self):
        self.adapter_available = True
        self.device_error = None
        self.limits = {}
        self.adapter_requests = 0
        self.device_requests = 0
        self.devices = []

    async def request_adapter_async(self, **kwargs):
        self.adapter_requests += 1
        await asyncio.sleep(0)
        if not self.adapter_available:
            return None
        return FakeAdapter(self)

    @property
    def device(self):
        return self.devices[-1]


# =========================================================================
# Fixtures
# =========================================================================

@pytest.fixture(autouse=True)
def reset_device_context():
    yield
    DeviceContext.reset()


@pytest.fixture
def fake_gpu(monkeypatch):
    """Replace wgpu.gpu with a recording fake."""
    gpu = FakeGPU()
    monkeypatch.setattr(wgpu, "gpu", gpu)
    return gpu


@pytest.fixture
def context(fake_gpu):
    """An uninitialized DeviceContext backed by the fake GPU."""
    return DeviceContext()


@pytest_asyncio.fixture
async def ready_context(context):
    """A DeviceContext initialized against the fake GPU."""
    await context.initialize()
    return context


@pytest.fixture
def sample_image_rgba():
    """Returns a 40x30 uint8 RGBA image with four colored quadrants."""
    img = np.zeros((30, 40, 4), dtype=np.uint8)
    img[:15, :20] = [255, 0, 0, 255]     # Red quadrant
    img[:15, 20:] = [0, 255, 0, 255]     # Green quadrant
    img[15:, :20] = [0, 0, 255, 255]     # Blue quadrant
    img[15:, 20:] = [255, 255, 0, 128]   # Translucent yellow quadrant
    return img


@pytest.fixture
def random_image():
    """Returns a seeded random 23x17 RGBA image (odd sizes on purpose)."""
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, (17, 23, 4), dtype=np.uint8)


def naive_box_blur(image, radius):
    """Direct per-pixel loop over the kernel definition, used as an oracle."""
    height, width, channels = image.shape
    src = image.astype(np.int64)
    out = np.zeros_like(src)
    for y in range(height):
        for x in range(width):
            total = np.zeros(channels, dtype=np.int64)
            count = 0
            for dy in range(-radius, radius + 1):
                for dx in range(-radius, radius + 1):
                    nx, ny = x + dx, y + dy
                    if 0 <= nx < width and 0 <= ny < height:
                        total += src[ny, nx]
                        count += 1
            out[y, x] = total // count
    return out
