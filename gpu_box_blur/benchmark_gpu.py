"""
GPU Benchmark Script - Compare CPU vs GPU box blur performance.

This script benchmarks the GPU kernel against the CPU reference filter and
checks that both produce identical pixels.

Usage:
    python -m gpu_box_blur.benchmark_gpu
"""

import asyncio
import time
import numpy as np
from typing import Awaitable, Callable, Dict

from .processing.box_blur import box_blur_image
from .utils.errors import AppError
from .utils.gpu_device import DeviceContext
from .utils.gpu_pipeline import blur_pixels
from .utils.logger import get_logger
from .utils.pixel_codec import ImageDimensions

logger = get_logger(__name__)


def create_test_image(width: int = 1000, height: int = 750) -> np.ndarray:
    """Create an RGBA test image with gradients and noise."""
    np.random.seed(42)

    x = np.linspace(0, 255, width)
    y = np.linspace(0, 255, height)
    xx, yy = np.meshgrid(x, y)

    r = xx * 0.5 + yy * 0.3 + np.random.rand(height, width) * 30
    g = xx * 0.3 + yy * 0.5 + np.random.rand(height, width) * 30
    b = xx * 0.2 + yy * 0.4 + np.random.rand(height, width) * 30
    a = np.full((height, width), 255.0)

    image = np.stack([r, g, b, a], axis=2)
    return np.clip(image, 0, 255).astype(np.uint8)


def _summarize(times) -> Dict[str, float]:
    return {
        "min": min(times),
        "max": max(times),
        "mean": float(np.mean(times)),
        "std": float(np.std(times)),
    }


def benchmark_function(func: Callable, args: tuple, iterations: int = 5, warmup: int = 1) -> Dict[str, float]:
    """
    Benchmark a function with warmup and multiple iterations.

    Returns dict with min, max, mean, and std times in milliseconds.
    """
    for _ in range(warmup):
        func(*args)

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        func(*args)
        times.append((time.perf_counter() - start) * 1000)
    return _summarize(times)


async def benchmark_coroutine(
    func: Callable[..., Awaitable], args: tuple, iterations: int = 5, warmup: int = 1
) -> Dict[str, float]:
    """Like benchmark_function, for coroutine functions."""
    for _ in range(warmup):
        await func(*args)

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        await func(*args)
        times.append((time.perf_counter() - start) * 1000)
    return _summarize(times)


async def run_benchmark_async():
    """Run the full benchmark suite."""
    print("=" * 70)
    print("GPU Box Blur Benchmark")
    print("=" * 70)

    context = DeviceContext.get()
    try:
        await context.initialize()
    except AppError as e:
        print(f"\nGPU Status: unavailable ({e})")
        context = None
    else:
        info = context.get_info()
        print("\nGPU Status: enabled")
        print(f"Backend: {info['backend'] or 'None'}")
        print(f"Device: {info['device_name'] or 'N/A'}")

    sizes = [
        (320, 240, "320x240 (0.08 MP)"),
        (1000, 750, "1000x750 (0.75 MP)"),
        (2000, 1500, "2000x1500 (3 MP)"),
    ]
    radii = [1, 5, 10]

    for width, height, label in sizes:
        image = create_test_image(width, height)
        dims = ImageDimensions(width, height)

        for radius in radii:
            print(f"Image size: {label}, radius {radius}")

            cpu_result = benchmark_function(box_blur_image, (image, dims, radius))
            print(f"  CPU:  {cpu_result['mean']:7.1f} ms (±{cpu_result['std']:.1f})")

            if context is None:
                print("  GPU:  Not available")
                continue

            try:
                gpu_result = await benchmark_coroutine(blur_pixels, (context, image, dims, radius))
                speedup = cpu_result['mean'] / gpu_result['mean']
                speedup_str = f"{speedup:.1f}x" if speedup >= 1 else f"{1/speedup:.1f}x slower"
                print(f"  GPU:  {gpu_result['mean']:7.1f} ms (±{gpu_result['std']:.1f}) - {speedup_str}")

                gpu_pixels = (await blur_pixels(context, image, dims, radius)).image
                matches = np.array_equal(gpu_pixels, box_blur_image(image, dims, radius))
                print(f"  Match: {'yes' if matches else 'NO'}")
            except AppError as e:
                print(f"  GPU:  Error - {e}")
        print()

    print("=" * 70)
    print("Benchmark Complete")
    print("=" * 70)

    print("\nNotes:")
    print("- One workgroup of size 1 per pixel; cost grows with (2r+1)^2")
    print("- Integrated GPUs may be slower than CPU for small images")

    if context is not None:
        context.shutdown()


def run_benchmark():
    asyncio.run(run_benchmark_async())


if __name__ == "__main__":
    run_benchmark()
