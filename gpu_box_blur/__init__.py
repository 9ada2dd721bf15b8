"""GPU-accelerated box blur for RGBA images, built on wgpu."""

__version__ = "0.1.0"
