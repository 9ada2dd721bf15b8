# Application settings
import os

# --- GPU Settings ---
GPU_SETTINGS = {
    # Passed to wgpu.gpu.request_adapter_async: "high-performance" or "low-power"
    "power_preference": "high-performance",
    # Run the CPU reference filter when no adapter/device can be acquired.
    # Off by default: a missing GPU is surfaced to the caller.
    "cpu_fallback": False,
    # Entry point of the box blur compute kernel
    "entry_point": "main",
}

# --- Blur Defaults ---
BLUR_DEFAULTS = {
    "default_radius": 10,
    # Upper bound enforced by the command line entry point only.
    # Cost per pixel grows with (2r+1)^2.
    "max_radius": 256,
}

# --- Export Defaults ---
EXPORT_DEFAULTS = {
    "default_jpeg_quality": 95,
    "default_png_compression": 3,
}

# --- Logging ---
LOGGING_LEVEL = os.environ.get("GPU_BOX_BLUR_LOG_LEVEL", "INFO") # Options: DEBUG, INFO, WARNING, ERROR
