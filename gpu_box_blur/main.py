# Application entry point
"""
Blur an image file on the GPU.

Usage:
    python -m gpu_box_blur.main INPUT OUTPUT [--radius N] [--cpu] [--fallback] [-v]
"""

import argparse
import os
import sys

from .config import settings
from .io import SUPPORTED_EXTENSIONS, load_image, save_image
from .services.blur_service import BlurService
from .utils.errors import AppError, FileIOError, format_user_error
from .utils.logger import get_logger, set_level

logger = get_logger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="gpu-box-blur",
        description="Box blur an image on the GPU.",
    )
    parser.add_argument("input", help="Image to blur")
    parser.add_argument("output", help="Where to write the blurred image")
    parser.add_argument(
        "-r", "--radius",
        type=int,
        default=settings.BLUR_DEFAULTS["default_radius"],
        help="Blur radius in pixels (default: %(default)s)",
    )
    parser.add_argument(
        "--cpu",
        action="store_true",
        help="Use the CPU filter instead of the GPU",
    )
    parser.add_argument(
        "--fallback",
        action="store_true",
        help="Use the CPU filter when no GPU is available",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log per-invocation details",
    )
    return parser


def clamp_radius(value: int) -> int:
    """Negative radii become 0; very large ones are capped."""
    return max(0, min(value, settings.BLUR_DEFAULTS["max_radius"]))


def run(input_path: str, output_path: str, radius: int, use_gpu: bool = True, cpu_fallback=None) -> int:
    """Load, blur and save one image. Returns a process exit code."""
    service = BlurService(use_gpu=use_gpu, cpu_fallback=cpu_fallback)
    try:
        ext = os.path.splitext(input_path)[1].lower()
        if ext not in SUPPORTED_EXTENSIONS:
            raise FileIOError(
                f"Unsupported input type '{ext}'",
                file_path=input_path,
                user_message=(
                    f"Unsupported image type '{ext or input_path}'. "
                    f"Supported: {', '.join(SUPPORTED_EXTENSIONS)}"
                ),
            )

        image = load_image(input_path)
        if image is None:
            raise FileIOError(
                f"Could not load image '{input_path}'",
                file_path=input_path,
                user_message=f"Could not open '{input_path}'.",
            )

        height, width = image.shape[:2]
        result = service.blur_sync(image, width, height, clamp_radius(radius))
        logger.info(
            "Blurred %dx%d with radius %d in %.1f ms (%s)",
            width, height, result.radius, result.total_time * 1000,
            "GPU" if result.used_gpu else "CPU",
        )

        if not save_image(result.as_rgba(), output_path):
            raise FileIOError(
                f"Could not save image '{output_path}'",
                file_path=output_path,
                user_message=f"Could not write '{output_path}'.",
            )
    except (AppError, MemoryError) as e:
        logger.error("Blur failed: %s", e)
        print(format_user_error(e), file=sys.stderr)
        return 1
    finally:
        service.shutdown()
    return 0


def main(argv=None):
    """Main function to run the command line tool."""
    args = build_parser().parse_args(argv)
    if args.verbose:
        set_level("DEBUG")
    return run(
        args.input,
        args.output,
        args.radius,
        use_gpu=not args.cpu,
        cpu_fallback=True if args.fallback else None,
    )


if __name__ == "__main__":
    sys.exit(main())
