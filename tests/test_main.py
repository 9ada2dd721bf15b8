"""Tests for the command line entry point."""

import logging

import numpy as np
import pytest
from PIL import Image

from gpu_box_blur.main import build_parser, clamp_radius, main
from gpu_box_blur.processing.box_blur import box_blur_image
from gpu_box_blur.services.blur_service import BlurService
from gpu_box_blur.utils.logger import PACKAGE_LOGGER, set_level
from gpu_box_blur.utils.pixel_codec import ImageDimensions


@pytest.fixture
def input_png(tmp_path, sample_image_rgba):
    path = tmp_path / "input.png"
    Image.fromarray(sample_image_rgba, 'RGBA').save(path)
    return path


def read_rgba(path):
    with Image.open(path) as img:
        return np.array(img.convert('RGBA'))


class TestArguments:
    """Tests for argument parsing and radius clamping."""

    def test_defaults(self):
        """Radius defaults to the configured value."""
        args = build_parser().parse_args(["in.png", "out.png"])
        assert args.radius == 10
        assert not args.cpu
        assert not args.fallback
        assert not args.verbose

    def test_clamp_radius(self):
        """Negative radii become 0, huge ones are capped."""
        assert clamp_radius(-4) == 0
        assert clamp_radius(3) == 3
        assert clamp_radius(10_000) == 256


class TestRun:
    """Tests for main()."""

    def test_cpu_blur(self, input_png, tmp_path, sample_image_rgba):
        """--cpu writes the CPU filter's result."""
        output = tmp_path / "out.png"
        assert main([str(input_png), str(output), "--radius", "2", "--cpu"]) == 0

        dims = ImageDimensions.from_image(sample_image_rgba)
        assert np.array_equal(read_rgba(output), box_blur_image(sample_image_rgba, dims, 2))

    def test_gpu_blur(self, fake_gpu, input_png, tmp_path, sample_image_rgba):
        """The default path blurs on the GPU."""
        output = tmp_path / "out.png"
        assert main([str(input_png), str(output), "-r", "3"]) == 0

        dims = ImageDimensions.from_image(sample_image_rgba)
        assert np.array_equal(read_rgba(output), box_blur_image(sample_image_rgba, dims, 3))
        assert fake_gpu.device.dispatches == [(40, 30, 1)]

    def test_negative_radius_clamped(self, input_png, tmp_path, sample_image_rgba):
        """A negative radius behaves like radius 0."""
        output = tmp_path / "out.png"
        assert main([str(input_png), str(output), "--radius", "-5", "--cpu"]) == 0
        assert np.array_equal(read_rgba(output), sample_image_rgba)

    def test_missing_input(self, tmp_path, capsys):
        """A missing input file exits with 1 and a message."""
        code = main([str(tmp_path / "missing.png"), str(tmp_path / "out.png"), "--cpu"])
        assert code == 1
        assert "Could not open" in capsys.readouterr().err

    def test_no_gpu(self, fake_gpu, input_png, tmp_path, capsys):
        """Without a GPU and without --fallback the run fails."""
        fake_gpu.adapter_available = False
        code = main([str(input_png), str(tmp_path / "out.png")])
        assert code == 1
        assert "GPU" in capsys.readouterr().err

    def test_no_gpu_with_fallback(self, fake_gpu, input_png, tmp_path):
        """--fallback uses the CPU filter when no GPU is found."""
        fake_gpu.adapter_available = False
        output = tmp_path / "out.png"
        assert main([str(input_png), str(output), "--fallback"]) == 0
        assert output.exists()

    def test_unsupported_extension(self, tmp_path, sample_image_rgba, capsys):
        """Inputs with an unsupported extension are refused before loading."""
        path = tmp_path / "input.gif"
        Image.fromarray(sample_image_rgba[..., :3], 'RGB').save(path)

        code = main([str(path), str(tmp_path / "out.png"), "--cpu"])

        assert code == 1
        err = capsys.readouterr().err
        assert "Unsupported image type '.gif'" in err
        assert ".png" in err
        assert not (tmp_path / "out.png").exists()

    def test_out_of_memory(self, input_png, tmp_path, capsys, monkeypatch):
        """A host allocation failure exits with 1 and a size hint."""
        def exhausted(self, *args):
            raise MemoryError()

        monkeypatch.setattr(BlurService, "blur_sync", exhausted)
        code = main([str(input_png), str(tmp_path / "out.png"), "--cpu"])

        assert code == 1
        assert "smaller image" in capsys.readouterr().err

    def test_verbose(self, input_png, tmp_path):
        """--verbose lowers the package log level to DEBUG."""
        package = logging.getLogger(PACKAGE_LOGGER)
        previous = package.level
        try:
            assert main([str(input_png), str(tmp_path / "out.png"), "--cpu", "-v"]) == 0
            assert package.level == logging.DEBUG
        finally:
            set_level(previous)
