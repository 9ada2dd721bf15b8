"""
GPU Shader Loader - Reads and compiles WGSL shaders.

The blur kernel is 'box_blur.wgsl'. Its resource bindings are a fixed
contract shared by the bind-group layout (Device Context) and the bind
group built per invocation (Kernel Dispatcher); both read it from
BOX_BLUR_BINDINGS so they cannot drift apart.
"""

import os
from typing import Any, Dict, NamedTuple, Tuple
from .logger import get_logger

logger = get_logger(__name__)

# Shader directory
SHADER_DIR = os.path.join(os.path.dirname(__file__), "shaders")

BOX_BLUR_SHADER = "box_blur"


class ShaderBinding(NamedTuple):
    """One entry of the kernel's group 0 bindings."""
    binding: int
    name: str
    read_only: bool


# Order matters: binding index == position, group 0.
BOX_BLUR_BINDINGS: Tuple[ShaderBinding, ...] = (
    ShaderBinding(0, "size", True),
    ShaderBinding(1, "pixels", True),
    ShaderBinding(2, "radius", True),
    ShaderBinding(3, "result", False),
)


class ShaderLoader:
    """
    WGSL source reader with caching.

    Source text is cached per shader name. Compiled modules belong to a
    device, so compilation is left to the caller holding that device.
    """

    _cache: Dict[str, str] = {}

    @classmethod
    def read_source(cls, shader_name: str) -> str:
        """
        Read the WGSL source of a shader by name.

        Args:
            shader_name: Name of the shader file (without .wgsl extension)

        Returns:
            Shader source text
        """
        if shader_name in cls._cache:
            return cls._cache[shader_name]

        path = cls.get_shader_path(shader_name)

        if not cls.shader_exists(shader_name):
            raise FileNotFoundError(f"Shader not found: {path}")

        with open(path, "r") as f:
            code = f.read()

        cls._cache[shader_name] = code
        return code

    @classmethod
    def compile(cls, device: Any, shader_name: str) -> Any:
        """Compile a shader on ``device`` and return the wgpu shader module."""
        module = device.create_shader_module(
            label=shader_name, code=cls.read_source(shader_name)
        )
        logger.debug(f"Compiled shader: {shader_name}")
        return module

    @classmethod
    def get_shader_path(cls, shader_name: str) -> str:
        """Get the full path to a shader file."""
        return os.path.join(SHADER_DIR, f"{shader_name}.wgsl")

    @classmethod
    def shader_exists(cls, shader_name: str) -> bool:
        """Check if a shader file exists."""
        return os.path.exists(cls.get_shader_path(shader_name))
