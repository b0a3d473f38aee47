"""
GPU Shader Loader - Reads, compiles and caches the WGSL analysis kernels.

Every kernel file is compiled together with ``common.wgsl``, which declares
the input/output bindings and the edge-clamped sampling helper all kernels
share.
"""

import os
from typing import Any, Dict

from .errors import KernelCompilationFailed
from .logger import get_logger

logger = get_logger(__name__)

# Shader directory
SHADER_DIR = os.path.join(os.path.dirname(__file__), "shaders")
COMMON_SHADER = "common"


class ShaderLoader:
    """
    WGSL shader compiler bound to one device.

    Compiled modules are cached on the loader, so they live and die with the
    pipeline that owns it and are never handed to another device.
    """

    def __init__(self, device: Any) -> None:
        self.device = device
        self._cache: Dict[str, Any] = {}

    @classmethod
    def read_source(cls, shader_name: str) -> str:
        """Return the full WGSL source for ``shader_name``, prelude included."""
        path = cls.get_shader_path(shader_name)
        if not os.path.exists(path):
            raise FileNotFoundError(f"Shader not found: {path}")

        with open(cls.get_shader_path(COMMON_SHADER), "r") as f:
            common = f.read()
        with open(path, "r") as f:
            body = f.read()
        return common + "\n" + body

    def load(self, shader_name: str) -> Any:
        """
        Load and compile a shader by name for this loader's device.

        Args:
            shader_name: Name of the shader file (without .wgsl extension)

        Returns:
            Compiled wgpu shader module

        Raises:
            KernelCompilationFailed: if the file is missing or does not compile
        """
        if shader_name in self._cache:
            return self._cache[shader_name]

        try:
            code = self.read_source(shader_name)
        except OSError as e:
            raise KernelCompilationFailed(
                f"Could not read shader '{shader_name}': {e}",
                kernel=shader_name,
                original_error=e,
            ) from e

        try:
            module = self.device.create_shader_module(label=shader_name, code=code)
        except Exception as e:
            logger.error("Shader %s failed to compile: %s", shader_name, e)
            raise KernelCompilationFailed(
                f"Shader '{shader_name}' failed to compile",
                kernel=shader_name,
                original_error=e,
            ) from e

        self._cache[shader_name] = module
        logger.debug(f"Compiled shader: {shader_name}")
        return module

    def clear_cache(self) -> None:
        """Drop every compiled module."""
        self._cache.clear()

    @classmethod
    def get_shader_path(cls, shader_name: str) -> str:
        """Get the full path to a shader file."""
        return os.path.join(SHADER_DIR, f"{shader_name}.wgsl")

    @classmethod
    def shader_exists(cls, shader_name: str) -> bool:
        """Check if a shader file exists."""
        return os.path.exists(cls.get_shader_path(shader_name))
