"""Build platform detection and on-disk layout.

This module handles:
- Mapping the host to a BuildPlatform
- The per-platform root directory for builds
- The ``<root>/<state-hash>/{source,build,package}`` layout
- Computing environment exports for an installed package
"""

from __future__ import annotations

import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from setup_sdl.types import BuildPlatform


def get_build_platform(sys_platform: str | None = None) -> BuildPlatform:
    """Return the build platform for a ``sys.platform`` value.

    Args:
        sys_platform: Platform string; defaults to the running interpreter's.

    Returns:
        BuildPlatform for the host.
    """
    name = sys_platform if sys_platform is not None else sys.platform
    if name.startswith("win") or name == "cygwin":
        return BuildPlatform.WINDOWS
    if name == "darwin":
        return BuildPlatform.MACOS
    return BuildPlatform.LINUX


def get_platform_root_directory(
    platform: BuildPlatform,
    override: str | Path | None = None,
) -> Path:
    """Return the directory under which builds are laid out.

    Args:
        platform: Build platform.
        override: Explicit root from the ``root`` input or settings.

    Returns:
        Root directory path.
    """
    if override:
        return Path(override)
    if platform is BuildPlatform.WINDOWS:
        return Path("C:/setupsdl")
    return Path.home() / "setupsdl"


@dataclass(frozen=True)
class BuildLayout:
    """Directories used by one build identity."""

    root: Path
    state_hash: str

    @classmethod
    def for_state(cls, root: Path, state_hash: str) -> BuildLayout:
        return cls(root=root, state_hash=state_hash)

    @property
    def state_dir(self) -> Path:
        return self.root / self.state_hash

    @property
    def source_dir(self) -> Path:
        return self.state_dir / "source"

    @property
    def build_dir(self) -> Path:
        return self.state_dir / "build"

    @property
    def package_dir(self) -> Path:
        return self.state_dir / "package"


def _path_sep(platform: BuildPlatform) -> str:
    return ";" if platform is BuildPlatform.WINDOWS else ":"


def _prepend(
    name: str,
    value: Path,
    environ: Mapping[str, str],
    platform: BuildPlatform,
) -> str:
    existing = environ.get(name, "")
    if not existing:
        return str(value)
    return f"{value}{_path_sep(platform)}{existing}"


def environment_exports(
    platform: BuildPlatform,
    package_dir: Path,
    environ: Mapping[str, str],
) -> dict[str, str]:
    """Compute variables that make an installed package discoverable.

    The current values are read from ``environ``; nothing is modified.

    Args:
        platform: Build platform.
        package_dir: Installed package directory.
        environ: Current environment.

    Returns:
        Mapping of variable name to its new value.
    """
    exports: dict[str, str] = {}
    if platform is BuildPlatform.WINDOWS:
        exports["PATH"] = _prepend("PATH", package_dir / "bin", environ, platform)
    elif platform is BuildPlatform.MACOS:
        exports["DYLD_LIBRARY_PATH"] = _prepend(
            "DYLD_LIBRARY_PATH", package_dir / "lib", environ, platform
        )
    else:
        exports["LD_LIBRARY_PATH"] = _prepend(
            "LD_LIBRARY_PATH", package_dir / "lib", environ, platform
        )
    exports["PKG_CONFIG_PATH"] = _prepend(
        "PKG_CONFIG_PATH", package_dir / "lib" / "pkgconfig", environ, platform
    )
    exports["CMAKE_PREFIX_PATH"] = _prepend(
        "CMAKE_PREFIX_PATH", package_dir, environ, platform
    )
    return exports


__all__ = [
    "BuildLayout",
    "environment_exports",
    "get_build_platform",
    "get_platform_root_directory",
]
