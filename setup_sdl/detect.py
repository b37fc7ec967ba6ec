"""Detect the SDL version of an installed tree.

The version comes from the installed ``SDL_version.h`` header; the
pkg-config file is used when no header is present. The requirement that
produced the tree is not consulted: a ``-latest`` or ``-head`` build can
yield any patch level.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from setup_sdl.errors import VersionDetectionFailed
from setup_sdl.types import SemanticVersion

logger = logging.getLogger(__name__)

HEADER_CANDIDATES = (
    Path("include") / "SDL3" / "SDL_version.h",
    Path("include") / "SDL2" / "SDL_version.h",
)

PKGCONFIG_CANDIDATES = (
    Path("lib") / "pkgconfig" / "sdl3.pc",
    Path("lib") / "pkgconfig" / "sdl2.pc",
)

_DEFINE_RE = re.compile(r"^\s*#\s*define\s+(SDL_\w+)\s+(\d+)\b", re.MULTILINE)
_PC_VERSION_RE = re.compile(r"^Version:\s*(\d+\.\d+\.\d+)\s*$", re.MULTILINE)


def parse_version_header(text: str) -> SemanticVersion | None:
    """Extract the version from an ``SDL_version.h`` header.

    SDL2 names the last component ``SDL_PATCHLEVEL``; SDL3 uses
    ``SDL_MICRO_VERSION``.
    """
    defines = {name: int(value) for name, value in _DEFINE_RE.findall(text)}
    patch = defines.get("SDL_MICRO_VERSION", defines.get("SDL_PATCHLEVEL"))
    major = defines.get("SDL_MAJOR_VERSION")
    minor = defines.get("SDL_MINOR_VERSION")
    if major is None or minor is None or patch is None:
        return None
    return SemanticVersion(major, minor, patch)


def parse_pkgconfig(text: str) -> SemanticVersion | None:
    """Extract the ``Version:`` field of a pkg-config file."""
    match = _PC_VERSION_RE.search(text)
    if match is None:
        return None
    return SemanticVersion.parse(match.group(1))


def detect(package_path: Path) -> SemanticVersion:
    """Detect the SDL version installed under ``package_path``.

    Args:
        package_path: Install prefix of an SDL build.

    Returns:
        The installed version.

    Raises:
        VersionDetectionFailed: If no marker file yields a version.
    """
    for relative, parser in (
        *((h, parse_version_header) for h in HEADER_CANDIDATES),
        *((p, parse_pkgconfig) for p in PKGCONFIG_CANDIDATES),
    ):
        marker = package_path / relative
        if not marker.is_file():
            continue
        version = parser(marker.read_text(encoding="utf-8", errors="replace"))
        if version is not None:
            logger.debug("Detected SDL %s from %s", version, marker)
            return version
        logger.warning("No version found in %s", marker)

    raise VersionDetectionFailed(str(package_path))


__all__ = ["detect", "parse_pkgconfig", "parse_version_header"]
