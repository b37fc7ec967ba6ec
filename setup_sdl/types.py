"""Shared type definitions for setup_sdl.

This module contains enums and small dataclasses shared across
subpackages to avoid circular imports.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class BuildPlatform(str, Enum):
    """Host platform the build runs on."""

    LINUX = "Linux"
    MACOS = "Macos"
    WINDOWS = "Windows"


class RequirementKind(str, Enum):
    """Shape of a parsed version requirement."""

    EXACT = "exact"
    MAJOR_LATEST = "major-latest"
    MAJOR_HEAD = "major-head"
    LITERAL = "literal"


class BuildType(str, Enum):
    """CMake build configurations accepted by the build-type input."""

    RELEASE = "Release"
    DEBUG = "Debug"
    MIN_SIZE_REL = "MinSizeRel"
    REL_WITH_DEB_INFO = "RelWithDebInfo"


class BuildState(str, Enum):
    """States of the build orchestrator."""

    START = "start"
    CACHE_LOOKUP = "cache-lookup"
    CACHE_HIT = "cache-hit"
    CHECKOUT = "checkout"
    TOOL_SETUP = "tool-setup"
    CONFIGURE = "configure"
    BUILD = "build"
    INSTALL = "install"
    CACHE_STORE = "cache-store"
    DONE = "done"
    FAILED = "failed"


_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


@dataclass(frozen=True, order=True)
class SemanticVersion:
    """A (major, minor, patch) version triple, ordered lexicographically."""

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, text: str) -> SemanticVersion:
        """Parse a dotted ``MAJOR.MINOR.PATCH`` string.

        Raises:
            ValueError: If the text is not a three-component version.
        """
        match = _VERSION_RE.match(text.strip())
        if match is None:
            raise ValueError(f"Not a MAJOR.MINOR.PATCH version: {text!r}")
        major, minor, patch = (int(g) for g in match.groups())
        return cls(major, minor, patch)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


__all__ = [
    "BuildPlatform",
    "BuildState",
    "BuildType",
    "RequirementKind",
    "SemanticVersion",
]
