"""setup-sdl - Provision a pinned, cached SDL build for CI jobs.

This package resolves a requested SDL version to an exact git commit,
derives a deterministic state hash from every input that affects the
build, and either restores the installed tree from cache or builds it
from source with CMake.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
