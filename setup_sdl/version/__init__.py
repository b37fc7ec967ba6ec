"""SDL version handling.

This module handles:
- Parsing version requirement strings
- The catalog of published SDL releases
- Resolving a requirement to a git reference
"""

from setup_sdl.version.catalog import SDL_RELEASES, ReleaseCatalogEntry
from setup_sdl.version.requirement import VersionRequirement, parse_requirement
from setup_sdl.version.resolver import ResolvedRevision, resolve

__all__ = [
    "SDL_RELEASES",
    "ReleaseCatalogEntry",
    "ResolvedRevision",
    "VersionRequirement",
    "parse_requirement",
    "resolve",
]
