"""Requirement resolution.

Maps a parsed requirement to the git reference that should be built:
literals pass through, ``-head`` requirements map to a development
branch, and release requirements pick the newest matching catalog entry.
The reference is turned into a commit later by the git query.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import cast

from setup_sdl.errors import NoMatchingRelease, UnsupportedMajor
from setup_sdl.types import RequirementKind
from setup_sdl.version.catalog import (
    SDL_RELEASES,
    ReleaseCatalogEntry,
    releases_for_major,
)
from setup_sdl.version.requirement import VersionRequirement, parse_requirement

logger = logging.getLogger(__name__)

# Development branch per major version; add a line for a new major.
HEAD_BRANCHES: dict[int, str] = {
    2: "SDL2",
    3: "main",
}


@dataclass(frozen=True)
class ResolvedRevision:
    """A git reference to build, plus the release it came from (if any)."""

    ref: str
    requirement: VersionRequirement
    release: ReleaseCatalogEntry | None = None


def find_release(
    requirement: VersionRequirement,
    allow_prerelease: bool,
    catalog: tuple[ReleaseCatalogEntry, ...] = SDL_RELEASES,
) -> ReleaseCatalogEntry:
    """Pick the newest catalog entry satisfying an exact or latest requirement.

    Args:
        requirement: An EXACT or MAJOR_LATEST requirement.
        allow_prerelease: Whether prerelease entries are eligible.
        catalog: Release catalog, in any order.

    Returns:
        The highest matching entry.

    Raises:
        NoMatchingRelease: If no entry matches.
    """
    candidates = releases_for_major(requirement.major, allow_prerelease, catalog)
    if requirement.kind is RequirementKind.EXACT:
        candidates = [
            entry
            for entry in candidates
            if (entry.version.minor, entry.version.patch)
            == (requirement.minor, requirement.patch)
        ]
    if not candidates:
        raise NoMatchingRelease(str(requirement))
    return max(candidates, key=lambda entry: entry.version)


def resolve_requirement(
    requirement: VersionRequirement,
    allow_prerelease: bool = False,
    catalog: tuple[ReleaseCatalogEntry, ...] = SDL_RELEASES,
) -> ResolvedRevision:
    """Resolve a parsed requirement to a git reference.

    Raises:
        UnsupportedMajor: For a -head requirement of an unknown major.
        NoMatchingRelease: If a release requirement matches nothing.
    """
    if requirement.kind is RequirementKind.LITERAL:
        logger.info("Using %r verbatim as git reference", requirement.raw)
        return ResolvedRevision(ref=requirement.raw, requirement=requirement)

    if requirement.kind is RequirementKind.MAJOR_HEAD:
        major = cast(int, requirement.major)
        branch = HEAD_BRANCHES.get(major)
        if branch is None:
            raise UnsupportedMajor(major)
        logger.info("Tracking development branch %s", branch)
        return ResolvedRevision(ref=branch, requirement=requirement)

    release = find_release(requirement, allow_prerelease, catalog)
    logger.info("Resolved %s to SDL %s (%s)", requirement, release.version, release.tag)
    return ResolvedRevision(ref=release.tag, requirement=requirement, release=release)


def resolve(
    requirement_string: str,
    allow_prerelease: bool = False,
    catalog: tuple[ReleaseCatalogEntry, ...] = SDL_RELEASES,
) -> ResolvedRevision:
    """Parse and resolve a requirement string in one step.

    Args:
        requirement_string: Requirement as given by the user.
        allow_prerelease: Whether prereleases may be selected.
        catalog: Release catalog to search.

    Returns:
        ResolvedRevision with the git reference to build.

    Raises:
        InvalidRequirement: If the string is empty.
        UnsupportedMajor: For a -head requirement of an unknown major.
        NoMatchingRelease: If a release requirement matches nothing.
    """
    return resolve_requirement(
        parse_requirement(requirement_string), allow_prerelease, catalog
    )


__all__ = [
    "HEAD_BRANCHES",
    "ResolvedRevision",
    "find_release",
    "resolve",
    "resolve_requirement",
]
