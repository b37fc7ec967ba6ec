"""Known SDL releases.

Hand-maintained: add an entry when upstream tags a new release.
SDL2 releases up to 2.0.22 and since 2.24.0 are tagged ``release-X.Y.Z``;
SDL3 previews are tagged ``preview-3.1.N`` and count as prereleases.
"""

from __future__ import annotations

from dataclasses import dataclass

from setup_sdl.types import SemanticVersion


@dataclass(frozen=True)
class ReleaseCatalogEntry:
    """One published release and the git tag that produces it."""

    version: SemanticVersion
    tag: str
    is_prerelease: bool = False


def _release(major: int, minor: int, patch: int) -> ReleaseCatalogEntry:
    return ReleaseCatalogEntry(
        SemanticVersion(major, minor, patch), f"release-{major}.{minor}.{patch}"
    )


def _preview(major: int, minor: int, patch: int) -> ReleaseCatalogEntry:
    return ReleaseCatalogEntry(
        SemanticVersion(major, minor, patch),
        f"preview-{major}.{minor}.{patch}",
        is_prerelease=True,
    )


SDL_RELEASES: tuple[ReleaseCatalogEntry, ...] = (
    *(_release(2, 0, p) for p in (0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 12, 14, 16)),
    *(_release(2, 0, p) for p in (18, 20, 22)),
    *(_release(2, 24, p) for p in range(3)),
    *(_release(2, 26, p) for p in range(6)),
    *(_release(2, 28, p) for p in range(6)),
    *(_release(2, 30, p) for p in range(12)),
    *(_release(2, 32, p) for p in range(11)),
    *(_preview(3, 1, p) for p in (3, 6, 8, 10)),
    *(_release(3, 2, p) for p in range(0, 24, 2)),
)


def releases_for_major(
    major: int | None,
    allow_prerelease: bool = False,
    catalog: tuple[ReleaseCatalogEntry, ...] = SDL_RELEASES,
) -> list[ReleaseCatalogEntry]:
    """List the catalog entries of one major version, oldest first.

    Args:
        major: Major version to select, or None for every major.
        allow_prerelease: Whether prereleases are included.
        catalog: Catalog to search.

    Returns:
        Matching entries sorted by version.
    """
    return sorted(
        (
            e
            for e in catalog
            if (major is None or e.version.major == major)
            and (allow_prerelease or not e.is_prerelease)
        ),
        key=lambda e: e.version,
    )


__all__ = ["SDL_RELEASES", "ReleaseCatalogEntry", "releases_for_major"]
