"""Version requirement parsing.

Recognized shapes (case-insensitive, surrounding whitespace ignored):

- ``2.30.1``, ``sdl2.30.1``, ``v2.30.1``  -> exact release
- ``2-head``, ``sdl3-head``              -> development branch of a major
- ``2``, ``2-latest``, ``sdl3-any``      -> newest release of a major

Anything else is kept verbatim as a git reference (tag, branch or commit).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from setup_sdl.errors import InvalidRequirement
from setup_sdl.types import RequirementKind

_EXACT_RE = re.compile(r"^(?:sdl|v)?(\d+)\.(\d+)\.(\d+)$", re.IGNORECASE)
_HEAD_RE = re.compile(r"^(?:sdl)?(\d+)-head$", re.IGNORECASE)
_LATEST_RE = re.compile(r"^(?:sdl)?(\d+)(?:-(?:latest|any))?$", re.IGNORECASE)


@dataclass(frozen=True)
class VersionRequirement:
    """Parsed form of a user-supplied version string.

    Attributes:
        kind: Which grammar rule matched.
        raw: The input string (stripped).
        major: Major version; None for literals.
        minor: Minor version; only set for exact requirements.
        patch: Patch version; only set for exact requirements.
    """

    kind: RequirementKind
    raw: str
    major: int | None = None
    minor: int | None = None
    patch: int | None = None

    def __post_init__(self) -> None:
        """Check that the numeric fields match the kind."""
        if self.kind is RequirementKind.LITERAL:
            if (self.major, self.minor, self.patch) != (None, None, None):
                raise ValueError("Literal requirements carry no version numbers")
        elif self.kind is RequirementKind.EXACT:
            if None in (self.major, self.minor, self.patch):
                raise ValueError("Exact requirements need major, minor and patch")
        else:
            if self.major is None or (self.minor, self.patch) != (None, None):
                raise ValueError(f"{self.kind.value} requirements carry only a major")

    def __str__(self) -> str:
        if self.kind is RequirementKind.EXACT:
            return f"{self.major}.{self.minor}.{self.patch}"
        if self.kind is RequirementKind.MAJOR_HEAD:
            return f"{self.major}-head"
        if self.kind is RequirementKind.MAJOR_LATEST:
            return f"{self.major}-latest"
        return self.raw


def parse_requirement(text: str) -> VersionRequirement:
    """Parse a requirement string.

    Args:
        text: Requirement as given by the user.

    Returns:
        VersionRequirement. Unrecognized strings become literals.

    Raises:
        InvalidRequirement: If the string is empty.
    """
    raw = text.strip()
    if not raw:
        raise InvalidRequirement(text)

    if match := _EXACT_RE.match(raw):
        major, minor, patch = (int(g) for g in match.groups())
        return VersionRequirement(
            RequirementKind.EXACT, raw, major=major, minor=minor, patch=patch
        )
    if match := _HEAD_RE.match(raw):
        return VersionRequirement(
            RequirementKind.MAJOR_HEAD, raw, major=int(match.group(1))
        )
    if match := _LATEST_RE.match(raw):
        return VersionRequirement(
            RequirementKind.MAJOR_LATEST, raw, major=int(match.group(1))
        )
    return VersionRequirement(RequirementKind.LITERAL, raw)


__all__ = ["VersionRequirement", "parse_requirement"]
