"""State hash computation for builds.

This module handles:
- Resolving the CMake toolchain file path
- Collecting the build identity from explicit environment and inputs
- Deterministic hash computation over the identity

The state hash names the build directory and the cache key, so every
input that can change the installed tree must be part of it. Inputs
outside the allow-lists below are deliberately ignored.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from setup_sdl.errors import ToolchainFileNotFound, ToolchainFileUnreadable
from setup_sdl.types import BuildPlatform

logger = logging.getLogger(__name__)

# Order is part of the key format; append only.
ENV_KEYS: tuple[str, ...] = (
    "AR",
    "CC",
    "CXX",
    "ARFLAGS",
    "CFLAGS",
    "CXXFLAGS",
    "INCLUDES",
    "LDFLAGS",
    "LIB",
    "LIBPATH",
    "CMAKE_PREFIX_PATH",
    "PKG_CONFIG_PATH",
)

INPUT_KEYS: tuple[str, ...] = (
    "build-type",
    "cmake-toolchain-file",
    "discriminator",
    "ninja",
)

STATE_DELIMITER = "##"
CACHE_KEY_PREFIX = "setup-sdl"


@dataclass(frozen=True)
class BuildIdentity:
    """Every value folded into the state hash.

    Attributes:
        environment: (name, value) pairs in ENV_KEYS order.
        inputs: (name, value) pairs in INPUT_KEYS order.
        git_hash: Commit being built.
        build_platform: Platform tag.
        shell: Shell indirection template ("" for none).
        toolchain_file_hash: sha256 of the toolchain file, if one is used.
    """

    environment: tuple[tuple[str, str], ...]
    inputs: tuple[tuple[str, str], ...]
    git_hash: str
    build_platform: BuildPlatform
    shell: str = ""
    toolchain_file_hash: str | None = None

    def state_tokens(self) -> list[str]:
        """Serialize to the ordered token list that gets hashed."""
        misc = [
            f"GIT_HASH={self.git_hash}",
            f"build_platform={self.build_platform.value}",
            f"shell={self.shell}",
        ]
        if self.toolchain_file_hash:
            misc.append(f"cmake_toolchain_file_hash={self.toolchain_file_hash}")
        return [
            "ENVIRONMENT",
            *(f"{key}={value}" for key, value in self.environment),
            "INPUTS",
            *(f"{key}={value}" for key, value in self.inputs),
            "MISC",
            *misc,
        ]


def resolve_toolchain_file(value: str, workspace: Path | None = None) -> Path | None:
    """Resolve the cmake-toolchain-file input to an absolute path.

    Args:
        value: Input value; empty means no toolchain file.
        workspace: Job workspace, tried when the path is not found as given.

    Returns:
        Absolute path, or None if no toolchain file is configured.

    Raises:
        ToolchainFileNotFound: If the file exists in neither location.
    """
    if not value:
        return None
    candidate = Path(value)
    if candidate.exists():
        return candidate.resolve()
    if workspace is not None:
        in_workspace = (workspace / value).resolve()
        if in_workspace.exists():
            return in_workspace
    raise ToolchainFileNotFound(value)


def compute_file_sha256(file_path: Path) -> str:
    """Compute the sha256 of a file's raw bytes.

    Raises:
        ToolchainFileUnreadable: If the file cannot be read.
    """
    try:
        return hashlib.sha256(file_path.read_bytes()).hexdigest()
    except OSError as e:
        raise ToolchainFileUnreadable(str(file_path)) from e


def collect_build_identity(
    environ: Mapping[str, str],
    inputs: Mapping[str, str],
    git_hash: str,
    build_platform: BuildPlatform,
    shell: str = "",
    toolchain_file: Path | None = None,
) -> BuildIdentity:
    """Build the identity from explicit environment and input mappings.

    Missing keys serialize as empty values, so an absent variable and an
    empty one produce the same key.

    Args:
        environ: Environment to read ENV_KEYS from.
        inputs: Action inputs to read INPUT_KEYS from.
        git_hash: Resolved commit.
        build_platform: Build platform.
        shell: Shell indirection template.
        toolchain_file: Resolved toolchain file, hashed by content.

    Returns:
        BuildIdentity instance.

    Raises:
        ToolchainFileUnreadable: If the toolchain file cannot be read.
    """
    toolchain_hash = compute_file_sha256(toolchain_file) if toolchain_file else None
    return BuildIdentity(
        environment=tuple((key, environ.get(key) or "") for key in ENV_KEYS),
        inputs=tuple((key, inputs.get(key) or "") for key in INPUT_KEYS),
        git_hash=git_hash,
        build_platform=build_platform,
        shell=shell,
        toolchain_file_hash=toolchain_hash,
    )


def compute_state_hash(identity: BuildIdentity) -> str:
    """Compute the state hash of a build identity.

    Args:
        identity: BuildIdentity instance.

    Returns:
        64-character sha256 hex digest.
    """
    state_string = STATE_DELIMITER.join(identity.state_tokens())
    logger.debug("state_string=%s", state_string)
    return hashlib.sha256(state_string.encode("utf-8")).hexdigest()


def cache_key_for(state_hash: str) -> str:
    """Return the cache key of a state hash."""
    return f"{CACHE_KEY_PREFIX}-{state_hash}"


__all__ = [
    "CACHE_KEY_PREFIX",
    "ENV_KEYS",
    "INPUT_KEYS",
    "STATE_DELIMITER",
    "BuildIdentity",
    "cache_key_for",
    "collect_build_identity",
    "compute_file_sha256",
    "compute_state_hash",
    "resolve_toolchain_file",
]
