"""Error types for setup_sdl.

Every error carries a stable ``code`` for structured reporting. All of
them are terminal: nothing is retried internally, and the CLI turns the
first one raised into a failed run with a non-zero exit status.
"""

from __future__ import annotations


class SetupSdlError(Exception):
    """Base error for all setup_sdl failures."""

    def __init__(self, message: str, code: str = "setup_sdl_error") -> None:
        super().__init__(message)
        self.code = code


class InvalidRequirement(SetupSdlError):
    """Raised when a version requirement string cannot be used at all."""

    def __init__(self, requirement: str, code: str = "invalid_requirement") -> None:
        super().__init__(f"Invalid SDL version requirement: {requirement!r}", code)
        self.requirement = requirement


class UnsupportedMajor(SetupSdlError):
    """Raised when a -head requirement names a major without a branch."""

    def __init__(self, major: int, code: str = "unsupported_major") -> None:
        super().__init__(f"No development branch known for SDL major {major}", code)
        self.major = major


class NoMatchingRelease(SetupSdlError):
    """Raised when no catalog entry satisfies a requirement."""

    def __init__(self, requirement: str, code: str = "no_matching_release") -> None:
        super().__init__(
            f"Could not find a matching SDL release for {requirement}", code
        )
        self.requirement = requirement


class RefNotFound(SetupSdlError):
    """Raised when the upstream repository has no matching reference."""

    def __init__(self, ref: str, url: str, code: str = "ref_not_found") -> None:
        super().__init__(f"Reference {ref!r} not found in {url}", code)
        self.ref = ref
        self.url = url


class SourceControlError(SetupSdlError):
    """Raised when a git command cannot be run or fails."""

    def __init__(self, message: str, code: str = "source_control_error") -> None:
        super().__init__(message, code)


class ToolchainFileNotFound(SetupSdlError):
    """Raised when the configured CMake toolchain file does not exist."""

    def __init__(self, path: str, code: str = "toolchain_file_not_found") -> None:
        super().__init__(f"Cannot find CMake toolchain file: {path}", code)
        self.path = path


class ToolchainFileUnreadable(SetupSdlError):
    """Raised when the CMake toolchain file cannot be read for hashing."""

    def __init__(self, path: str, code: str = "toolchain_file_unreadable") -> None:
        super().__init__(f"Cannot read CMake toolchain file: {path}", code)
        self.path = path


class InvalidBuildType(SetupSdlError):
    """Raised when the requested CMake build type is unknown."""

    def __init__(self, build_type: str, code: str = "invalid_build_type") -> None:
        super().__init__(f"Invalid build-type: {build_type!r}", code)
        self.build_type = build_type


class SubprocessFailed(SetupSdlError):
    """Raised when a build step exits with a non-zero status."""

    def __init__(
        self,
        step: str,
        exit_status: int,
        code: str = "subprocess_failed",
    ) -> None:
        super().__init__(f"{step} failed with exit code {exit_status}", code)
        self.step = step
        self.exit_status = exit_status


class CacheError(SetupSdlError):
    """Raised when the cache backend fails to restore or save a bundle."""

    def __init__(self, message: str, code: str = "cache_error") -> None:
        super().__init__(message, code)


class DownloadError(SetupSdlError):
    """Raised when a tool download fails."""

    def __init__(self, message: str, code: str = "download_error") -> None:
        super().__init__(message, code)


class ExtractionError(SetupSdlError):
    """Raised when a downloaded archive cannot be extracted."""

    def __init__(self, message: str, code: str = "extraction_error") -> None:
        super().__init__(message, code)


class VersionDetectionFailed(SetupSdlError):
    """Raised when an installed tree has no recognizable version marker."""

    def __init__(self, path: str, code: str = "version_detection_failed") -> None:
        super().__init__(f"Could not detect SDL version in {path}", code)
        self.path = path


__all__ = [
    "CacheError",
    "DownloadError",
    "ExtractionError",
    "InvalidBuildType",
    "InvalidRequirement",
    "NoMatchingRelease",
    "RefNotFound",
    "SetupSdlError",
    "SourceControlError",
    "SubprocessFailed",
    "ToolchainFileNotFound",
    "ToolchainFileUnreadable",
    "UnsupportedMajor",
    "VersionDetectionFailed",
]
