"""Configuration settings for setup_sdl.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.

Action inputs (version, build-type, ...) are not settings: the CLI reads
them from ``INPUT_*`` variables and passes them to the core explicitly.
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

SDL_GIT_URL = "https://github.com/libsdl-org/SDL.git"
NINJA_VERSION = "1.11.1"


def _default_cache_dir() -> Path:
    """Return the default directory for cached bundles."""
    return Path.home() / ".cache" / "setup-sdl"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the SETUP_SDL_ prefix.
    The workspace additionally honours ``GITHUB_WORKSPACE``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SETUP_SDL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Paths
    root_dir: Path | None = Field(
        default=None,
        description="Root for per-build source/build/package directories "
        "(platform default if not set)",
    )
    cache_dir: Path = Field(
        default_factory=_default_cache_dir,
        description="Directory holding cached package bundles",
    )
    workspace: Path = Field(
        default_factory=Path.cwd,
        validation_alias=AliasChoices("SETUP_SDL_WORKSPACE", "GITHUB_WORKSPACE"),
        description="Job workspace used to resolve relative toolchain files",
    )

    # Upstream sources
    git_url: str = Field(
        default=SDL_GIT_URL,
        description="SDL git repository",
    )
    ninja_version: str = Field(
        default=NINJA_VERSION,
        description="Ninja release downloaded when ninja is requested",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Timeouts (in seconds)
    git_timeout: int = Field(
        default=600,
        ge=10,
        description="Timeout for git commands",
    )
    build_timeout: int = Field(
        default=3600,
        ge=60,
        description="Timeout for each CMake step",
    )
    download_timeout: int = Field(
        default=600,
        ge=10,
        description="Timeout for the Ninja download",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = [
    "NINJA_VERSION",
    "SDL_GIT_URL",
    "Settings",
    "get_settings",
    "print_settings_json",
]
