"""Ninja build tool fetch.

This module handles:
- URL discovery for official Ninja release archives
- Download with httpx
- Safe extraction of the zip archive
- Cache-gated setup keyed by platform and Ninja version

The Ninja binary is not part of the SDL package, so its cache key is
independent of the SDL state hash.
"""

from __future__ import annotations

import logging
import stat
import tempfile
import zipfile
from pathlib import Path, PurePosixPath

import httpx

from setup_sdl.cache import CacheBackend
from setup_sdl.errors import DownloadError, ExtractionError
from setup_sdl.types import BuildPlatform

logger = logging.getLogger(__name__)

NINJA_DOWNLOAD_BASE = "https://github.com/ninja-build/ninja/releases/download"

# Timeout for downloads (seconds)
DOWNLOAD_TIMEOUT = 600

# Chunk size for downloads (bytes)
DOWNLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB

_ZIP_NAMES = {
    BuildPlatform.LINUX: "ninja-linux.zip",
    BuildPlatform.MACOS: "ninja-mac.zip",
    BuildPlatform.WINDOWS: "ninja-win.zip",
}


def get_ninja_download_url(
    platform: BuildPlatform,
    version: str,
    base_url: str = NINJA_DOWNLOAD_BASE,
) -> str:
    """Build the release archive URL for a platform and Ninja version."""
    return f"{base_url}/v{version}/{_ZIP_NAMES[platform]}"


def ninja_cache_key(platform: BuildPlatform, version: str) -> str:
    """Return the cache key for a Ninja installation."""
    return f"ninja-{platform.value}-{version}"


def download_file(
    client: httpx.Client,
    url: str,
    dest_path: Path,
    timeout: float = DOWNLOAD_TIMEOUT,
    chunk_size: int = DOWNLOAD_CHUNK_SIZE,
) -> int:
    """Download a file.

    Args:
        client: HTTPX client instance.
        url: URL to download from.
        dest_path: Destination path for the downloaded file.
        timeout: Download timeout in seconds.
        chunk_size: Size of chunks to download.

    Returns:
        Number of bytes written.

    Raises:
        DownloadError: If download fails.
    """
    logger.info("Downloading %s to %s", url, dest_path)

    try:
        with client.stream("GET", url, timeout=timeout) as response:
            response.raise_for_status()

            dest_path.parent.mkdir(parents=True, exist_ok=True)
            total_bytes = 0
            with dest_path.open("wb") as f:
                for chunk in response.iter_bytes(chunk_size):
                    f.write(chunk)
                    total_bytes += len(chunk)

    except httpx.HTTPStatusError as e:
        raise DownloadError(
            f"HTTP error downloading {url}: {e.response.status_code} {e.response.reason_phrase}",
            code="http_error",
        ) from e
    except httpx.TimeoutException as e:
        raise DownloadError(
            f"Timeout downloading {url}",
            code="timeout",
        ) from e
    except httpx.RequestError as e:
        raise DownloadError(
            f"Network error downloading {url}: {e}",
            code="network_error",
        ) from e

    logger.info("Downloaded %s (%d bytes)", dest_path.name, total_bytes)
    return total_bytes


def extract_zip(archive_path: Path, dest_dir: Path) -> Path:
    """Extract a zip archive, keeping executables executable.

    Args:
        archive_path: Path to the zip file.
        dest_dir: Destination directory.

    Returns:
        The destination directory.

    Raises:
        ExtractionError: If the archive is invalid or unsafe.
    """
    logger.info("Extracting %s to %s", archive_path.name, dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    try:
        with zipfile.ZipFile(archive_path) as zf:
            members = zf.infolist()
            if not members:
                raise ExtractionError(
                    f"Archive {archive_path} is empty",
                    code="empty_archive",
                )
            for member in members:
                member_path = PurePosixPath(member.filename)
                if member_path.is_absolute() or ".." in member_path.parts:
                    raise ExtractionError(
                        f"Refusing to extract {member.filename}: path traversal detected",
                        code="path_traversal",
                    )
            zf.extractall(dest_dir)
    except zipfile.BadZipFile as e:
        raise ExtractionError(
            f"Failed to extract {archive_path}: {e}",
            code="zip_error",
        ) from e
    except OSError as e:
        raise ExtractionError(
            f"OS error extracting {archive_path}: {e}",
            code="os_error",
        ) from e

    for path in dest_dir.iterdir():
        if path.is_file() and path.name in ("ninja", "ninja.exe"):
            path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return dest_dir


def download_and_unpack(
    client: httpx.Client,
    url: str,
    dest_dir: Path,
    timeout: float = DOWNLOAD_TIMEOUT,
) -> Path:
    """Download a zip archive and unpack it into ``dest_dir``.

    Raises:
        DownloadError: If download fails.
        ExtractionError: If extraction fails.
    """
    with tempfile.TemporaryDirectory(prefix="setup-sdl-ninja-") as tmp:
        archive_path = Path(tmp) / url.rsplit("/", 1)[-1]
        download_file(client, url, archive_path, timeout=timeout)
        return extract_zip(archive_path, dest_dir)


def configure_ninja_build_tool(
    platform: BuildPlatform,
    root_dir: Path,
    cache: CacheBackend,
    client: httpx.Client,
    version: str,
    timeout: float = DOWNLOAD_TIMEOUT,
) -> Path:
    """Make Ninja available, restoring it from cache when possible.

    Args:
        platform: Build platform.
        root_dir: Platform root; Ninja lives in ``root_dir / "ninja"``.
        cache: Cache backend.
        client: HTTPX client for the download.
        version: Ninja version.
        timeout: Download timeout in seconds.

    Returns:
        Directory containing the ninja executable.
    """
    ninja_dir = root_dir / "ninja"
    ninja_dir.mkdir(parents=True, exist_ok=True)

    key = ninja_cache_key(platform, version)
    found = cache.restore([ninja_dir], key, [f"ninja-{platform.value}"])
    if found is None:
        logger.info("Could not find ninja in the cache.")
        url = get_ninja_download_url(platform, version)
        download_and_unpack(client, url, ninja_dir, timeout=timeout)
        cache.save([ninja_dir], key)
    else:
        logger.info("Restored ninja from cache key %s", found)
    return ninja_dir


__all__ = [
    "NINJA_DOWNLOAD_BASE",
    "configure_ninja_build_tool",
    "download_and_unpack",
    "download_file",
    "extract_zip",
    "get_ninja_download_url",
    "ninja_cache_key",
]
