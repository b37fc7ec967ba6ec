"""Local cache backend for package bundles.

This module handles:
- Saving directories as one ``<key>.tar.gz`` bundle under a cache root
- Restoring a bundle by exact key or by newest key with a given prefix
- All-or-nothing restores through a staging directory

The backend is keyed purely by name; callers derive keys from state
hashes, so a key always names one immutable bundle.
"""

from __future__ import annotations

import io
import json
import logging
import os
import shutil
import tarfile
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from setup_sdl.errors import CacheError

logger = logging.getLogger(__name__)

BUNDLE_SUFFIX = ".tar.gz"
MANIFEST_NAME = "manifest.json"


class CacheBackend(Protocol):
    """Interface the orchestrator uses to restore and save bundles."""

    def restore(
        self,
        paths: Sequence[Path],
        key: str,
        restore_keys: Sequence[str] = (),
    ) -> str | None: ...

    def save(self, paths: Sequence[Path], key: str) -> None: ...


class LocalCacheBackend:
    """Cache bundles stored as tarballs in a local directory."""

    def __init__(self, cache_dir: str | Path) -> None:
        self.cache_dir = Path(cache_dir)

    def bundle_path(self, key: str) -> Path:
        """Return the bundle file for a key."""
        if not key or "/" in key or "\\" in key:
            raise CacheError(f"Invalid cache key: {key!r}", code="invalid_key")
        return self.cache_dir / f"{key}{BUNDLE_SUFFIX}"

    def has_key(self, key: str) -> bool:
        return self.bundle_path(key).is_file()

    def _find_bundle(self, key: str, restore_keys: Sequence[str]) -> str | None:
        if self.has_key(key):
            return key
        if not self.cache_dir.is_dir():
            return None
        for prefix in restore_keys:
            matches = [
                p
                for p in self.cache_dir.glob(f"*{BUNDLE_SUFFIX}")
                if p.name.startswith(prefix)
            ]
            if matches:
                newest = max(matches, key=lambda p: p.stat().st_mtime)
                return newest.name[: -len(BUNDLE_SUFFIX)]
        return None

    def restore(
        self,
        paths: Sequence[Path],
        key: str,
        restore_keys: Sequence[str] = (),
    ) -> str | None:
        """Restore a bundle onto ``paths``.

        Args:
            paths: Directories to restore, in the order they were saved.
            key: Exact key to look for first.
            restore_keys: Key prefixes tried in order when the key misses.

        Returns:
            The key that was restored, or None on a miss.

        Raises:
            CacheError: If a bundle exists but cannot be restored.
        """
        matched = self._find_bundle(key, restore_keys)
        if matched is None:
            logger.info("Cache miss for %s", key)
            return None

        bundle = self.bundle_path(matched)
        logger.info("Restoring %s from %s", matched, bundle)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(dir=self.cache_dir, prefix=".restore-") as tmp:
            staging = Path(tmp)
            try:
                with tarfile.open(bundle, "r:gz") as tar:
                    tar.extractall(staging, filter="data")
            except (tarfile.TarError, OSError) as e:
                raise CacheError(
                    f"Failed to extract cache bundle {bundle}: {e}",
                    code="corrupt_bundle",
                ) from e

            for index in range(len(paths)):
                if not (staging / str(index)).is_dir():
                    raise CacheError(
                        f"Cache bundle {bundle} does not contain {len(paths)} path(s)",
                        code="corrupt_bundle",
                    )

            try:
                for index, target in enumerate(paths):
                    target = Path(target)
                    if target.exists():
                        shutil.rmtree(target)
                    target.parent.mkdir(parents=True, exist_ok=True)
                    shutil.move(str(staging / str(index)), str(target))
            except OSError as e:
                raise CacheError(f"Failed to restore cache {matched}: {e}") from e

        logger.info("Cache restored from key: %s", matched)
        return matched

    def save(self, paths: Sequence[Path], key: str) -> None:
        """Save ``paths`` as one bundle under ``key``.

        Saving a key that already exists is a no-op: the bundle under a key
        never changes once written.

        Raises:
            CacheError: If a path is missing or the bundle cannot be written.
        """
        bundle = self.bundle_path(key)
        if bundle.exists():
            logger.warning("Cache key %s already exists; not saving", key)
            return

        for path in paths:
            if not Path(path).is_dir():
                raise CacheError(f"Cannot cache missing directory: {path}")

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, suffix=".tmp")
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            with tarfile.open(tmp_path, "w:gz") as tar:
                for index, path in enumerate(paths):
                    tar.add(str(path), arcname=str(index))
                manifest = json.dumps(
                    {"key": key, "paths": [str(p) for p in paths]}, indent=2
                ).encode("utf-8")
                info = tarfile.TarInfo(MANIFEST_NAME)
                info.size = len(manifest)
                tar.addfile(info, io.BytesIO(manifest))
            os.replace(tmp_path, bundle)
        except (tarfile.TarError, OSError) as e:
            tmp_path.unlink(missing_ok=True)
            raise CacheError(f"Failed to save cache {key}: {e}") from e

        logger.info("Cache saved with key: %s", key)


__all__ = ["BUNDLE_SUFFIX", "CacheBackend", "LocalCacheBackend"]
