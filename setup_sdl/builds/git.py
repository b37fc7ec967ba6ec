"""Git operations for fetching SDL sources.

This module handles:
- Querying the upstream repository's reference list
- Converting a branch/tag/literal reference to a commit hash
- Shallow single-commit checkout into a source directory

All commands block until completion; any failure is fatal.
"""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
from pathlib import Path

from setup_sdl.errors import RefNotFound, SourceControlError

logger = logging.getLogger(__name__)

_COMMIT_RE = re.compile(r"^[0-9a-fA-F]{40}$")


def parse_ls_remote(output: str) -> list[tuple[str, str]]:
    """Parse ``git ls-remote`` output into (hash, ref_name) pairs.

    Args:
        output: Raw stdout of ``git ls-remote``.

    Returns:
        List of (hash, ref_name) in output order.
    """
    refs: list[tuple[str, str]] = []
    for line in output.splitlines():
        parts = line.strip().split("\t", 1)
        if len(parts) != 2:
            continue
        refs.append((parts[0], parts[1]))
    return refs


def select_ref_hash(refs: list[tuple[str, str]], ref: str) -> str | None:
    """Pick the commit hash for ``ref`` from a reference list.

    Peeled tags win over tag objects so that annotated tags resolve to
    the commit they point at; tags win over branches of the same name.

    Args:
        refs: (hash, ref_name) pairs from ``ls-remote``.
        ref: Requested reference.

    Returns:
        Commit hash, or None if nothing matches.
    """
    by_name = {name: sha for sha, name in refs}
    for name in (
        f"refs/tags/{ref}^{{}}",
        f"refs/tags/{ref}",
        f"refs/heads/{ref}",
        ref,
    ):
        if name in by_name:
            return by_name[name]
    for sha, name in refs:
        if name.endswith(f"/{ref}"):
            return sha
    return None


class GitClient:
    """Thin wrapper around the git command line."""

    def __init__(self, git: str = "git", timeout: int | None = None) -> None:
        self.git = git
        self.timeout = timeout

    def _run(
        self,
        args: list[str],
        cwd: Path | None = None,
        capture: bool = False,
    ) -> str:
        cmd = [self.git, *args]
        cmd_str = shlex.join(cmd)
        logger.info("Executing %s", cmd_str)
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=capture,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise SourceControlError(
                f"{cmd_str} timed out after {self.timeout}s", code="git_timeout"
            ) from e
        except OSError as e:
            raise SourceControlError(f"Failed to run {cmd_str}: {e}") from e

        if result.returncode != 0:
            detail = f": {result.stderr.strip()}" if capture and result.stderr else ""
            raise SourceControlError(
                f"{cmd_str} failed with exit code {result.returncode}{detail}"
            )
        return result.stdout if capture else ""

    def list_remote_refs(self, url: str, ref: str) -> list[tuple[str, str]]:
        """List (hash, ref_name) pairs matching ``ref`` on the remote."""
        return parse_ls_remote(self._run(["ls-remote", url, ref], capture=True))

    def shallow_fetch_and_checkout(self, url: str, ref: str, into_dir: Path) -> None:
        """Check out a single commit without history.

        Safe to repeat on a directory left behind by an earlier attempt:
        the URL is fetched directly and the checkout discards local edits.

        Args:
            url: Repository URL.
            ref: Commit (or reference) to fetch.
            into_dir: Source directory; created if missing.
        """
        into_dir.mkdir(parents=True, exist_ok=True)
        self._run(["init"], cwd=into_dir)
        self._run(["fetch", "--depth", "1", url, ref], cwd=into_dir)
        self._run(["checkout", "--force", "FETCH_HEAD"], cwd=into_dir)


def resolve_commit(client: GitClient, url: str, ref: str) -> str:
    """Convert a symbolic reference to the commit it names upstream.

    Runs for every reference, including release tags, so the state hash
    is always keyed by commit. A full commit id that no reference matches
    is accepted as is.

    Args:
        client: Git client (or any object with ``list_remote_refs``).
        url: Repository URL.
        ref: Branch, tag or commit.

    Returns:
        40-character commit hash.

    Raises:
        RefNotFound: If the remote has no matching reference.
        SourceControlError: If the query fails.
    """
    refs = client.list_remote_refs(url, ref)
    sha = select_ref_hash(refs, ref)
    if sha is None:
        if _COMMIT_RE.match(ref):
            logger.info("%s is not a named reference; using it as a commit", ref)
            return ref.lower()
        raise RefNotFound(ref, url)
    logger.info("git hash of %s = %s", ref, sha)
    return sha


__all__ = [
    "GitClient",
    "parse_ls_remote",
    "resolve_commit",
    "select_ref_hash",
]
