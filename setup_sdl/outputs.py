"""Output sink for CI runners.

Writes step outputs, exported variables and PATH additions to the files
named by ``GITHUB_OUTPUT``, ``GITHUB_ENV`` and ``GITHUB_PATH``, and emits
``::group::``/``::error::`` workflow commands. Outside a runner the
values are only logged and recorded on the instance.
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import TextIO

logger = logging.getLogger(__name__)


def escape_command_data(value: str) -> str:
    """Escape a workflow command message."""
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class ActionOutputs:
    """Records and publishes the results of a run."""

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        stream: TextIO | None = None,
    ) -> None:
        environ = os.environ if environ is None else environ
        self.output_file = _optional_path(environ.get("GITHUB_OUTPUT"))
        self.env_file = _optional_path(environ.get("GITHUB_ENV"))
        self.path_file = _optional_path(environ.get("GITHUB_PATH"))
        self.stream = stream if stream is not None else sys.stdout
        self.outputs: dict[str, str] = {}
        self.exported: dict[str, str] = {}
        self.paths: list[str] = []

    def set_output(self, name: str, value: str) -> None:
        """Set a step output."""
        logger.info("output %s=%s", name, value)
        self.outputs[name] = value
        if self.output_file is not None:
            _append_key_value(self.output_file, name, value)

    def export_variable(self, name: str, value: str) -> None:
        """Export a variable to later steps of the job."""
        logger.info("export %s=%s", name, value)
        self.exported[name] = value
        if self.env_file is not None:
            _append_key_value(self.env_file, name, value)

    def add_path(self, path: str | Path) -> None:
        """Prepend a directory to PATH for later steps of the job."""
        logger.info("add path %s", path)
        self.paths.append(str(path))
        if self.path_file is not None:
            with self.path_file.open("a", encoding="utf-8") as f:
                f.write(f"{path}\n")

    @contextmanager
    def group(self, title: str) -> Iterator[None]:
        """Fold the log lines emitted inside the block under ``title``."""
        self._command(f"::group::{escape_command_data(title)}")
        try:
            yield
        finally:
            self._command("::endgroup::")

    def error(self, message: str) -> None:
        """Emit an error annotation."""
        self._command(f"::error::{escape_command_data(message)}")

    def _command(self, line: str) -> None:
        self.stream.write(line + "\n")
        self.stream.flush()


def _optional_path(value: str | None) -> Path | None:
    return Path(value) if value else None


def _append_key_value(file_path: Path, name: str, value: str) -> None:
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    with file_path.open("a", encoding="utf-8") as f:
        f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")


__all__ = ["ActionOutputs", "escape_command_data"]
