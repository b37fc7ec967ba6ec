"""Build runner for executing CMake commands.

This module handles:
- Composing the configure, build and install command lines
- Shell indirection through a command file for long command lines
- Executing each step with subprocess and reporting its exit status
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import sys
import tempfile
from collections.abc import Mapping
from pathlib import Path

from setup_sdl.errors import InvalidBuildType, SubprocessFailed
from setup_sdl.types import BuildType

logger = logging.getLogger(__name__)

# Shell input values that mean "run directly".
IGNORED_SHELLS = frozenset({"bash", "pwsh", "sh", "cmd", "powershell"})

SHELL_PLACEHOLDER = "{0}"

INSTALL_LAYOUT_ARGS = (
    "-DCMAKE_INSTALL_BINDIR=bin",
    "-DCMAKE_INSTALL_INCLUDEDIR=include",
    "-DCMAKE_INSTALL_LIBDIR=lib",
)


def normalize_shell(shell: str) -> str:
    """Return the shell indirection template, or "" for none."""
    shell = shell.strip()
    if shell in IGNORED_SHELLS:
        return ""
    return shell


def validate_build_type(build_type: str) -> BuildType:
    """Validate the build-type input.

    Raises:
        InvalidBuildType: If the value is not a CMake configuration.
    """
    try:
        return BuildType(build_type)
    except ValueError:
        raise InvalidBuildType(build_type) from None


def compose_configure_command(
    source_dir: Path,
    build_dir: Path,
    build_type: BuildType,
    toolchain_file: Path | None = None,
    use_ninja: bool = False,
) -> list[str]:
    """Compose the ``cmake`` configure command.

    Args:
        source_dir: SDL checkout.
        build_dir: Build tree.
        build_type: CMake configuration.
        toolchain_file: Optional resolved toolchain file.
        use_ninja: Generate Ninja build files.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = [
        "cmake",
        "-S",
        str(source_dir),
        "-B",
        str(build_dir),
        f"-DCMAKE_BUILD_TYPE={build_type.value}",
        *INSTALL_LAYOUT_ARGS,
    ]
    if toolchain_file is not None:
        cmd.append(f"-DCMAKE_TOOLCHAIN_FILE={toolchain_file}")
    if use_ninja:
        cmd.extend(["-G", "Ninja"])
    return cmd


def compose_build_command(build_dir: Path, build_type: BuildType) -> list[str]:
    """Compose the ``cmake --build`` command."""
    return ["cmake", "--build", str(build_dir), "--config", build_type.value]


def compose_install_command(
    build_dir: Path,
    package_dir: Path,
    build_type: BuildType,
) -> list[str]:
    """Compose the ``cmake --install`` command."""
    return [
        "cmake",
        "--install",
        str(build_dir),
        "--prefix",
        str(package_dir),
        "--config",
        build_type.value,
    ]


def command_line(args: list[str]) -> str:
    """Render args as a single command line for the host shell."""
    if sys.platform.startswith("win"):
        return subprocess.list2cmdline(args)
    return shlex.join(args)


class CommandRunner:
    """Runs build commands, optionally through a shell template.

    A shell template containing ``{0}`` gets the command written to a
    file whose path replaces the placeholder; the resulting line is run
    through the system shell.
    """

    def __init__(self, timeout: int | None = None) -> None:
        self.timeout = timeout

    def run(
        self,
        args: list[str],
        cwd: Path | None = None,
        shell: str = "",
        env: Mapping[str, str] | None = None,
    ) -> int:
        """Execute a command and return its exit status.

        Args:
            args: Command and arguments.
            cwd: Working directory.
            shell: Shell template; "" runs the command directly.
            env: Full environment for the child (None inherits).

        Returns:
            Process exit code; -1 if the command timed out.

        Raises:
            SubprocessFailed: If the command cannot be started.
        """
        cmd_str = command_line(args)
        logger.info("%s", cmd_str)
        child_env = dict(env) if env is not None else None

        try:
            if shell and SHELL_PLACEHOLDER in shell:
                with tempfile.TemporaryDirectory(prefix="setup-sdl-") as tmp:
                    cmd_file = Path(tmp) / "cmd.txt"
                    cmd_file.write_text(cmd_str, encoding="utf-8")
                    final_command = shell.replace(SHELL_PLACEHOLDER, str(cmd_file))
                    logger.info("-> %s", final_command)
                    result = subprocess.run(
                        final_command,
                        cwd=cwd,
                        env=child_env,
                        shell=True,
                        timeout=self.timeout,
                        check=False,
                    )
            else:
                result = subprocess.run(
                    args,
                    cwd=cwd,
                    env=child_env,
                    timeout=self.timeout,
                    check=False,
                )
        except subprocess.TimeoutExpired:
            logger.error("Command timed out after %s seconds: %s", self.timeout, cmd_str)
            return -1
        except OSError as e:
            logger.error("Failed to execute %s: %s", cmd_str, e)
            raise SubprocessFailed(args[0], -1, code="execution_error") from e

        if result.returncode != 0:
            logger.error("Command failed with exit code %d: %s", result.returncode, cmd_str)
        return result.returncode


__all__ = [
    "IGNORED_SHELLS",
    "INSTALL_LAYOUT_ARGS",
    "CommandRunner",
    "command_line",
    "compose_build_command",
    "compose_configure_command",
    "compose_install_command",
    "normalize_shell",
    "validate_build_type",
]
