"""Thin CLI wrapper for setup_sdl.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules. Options of the ``run``
command also read the ``INPUT_*`` variables a CI runner sets for action
inputs.
"""

import json
import logging
import os
from pathlib import Path
from typing import Annotated

import httpx
import typer
from rich.console import Console
from rich.logging import RichHandler

from setup_sdl import __version__
from setup_sdl.config import get_settings, print_settings_json

app = typer.Typer(
    name="setup-sdl",
    help="setup-sdl - provision a pinned, cached SDL build",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"setup-sdl version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """setup-sdl - provision a pinned, cached SDL build."""
    configure_logging(get_settings().log_level)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings))
        return

    root_display = str(settings.root_dir) if settings.root_dir else "(platform default)"
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Root directory:      {root_display}")
    console.print(f"  Cache directory:     {settings.cache_dir}")
    console.print(f"  Workspace:           {settings.workspace}")
    console.print()
    console.print("[bold]Sources:[/bold]")
    console.print(f"  SDL repository:      {settings.git_url}")
    console.print(f"  Ninja version:       {settings.ninja_version}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Log level:           {settings.log_level}")
    console.print()
    console.print("[bold]Timeouts (seconds):[/bold]")
    console.print(f"  Git timeout:         {settings.git_timeout}")
    console.print(f"  Build timeout:       {settings.build_timeout}")
    console.print(f"  Download timeout:    {settings.download_timeout}")


@app.command()
def run(
    requirement: Annotated[
        str,
        typer.Argument(
            help="SDL version: 2.30.1, 2-latest, 3-head, or a git ref",
            envvar="INPUT_VERSION",
        ),
    ],
    pre_release: Annotated[
        bool,
        typer.Option(
            "--pre-release/--no-pre-release",
            help="Allow prerelease versions",
            envvar="INPUT_PRE-RELEASE",
        ),
    ] = False,
    build_type: Annotated[
        str,
        typer.Option(
            "--build-type",
            help="CMake build type (Release, Debug, MinSizeRel, RelWithDebInfo)",
            envvar="INPUT_BUILD-TYPE",
        ),
    ] = "Release",
    shell: Annotated[
        str,
        typer.Option(
            "--shell",
            help="Shell template; {0} is replaced by a file holding the command",
            envvar="INPUT_SHELL",
        ),
    ] = "",
    cmake_toolchain_file: Annotated[
        str,
        typer.Option(
            "--cmake-toolchain-file",
            help="CMake toolchain file",
            envvar="INPUT_CMAKE-TOOLCHAIN-FILE",
        ),
    ] = "",
    discriminator: Annotated[
        str,
        typer.Option(
            "--discriminator",
            help="Extra value to distinguish otherwise identical builds",
            envvar="INPUT_DISCRIMINATOR",
        ),
    ] = "",
    ninja: Annotated[
        bool,
        typer.Option(
            "--ninja/--no-ninja",
            help="Build with Ninja",
            envvar="INPUT_NINJA",
        ),
    ] = True,
    add_to_environment: Annotated[
        bool,
        typer.Option(
            "--add-to-environment/--no-add-to-environment",
            help="Export library search paths for later steps",
            envvar="INPUT_ADD-TO-ENVIRONMENT",
        ),
    ] = False,
    root: Annotated[
        str,
        typer.Option(
            "--root",
            help="Root directory for source, build and package trees",
            envvar="INPUT_ROOT",
        ),
    ] = "",
) -> None:
    """Restore SDL from cache, or build and cache it."""
    from setup_sdl.builds.git import GitClient
    from setup_sdl.builds.runner import CommandRunner
    from setup_sdl.builds.service import ActionInputs, BuildPlan, provision
    from setup_sdl.cache import LocalCacheBackend
    from setup_sdl.errors import SetupSdlError
    from setup_sdl.ninja import configure_ninja_build_tool
    from setup_sdl.outputs import ActionOutputs
    from setup_sdl.platform import get_build_platform

    settings = get_settings()
    cache = LocalCacheBackend(settings.cache_dir)
    outputs = ActionOutputs()
    platform = get_build_platform()
    logging.getLogger(__name__).info("build platform=%s", platform.value)

    def setup_ninja(plan: BuildPlan) -> Path:
        with httpx.Client(follow_redirects=True) as client:
            return configure_ninja_build_tool(
                plan.platform,
                plan.root_dir,
                cache,
                client,
                settings.ninja_version,
                timeout=settings.download_timeout,
            )

    inputs = ActionInputs(
        version=requirement,
        pre_release=pre_release,
        build_type=build_type,
        shell=shell,
        cmake_toolchain_file=cmake_toolchain_file,
        discriminator=discriminator,
        ninja=ninja,
        add_to_environment=add_to_environment,
        root=root,
    )

    try:
        result = provision(
            inputs,
            scm=GitClient(timeout=settings.git_timeout),
            cache=cache,
            runner=CommandRunner(timeout=settings.build_timeout),
            outputs=outputs,
            git_url=settings.git_url,
            platform=platform,
            environ=dict(os.environ),
            workspace=settings.workspace,
            root_dir=settings.root_dir,
            tool_setup=setup_ninja,
        )
    except SetupSdlError as e:
        outputs.error(str(e))
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from None

    status = "restored from cache" if result.build.cache_hit else "built"
    console.print(f"[green]SDL {result.version} {status}[/green]")
    console.print(f"  Prefix: {result.package_dir}")


@app.command()
def resolve(
    requirement: Annotated[str, typer.Argument(help="SDL version requirement")],
    pre_release: Annotated[
        bool,
        typer.Option("--pre-release", help="Allow prerelease versions"),
    ] = False,
    commit: Annotated[
        bool,
        typer.Option("--commit", help="Also query the commit hash upstream"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Resolve a version requirement to a git reference."""
    from setup_sdl.builds.git import GitClient, resolve_commit
    from setup_sdl.errors import SetupSdlError
    from setup_sdl.version import resolve as resolve_revision

    settings = get_settings()
    try:
        revision = resolve_revision(requirement, pre_release)
        sha = (
            resolve_commit(
                GitClient(timeout=settings.git_timeout), settings.git_url, revision.ref
            )
            if commit
            else None
        )
    except SetupSdlError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        output: dict[str, object] = {
            "requirement": requirement,
            "kind": revision.requirement.kind.value,
            "ref": revision.ref,
            "release": str(revision.release.version) if revision.release else None,
        }
        if sha is not None:
            output["commit"] = sha
        console.print(json.dumps(output, indent=2))
        return

    console.print(f"[bold]{requirement}[/bold] -> [green]{revision.ref}[/green]")
    if revision.release is not None:
        console.print(f"  Release: {revision.release.version}")
    if sha is not None:
        console.print(f"  Commit:  {sha}")


@app.command()
def releases(
    major: Annotated[
        int | None,
        typer.Option("--major", "-m", help="Only list this major version"),
    ] = None,
    pre_release: Annotated[
        bool,
        typer.Option("--pre-release", help="Include prereleases"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List known SDL releases."""
    from setup_sdl.version.catalog import releases_for_major

    entries = releases_for_major(major, allow_prerelease=pre_release)

    if json_output:
        output = [
            {
                "version": str(e.version),
                "tag": e.tag,
                "prerelease": e.is_prerelease,
            }
            for e in entries
        ]
        console.print(json.dumps(output, indent=2))
        return

    if not entries:
        console.print("[yellow]No releases found[/yellow]")
        return

    console.print(f"[bold]Found {len(entries)} release(s):[/bold]")
    for e in entries:
        suffix = " [yellow](prerelease)[/yellow]" if e.is_prerelease else ""
        console.print(f"  {e.version}  {e.tag}{suffix}")


@app.command("detect")
def detect_command(
    prefix: Annotated[Path, typer.Argument(help="Install prefix of an SDL build")],
) -> None:
    """Show the SDL version installed under a prefix."""
    from setup_sdl.detect import detect
    from setup_sdl.errors import VersionDetectionFailed

    try:
        version = detect(prefix)
    except VersionDetectionFailed as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from None
    console.print(str(version))


if __name__ == "__main__":
    app()
