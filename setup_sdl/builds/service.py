"""Build service module.

This module provides the high-level provisioning API:
- plan_build(): resolve the requirement and compute the state hash
- BuildOrchestrator: cache lookup, then checkout/configure/build/install
  and cache store on a miss
- provision(): the whole run, including version detection and outputs

The orchestrator is an explicit state machine. The cache store state can
only be entered from a completed install, so a failed build is never
cached.
"""

from __future__ import annotations

import contextlib
import logging
import os
from collections.abc import Callable, Mapping
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from setup_sdl.builds.git import resolve_commit
from setup_sdl.builds.runner import (
    compose_build_command,
    compose_configure_command,
    compose_install_command,
    normalize_shell,
    validate_build_type,
)
from setup_sdl.builds.state_hash import (
    BuildIdentity,
    cache_key_for,
    collect_build_identity,
    compute_state_hash,
    resolve_toolchain_file,
)
from setup_sdl.cache import CacheBackend
from setup_sdl.detect import detect
from setup_sdl.errors import SubprocessFailed
from setup_sdl.platform import (
    BuildLayout,
    environment_exports,
    get_platform_root_directory,
)
from setup_sdl.types import BuildPlatform, BuildState, BuildType, SemanticVersion
from setup_sdl.version.resolver import ResolvedRevision, resolve

logger = logging.getLogger(__name__)

TRANSITIONS: dict[BuildState, frozenset[BuildState]] = {
    BuildState.START: frozenset({BuildState.CACHE_LOOKUP}),
    BuildState.CACHE_LOOKUP: frozenset({BuildState.CACHE_HIT, BuildState.CHECKOUT}),
    BuildState.CACHE_HIT: frozenset({BuildState.DONE}),
    BuildState.CHECKOUT: frozenset({BuildState.TOOL_SETUP}),
    BuildState.TOOL_SETUP: frozenset({BuildState.CONFIGURE}),
    BuildState.CONFIGURE: frozenset({BuildState.BUILD}),
    BuildState.BUILD: frozenset({BuildState.INSTALL}),
    BuildState.INSTALL: frozenset({BuildState.CACHE_STORE}),
    BuildState.CACHE_STORE: frozenset({BuildState.DONE}),
}


class SourceControl(Protocol):
    """Source-control operations the build needs."""

    def list_remote_refs(self, url: str, ref: str) -> list[tuple[str, str]]: ...

    def shallow_fetch_and_checkout(self, url: str, ref: str, into_dir: Path) -> None: ...


class Runner(Protocol):
    """Executes build-generator commands."""

    def run(
        self,
        args: list[str],
        cwd: Path | None = None,
        shell: str = "",
        env: Mapping[str, str] | None = None,
    ) -> int: ...


GroupFactory = Callable[[str], AbstractContextManager[None]]


def _no_group(title: str) -> AbstractContextManager[None]:
    return contextlib.nullcontext()


@dataclass
class ActionInputs:
    """Inputs of one provisioning run.

    Attributes:
        version: Version requirement string.
        pre_release: Allow prerelease catalog entries.
        build_type: CMake build configuration.
        shell: Shell indirection template.
        cmake_toolchain_file: Toolchain file as given (may be relative).
        discriminator: Free-form value folded into the state hash.
        ninja: Build with Ninja.
        add_to_environment: Export library search paths.
        root: Override of the platform root directory.
    """

    version: str
    pre_release: bool = False
    build_type: str = BuildType.RELEASE.value
    shell: str = ""
    cmake_toolchain_file: str = ""
    discriminator: str = ""
    ninja: bool = True
    add_to_environment: bool = False
    root: str = ""

    def hash_inputs(self) -> dict[str, str]:
        """Return the input values that feed the state hash."""
        return {
            "build-type": self.build_type,
            "cmake-toolchain-file": self.cmake_toolchain_file,
            "discriminator": self.discriminator,
            "ninja": "true" if self.ninja else "false",
        }


@dataclass
class BuildPlan:
    """Everything needed to restore or build one SDL identity."""

    git_url: str
    revision: ResolvedRevision
    commit: str
    platform: BuildPlatform
    root_dir: Path
    identity: BuildIdentity
    state_hash: str
    cache_key: str
    layout: BuildLayout
    build_type: BuildType
    shell: str = ""
    toolchain_file: Path | None = None
    use_ninja: bool = False

    @property
    def package_dir(self) -> Path:
        return self.layout.package_dir


@dataclass
class BuildResult:
    """Outcome of an orchestrator run."""

    plan: BuildPlan
    cache_hit: bool
    states: list[BuildState] = field(default_factory=list)
    path_additions: list[Path] = field(default_factory=list)


@dataclass
class ProvisionResult:
    """Outcome of a complete provisioning run."""

    build: BuildResult
    version: SemanticVersion
    exports: dict[str, str] = field(default_factory=dict)

    @property
    def package_dir(self) -> Path:
        return self.build.plan.package_dir


def plan_build(
    inputs: ActionInputs,
    scm: SourceControl,
    git_url: str,
    platform: BuildPlatform,
    environ: Mapping[str, str],
    workspace: Path | None = None,
    root_dir: Path | None = None,
) -> BuildPlan:
    """Resolve the requested version and derive the build identity.

    Args:
        inputs: Action inputs.
        scm: Source control used for the reference query.
        git_url: SDL repository URL.
        platform: Build platform.
        environ: Environment the build will see.
        workspace: Job workspace for relative toolchain files.
        root_dir: Root from settings, used when ``inputs.root`` is empty.

    Returns:
        BuildPlan for the run.

    Raises:
        InvalidBuildType: If the build type is unknown.
        InvalidRequirement, UnsupportedMajor, NoMatchingRelease: From resolution.
        RefNotFound, SourceControlError: From the reference query.
        ToolchainFileNotFound, ToolchainFileUnreadable: From the toolchain file.
    """
    build_type = validate_build_type(inputs.build_type)
    shell = normalize_shell(inputs.shell)
    toolchain_file = resolve_toolchain_file(inputs.cmake_toolchain_file, workspace)

    revision = resolve(inputs.version, inputs.pre_release)
    commit = resolve_commit(scm, git_url, revision.ref)

    identity = collect_build_identity(
        environ=environ,
        inputs=inputs.hash_inputs(),
        git_hash=commit,
        build_platform=platform,
        shell=shell,
        toolchain_file=toolchain_file,
    )
    state_hash = compute_state_hash(identity)
    logger.info("setup-sdl state = %s", state_hash)

    root = get_platform_root_directory(platform, inputs.root or root_dir)
    logger.info("root=%s", root)

    return BuildPlan(
        git_url=git_url,
        revision=revision,
        commit=commit,
        platform=platform,
        root_dir=root,
        identity=identity,
        state_hash=state_hash,
        cache_key=cache_key_for(state_hash),
        layout=BuildLayout.for_state(root, state_hash),
        build_type=build_type,
        shell=shell,
        toolchain_file=toolchain_file,
        use_ninja=inputs.ninja,
    )


class BuildOrchestrator:
    """Restores a package from cache or builds and caches it."""

    def __init__(
        self,
        plan: BuildPlan,
        scm: SourceControl,
        cache: CacheBackend,
        runner: Runner,
        environ: Mapping[str, str],
        tool_setup: Callable[[BuildPlan], Path] | None = None,
        group: GroupFactory = _no_group,
    ) -> None:
        self.plan = plan
        self.scm = scm
        self.cache = cache
        self.runner = runner
        self.environ = dict(environ)
        self.tool_setup = tool_setup
        self.group = group
        self.state = BuildState.START
        self.history: list[BuildState] = [BuildState.START]
        self.path_additions: list[Path] = []
        self._handlers: dict[BuildState, Callable[[], BuildState]] = {
            BuildState.START: lambda: BuildState.CACHE_LOOKUP,
            BuildState.CACHE_LOOKUP: self._cache_lookup,
            BuildState.CACHE_HIT: lambda: BuildState.DONE,
            BuildState.CHECKOUT: self._checkout,
            BuildState.TOOL_SETUP: self._tool_setup,
            BuildState.CONFIGURE: self._configure,
            BuildState.BUILD: self._build,
            BuildState.INSTALL: self._install,
            BuildState.CACHE_STORE: self._cache_store,
        }

    def run(self) -> BuildResult:
        """Drive the state machine to DONE.

        Returns:
            BuildResult describing the run.

        Raises:
            SetupSdlError: From the first failing step; the orchestrator is
                left in the FAILED state.
        """
        while self.state is not BuildState.DONE:
            try:
                next_state = self._handlers[self.state]()
            except Exception:
                logger.error("Step %s failed", self.state.value)
                self._enter(BuildState.FAILED)
                raise
            if next_state not in TRANSITIONS[self.state]:
                raise RuntimeError(
                    f"Illegal transition {self.state.value} -> {next_state.value}"
                )
            self._enter(next_state)

        return BuildResult(
            plan=self.plan,
            cache_hit=BuildState.CACHE_HIT in self.history,
            states=list(self.history),
            path_additions=list(self.path_additions),
        )

    def _enter(self, state: BuildState) -> None:
        logger.debug("state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _cache_lookup(self) -> BuildState:
        found = self.cache.restore([self.plan.package_dir], self.plan.cache_key)
        if found:
            logger.info("Cache hit for %s", found)
            return BuildState.CACHE_HIT
        logger.info("No match found in cache. Building SDL from scratch.")
        return BuildState.CHECKOUT

    def _checkout(self) -> BuildState:
        source_dir = self.plan.layout.source_dir
        with self.group(f"Checking out {self.plan.commit} into {source_dir}"):
            self.scm.shallow_fetch_and_checkout(
                self.plan.git_url, self.plan.commit, source_dir
            )
        return BuildState.TOOL_SETUP

    def _tool_setup(self) -> BuildState:
        if self.plan.use_ninja and self.tool_setup is not None:
            with self.group("Configuring Ninja"):
                tool_dir = self.tool_setup(self.plan)
            self.path_additions.append(tool_dir)
            path = self.environ.get("PATH", "")
            self.environ["PATH"] = f"{tool_dir}{os.pathsep}{path}" if path else str(tool_dir)
        return BuildState.CONFIGURE

    def _run_step(self, title: str, step: str, args: list[str]) -> None:
        with self.group(title):
            status = self.runner.run(args, shell=self.plan.shell, env=self.environ)
        if status != 0:
            raise SubprocessFailed(step, status)

    def _configure(self) -> BuildState:
        plan = self.plan
        self._run_step(
            "Configuring SDL (CMake)",
            "configure",
            compose_configure_command(
                plan.layout.source_dir,
                plan.layout.build_dir,
                plan.build_type,
                toolchain_file=plan.toolchain_file,
                use_ninja=plan.use_ninja and self.tool_setup is not None,
            ),
        )
        return BuildState.BUILD

    def _build(self) -> BuildState:
        self._run_step(
            "Building SDL (CMake)",
            "build",
            compose_build_command(self.plan.layout.build_dir, self.plan.build_type),
        )
        return BuildState.INSTALL

    def _install(self) -> BuildState:
        self._run_step(
            "Installing SDL (CMake)",
            "install",
            compose_install_command(
                self.plan.layout.build_dir,
                self.plan.package_dir,
                self.plan.build_type,
            ),
        )
        return BuildState.CACHE_STORE

    def _cache_store(self) -> BuildState:
        logger.info("Caching %s.", self.plan.package_dir)
        self.cache.save([self.plan.package_dir], self.plan.cache_key)
        return BuildState.DONE


class OutputSink(Protocol):
    """Where the results of a run are published."""

    def set_output(self, name: str, value: str) -> None: ...

    def export_variable(self, name: str, value: str) -> None: ...

    def add_path(self, path: str | Path) -> None: ...

    def group(self, title: str) -> AbstractContextManager[None]: ...


def provision(
    inputs: ActionInputs,
    scm: SourceControl,
    cache: CacheBackend,
    runner: Runner,
    outputs: OutputSink,
    git_url: str,
    platform: BuildPlatform,
    environ: Mapping[str, str],
    workspace: Path | None = None,
    root_dir: Path | None = None,
    tool_setup: Callable[[BuildPlan], Path] | None = None,
) -> ProvisionResult:
    """Provision SDL: resolve, restore or build, detect and publish.

    Returns:
        ProvisionResult with the package directory and detected version.

    Raises:
        SetupSdlError: On the first failure.
    """
    with outputs.group("Resolving SDL version"):
        plan = plan_build(
            inputs,
            scm,
            git_url=git_url,
            platform=platform,
            environ=environ,
            workspace=workspace,
            root_dir=root_dir,
        )

    build = BuildOrchestrator(
        plan,
        scm=scm,
        cache=cache,
        runner=runner,
        environ=environ,
        tool_setup=tool_setup,
        group=outputs.group,
    ).run()

    version = detect(plan.package_dir)
    logger.info("SDL version is %s", version)

    for path in build.path_additions:
        outputs.add_path(path)

    exports: dict[str, str] = {}
    if inputs.add_to_environment:
        exports = environment_exports(platform, plan.package_dir, environ)
        for name, value in exports.items():
            outputs.export_variable(name, value)

    outputs.export_variable(f"SDL{version.major}_ROOT", str(plan.package_dir))
    outputs.set_output("prefix", str(plan.package_dir))
    outputs.set_output("version", str(version))

    return ProvisionResult(build=build, version=version, exports=exports)


__all__ = [
    "TRANSITIONS",
    "ActionInputs",
    "BuildOrchestrator",
    "BuildPlan",
    "BuildResult",
    "ProvisionResult",
    "plan_build",
    "provision",
]
