"""Tests for builds/service.py module.

Tests planning, the orchestrator state machine and the provisioning flow
with fake source control, cache and runner.
"""

from contextlib import contextmanager
from pathlib import Path

import pytest

from setup_sdl.builds.service import (
    TRANSITIONS,
    ActionInputs,
    BuildOrchestrator,
    plan_build,
    provision,
)
from setup_sdl.errors import (
    InvalidBuildType,
    NoMatchingRelease,
    RefNotFound,
    SubprocessFailed,
)
from setup_sdl.types import BuildPlatform, BuildState

URL = "https://github.com/libsdl-org/SDL.git"
COMMIT = "c0ffee" + "0" * 34

SDL3_HEADER = """\
#define SDL_MAJOR_VERSION   3
#define SDL_MINOR_VERSION   2
#define SDL_MICRO_VERSION   0
"""


class FakeScm:
    """Answers every ls-remote query with one commit."""

    def __init__(self, commit=COMMIT):
        self.commit = commit
        self.queries = []
        self.checkouts = []

    def list_remote_refs(self, url, ref):
        self.queries.append(ref)
        if self.commit is None:
            return []
        return [(self.commit, f"refs/tags/{ref}")]

    def shallow_fetch_and_checkout(self, url, ref, into_dir):
        self.checkouts.append((url, ref, into_dir))
        into_dir.mkdir(parents=True, exist_ok=True)


class FakeCache:
    """In-memory cache that materializes an SDL install on restore."""

    def __init__(self, keys=()):
        self.keys = set(keys)
        self.restores = []
        self.saves = []

    def restore(self, paths, key, restore_keys=()):
        self.restores.append((list(paths), key))
        if key not in self.keys:
            return None
        write_install(paths[0])
        return key

    def save(self, paths, key):
        self.saves.append((list(paths), key))
        self.keys.add(key)


class FakeRunner:
    """Records commands; the install step writes an SDL install."""

    def __init__(self, fail_step=None, status=1):
        self.fail_step = fail_step
        self.status = status
        self.commands = []
        self.envs = []

    def run(self, args, cwd=None, shell="", env=None):
        self.commands.append(args)
        self.envs.append(env)
        step = {"-S": "configure", "--build": "build", "--install": "install"}[args[1]]
        if step == self.fail_step:
            return self.status
        if step == "install":
            write_install(args[args.index("--prefix") + 1])
        return 0


class FakeOutputs:
    """Collects published values and group titles."""

    def __init__(self):
        self.outputs = {}
        self.exported = {}
        self.paths = []
        self.groups = []

    def set_output(self, name, value):
        self.outputs[name] = value

    def export_variable(self, name, value):
        self.exported[name] = value

    def add_path(self, path):
        self.paths.append(str(path))

    @contextmanager
    def group(self, title):
        self.groups.append(title)
        yield


def write_install(prefix):
    """Create a minimal installed SDL3 tree."""
    header = Path(prefix) / "include" / "SDL3" / "SDL_version.h"
    header.parent.mkdir(parents=True, exist_ok=True)
    header.write_text(SDL3_HEADER)


@pytest.fixture
def environ():
    """A build environment."""
    return {"CC": "gcc", "PATH": "/usr/bin"}


def make_plan(tmp_path, environ, **kwargs):
    """Plan a 3.2.0 build rooted in tmp_path."""
    inputs = ActionInputs(version="3.2.0", root=str(tmp_path / "root"), **kwargs)
    return plan_build(
        inputs,
        FakeScm(),
        git_url=URL,
        platform=BuildPlatform.LINUX,
        environ=environ,
        workspace=tmp_path,
    )


class TestTransitions:
    """Tests for the transition table."""

    def test_cache_store_only_after_install(self):
        """A package can only be cached after a completed install."""
        sources = [
            s for s, targets in TRANSITIONS.items() if BuildState.CACHE_STORE in targets
        ]
        assert sources == [BuildState.INSTALL]

    def test_done_and_failed_are_terminal(self):
        """Terminal states have no outgoing transitions."""
        assert BuildState.DONE not in TRANSITIONS
        assert BuildState.FAILED not in TRANSITIONS


class TestPlanBuild:
    """Tests for plan_build."""

    def test_plan_layout(self, tmp_path, environ):
        """Should lay out directories under root/state-hash."""
        plan = make_plan(tmp_path, environ)

        assert plan.revision.ref == "release-3.2.0"
        assert plan.commit == COMMIT
        assert plan.cache_key == f"setup-sdl-{plan.state_hash}"
        assert plan.layout.source_dir == tmp_path / "root" / plan.state_hash / "source"
        assert plan.package_dir == tmp_path / "root" / plan.state_hash / "package"

    def test_same_inputs_same_plan(self, tmp_path, environ):
        """Planning is deterministic."""
        assert make_plan(tmp_path, environ).state_hash == (
            make_plan(tmp_path, dict(environ)).state_hash
        )

    def test_environment_changes_hash(self, tmp_path, environ):
        """A changed compiler flag changes the key."""
        first = make_plan(tmp_path, environ)
        second = make_plan(tmp_path, {**environ, "CFLAGS": "-O0"})
        assert first.cache_key != second.cache_key

    def test_literal_passed_verbatim(self, tmp_path, environ):
        """A literal ref reaches ls-remote unchanged."""
        scm = FakeScm()
        plan_build(
            ActionInputs(version="feature/my-branch", root=str(tmp_path)),
            scm,
            git_url=URL,
            platform=BuildPlatform.LINUX,
            environ=environ,
        )
        assert scm.queries == ["feature/my-branch"]

    def test_invalid_build_type_before_network(self, tmp_path, environ):
        """Input validation fails before any query."""
        scm = FakeScm()
        with pytest.raises(InvalidBuildType):
            plan_build(
                ActionInputs(version="3.2.0", build_type="Fastest"),
                scm,
                git_url=URL,
                platform=BuildPlatform.LINUX,
                environ=environ,
            )
        assert scm.queries == []

    def test_no_matching_release(self, environ):
        """An unknown exact version fails before any query."""
        scm = FakeScm()
        with pytest.raises(NoMatchingRelease):
            plan_build(
                ActionInputs(version="3.99.0"),
                scm,
                git_url=URL,
                platform=BuildPlatform.LINUX,
                environ=environ,
            )
        assert scm.queries == []

    def test_ref_not_found(self, environ):
        """A ref missing upstream fails planning."""
        with pytest.raises(RefNotFound):
            plan_build(
                ActionInputs(version="no-such-branch"),
                FakeScm(commit=None),
                git_url=URL,
                platform=BuildPlatform.LINUX,
                environ=environ,
            )

    def test_settings_root_used_without_input(self, tmp_path, environ):
        """The settings root applies when the input is empty."""
        plan = plan_build(
            ActionInputs(version="3.2.0"),
            FakeScm(),
            git_url=URL,
            platform=BuildPlatform.LINUX,
            environ=environ,
            root_dir=tmp_path / "settings-root",
        )
        assert plan.root_dir == tmp_path / "settings-root"


class TestBuildOrchestrator:
    """Tests for BuildOrchestrator."""

    def test_cache_hit_short_circuits(self, tmp_path, environ):
        """A hit skips checkout, build and store."""
        plan = make_plan(tmp_path, environ)
        scm, runner = FakeScm(), FakeRunner()
        cache = FakeCache(keys={plan.cache_key})

        result = BuildOrchestrator(plan, scm, cache, runner, environ).run()

        assert result.cache_hit is True
        assert result.states == [
            BuildState.START,
            BuildState.CACHE_LOOKUP,
            BuildState.CACHE_HIT,
            BuildState.DONE,
        ]
        assert scm.checkouts == []
        assert runner.commands == []
        assert cache.saves == []

    def test_cache_miss_builds_and_stores(self, tmp_path, environ):
        """A miss runs every step and saves under the plan's key."""
        plan = make_plan(tmp_path, environ, ninja=False)
        scm, runner, cache = FakeScm(), FakeRunner(), FakeCache()

        result = BuildOrchestrator(plan, scm, cache, runner, environ).run()

        assert result.cache_hit is False
        assert result.states == [
            BuildState.START,
            BuildState.CACHE_LOOKUP,
            BuildState.CHECKOUT,
            BuildState.TOOL_SETUP,
            BuildState.CONFIGURE,
            BuildState.BUILD,
            BuildState.INSTALL,
            BuildState.CACHE_STORE,
            BuildState.DONE,
        ]
        assert scm.checkouts == [(URL, COMMIT, plan.layout.source_dir)]
        assert [c[1] for c in runner.commands] == ["-S", "--build", "--install"]
        assert cache.saves == [([plan.package_dir], plan.cache_key)]

    @pytest.mark.parametrize("step", ["configure", "build", "install"])
    def test_failed_step_not_cached(self, tmp_path, environ, step):
        """A failing step ends in FAILED and nothing is saved."""
        plan = make_plan(tmp_path, environ)
        cache = FakeCache()
        orchestrator = BuildOrchestrator(
            plan, FakeScm(), cache, FakeRunner(fail_step=step, status=2), environ
        )

        with pytest.raises(SubprocessFailed) as exc_info:
            orchestrator.run()

        assert exc_info.value.step == step
        assert exc_info.value.exit_status == 2
        assert str(exc_info.value) == f"{step} failed with exit code 2"
        assert orchestrator.state is BuildState.FAILED
        assert BuildState.CACHE_STORE not in orchestrator.history
        assert cache.saves == []

    def test_tool_setup_prepends_path(self, tmp_path, environ):
        """The tool directory is on PATH for every build command."""
        plan = make_plan(tmp_path, environ, ninja=True)
        tool_dir = tmp_path / "root" / "ninja"
        runner = FakeRunner()

        result = BuildOrchestrator(
            plan,
            FakeScm(),
            FakeCache(),
            runner,
            environ,
            tool_setup=lambda p: tool_dir,
        ).run()

        assert result.path_additions == [tool_dir]
        assert all(env["PATH"].startswith(str(tool_dir)) for env in runner.envs)
        assert runner.commands[0][-2:] == ["-G", "Ninja"]
        assert environ["PATH"] == "/usr/bin"

    def test_ninja_without_tool_setup(self, tmp_path, environ):
        """Without a tool setup the default generator is used."""
        plan = make_plan(tmp_path, environ, ninja=True)
        runner = FakeRunner()
        result = BuildOrchestrator(plan, FakeScm(), FakeCache(), runner, environ).run()

        assert result.path_additions == []
        assert "-G" not in runner.commands[0]

    def test_groups_opened(self, tmp_path, environ):
        """Each external step runs inside a log group."""
        plan = make_plan(tmp_path, environ, ninja=False)
        outputs = FakeOutputs()
        BuildOrchestrator(
            plan, FakeScm(), FakeCache(), FakeRunner(), environ, group=outputs.group
        ).run()

        assert outputs.groups[0].startswith("Checking out")
        assert "Configuring SDL (CMake)" in outputs.groups
        assert "Installing SDL (CMake)" in outputs.groups


class TestProvision:
    """Tests for provision."""

    def run_provision(
        self, tmp_path, environ, cache=None, scm=None, runner=None, **kwargs
    ):
        outputs = FakeOutputs()
        cache = cache if cache is not None else FakeCache()
        result = provision(
            ActionInputs(version="3.2.0", root=str(tmp_path / "root"), **kwargs),
            scm=scm if scm is not None else FakeScm(),
            cache=cache,
            runner=runner if runner is not None else FakeRunner(),
            outputs=outputs,
            git_url=URL,
            platform=BuildPlatform.LINUX,
            environ=environ,
            workspace=tmp_path,
            tool_setup=lambda plan: plan.root_dir / "ninja",
        )
        return result, outputs, cache

    def test_build_then_hit(self, tmp_path, environ):
        """A second identical run restores from cache."""
        first, outputs, cache = self.run_provision(tmp_path, environ)
        assert first.build.cache_hit is False
        assert str(first.version) == "3.2.0"
        assert outputs.outputs["version"] == "3.2.0"
        assert outputs.outputs["prefix"] == str(first.package_dir)

        second, _, _ = self.run_provision(tmp_path, environ, cache=cache)
        assert second.build.cache_hit is True
        assert second.build.plan.cache_key == first.build.plan.cache_key

    def test_retry_after_failed_build(self, tmp_path, environ):
        """A failed build leaves its directories behind and a retry succeeds."""
        scm, cache = FakeScm(), FakeCache()
        with pytest.raises(SubprocessFailed):
            self.run_provision(
                tmp_path,
                environ,
                cache=cache,
                scm=scm,
                runner=FakeRunner(fail_step="build"),
            )
        assert cache.saves == []
        assert len(scm.checkouts) == 1
        source_dir = scm.checkouts[0][2]
        assert source_dir.is_dir()

        result, outputs, _ = self.run_provision(
            tmp_path, environ, cache=cache, scm=scm
        )

        assert result.build.cache_hit is False
        assert scm.checkouts[1] == scm.checkouts[0]
        assert cache.saves == [([result.package_dir], result.build.plan.cache_key)]
        assert outputs.outputs["version"] == "3.2.0"

    def test_root_variable_exported(self, tmp_path, environ):
        """SDL3_ROOT points at the package."""
        result, outputs, _ = self.run_provision(tmp_path, environ)
        assert outputs.exported["SDL3_ROOT"] == str(result.package_dir)

    def test_ninja_path_published(self, tmp_path, environ):
        """The tool directory is added to the job's PATH."""
        result, outputs, _ = self.run_provision(tmp_path, environ)
        assert outputs.paths == [str(result.build.plan.root_dir / "ninja")]

    def test_add_to_environment(self, tmp_path, environ):
        """Library search paths are exported when requested."""
        result, outputs, _ = self.run_provision(
            tmp_path, environ, add_to_environment=True
        )
        lib = result.package_dir / "lib"
        assert outputs.exported["LD_LIBRARY_PATH"] == str(lib)
        assert outputs.exported["PKG_CONFIG_PATH"] == str(lib / "pkgconfig")
        assert outputs.exported["CMAKE_PREFIX_PATH"] == str(result.package_dir)
        assert result.exports["LD_LIBRARY_PATH"] == str(lib)

    def test_environment_not_exported_by_default(self, tmp_path, environ):
        """Only the root variable is exported without the flag."""
        _, outputs, _ = self.run_provision(tmp_path, environ)
        assert set(outputs.exported) == {"SDL3_ROOT"}
