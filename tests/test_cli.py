"""Smoke tests for the CLI.

These tests verify CLI behavior without network access or a compiler.
"""

import json
import subprocess
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from setup_sdl import __version__
from setup_sdl.cli import app
from setup_sdl.types import SemanticVersion

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep runner files and caches away from the real environment."""
    for name in ("GITHUB_OUTPUT", "GITHUB_ENV", "GITHUB_PATH", "GITHUB_WORKSPACE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SETUP_SDL_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("SETUP_SDL_WORKSPACE", str(tmp_path))


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        """CLI --help should return exit code 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "setup-sdl" in result.stdout

    def test_version_flag(self) -> None:
        """CLI --version should print version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_short_version_flag(self) -> None:
        """CLI -V should print version."""
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        """CLI with no args should show help."""
        result = runner.invoke(app, [])
        assert "Usage" in result.stdout

    @pytest.mark.parametrize("command", ["run", "resolve", "releases", "detect"])
    def test_command_help(self, command) -> None:
        """Every command has help."""
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0


class TestConfigCommand:
    """Test the config command."""

    def test_config_command(self) -> None:
        """config should show the sections."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Effective Configuration" in result.stdout
        assert "SDL repository" in result.stdout
        assert "Build timeout" in result.stdout

    def test_config_json(self, tmp_path) -> None:
        """config --json should print the settings."""
        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["cache_dir"] == str(tmp_path / "cache")
        assert data["git_url"].endswith("SDL.git")
        assert data["root_dir"] is None


class TestResolveCommand:
    """Test the resolve command."""

    def test_resolve_exact(self) -> None:
        """An exact version maps to its release tag."""
        result = runner.invoke(app, ["resolve", "3.2.0"])
        assert result.exit_code == 0
        assert "release-3.2.0" in result.stdout

    def test_resolve_json(self) -> None:
        """resolve --json has stable keys."""
        result = runner.invoke(app, ["resolve", "2-head", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data == {
            "requirement": "2-head",
            "kind": "major-head",
            "ref": "SDL2",
            "release": None,
        }

    def test_resolve_latest_json(self) -> None:
        """A latest requirement reports the chosen release."""
        result = runner.invoke(app, ["resolve", "2", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["kind"] == "major-latest"
        assert data["release"].startswith("2.")

    def test_resolve_unknown(self) -> None:
        """An unknown exact version fails."""
        result = runner.invoke(app, ["resolve", "9.9.9"])
        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_resolve_commit(self) -> None:
        """--commit queries the remote."""
        with patch("setup_sdl.builds.git.GitClient.list_remote_refs") as mock_refs:
            mock_refs.return_value = [("a" * 40, "refs/heads/main")]
            result = runner.invoke(app, ["resolve", "3-head", "--commit", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["commit"] == "a" * 40


class TestReleasesCommand:
    """Test the releases command."""

    def test_releases_json(self) -> None:
        """releases --json lists stable releases of one major."""
        result = runner.invoke(app, ["releases", "--major", "3", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data
        assert all(item["version"].startswith("3.") for item in data)
        assert not any(item["prerelease"] for item in data)

    def test_releases_with_prereleases(self) -> None:
        """--pre-release includes previews."""
        result = runner.invoke(app, ["releases", "-m", "3", "--pre-release", "--json"])
        data = json.loads(result.stdout)
        assert any(item["prerelease"] for item in data)

    def test_releases_all_majors(self) -> None:
        """Without --major every major is listed, oldest first."""
        result = runner.invoke(app, ["releases", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        majors = [item["version"].split(".")[0] for item in data]
        assert majors == sorted(majors)
        assert set(majors) == {"2", "3"}

    def test_releases_none(self) -> None:
        """An unknown major lists nothing."""
        result = runner.invoke(app, ["releases", "--major", "7"])
        assert result.exit_code == 0
        assert "No releases found" in result.stdout


class TestDetectCommand:
    """Test the detect command."""

    def test_detect(self, tmp_path) -> None:
        """Prints the installed version."""
        header = tmp_path / "include" / "SDL2" / "SDL_version.h"
        header.parent.mkdir(parents=True)
        header.write_text(
            "#define SDL_MAJOR_VERSION 2\n"
            "#define SDL_MINOR_VERSION 26\n"
            "#define SDL_PATCHLEVEL 5\n"
        )
        result = runner.invoke(app, ["detect", str(tmp_path)])
        assert result.exit_code == 0
        assert "2.26.5" in result.stdout

    def test_detect_missing(self, tmp_path) -> None:
        """An empty prefix fails."""
        result = runner.invoke(app, ["detect", str(tmp_path)])
        assert result.exit_code == 1


class TestRunCommand:
    """Test the run command."""

    def test_invalid_build_type(self) -> None:
        """A bad build type fails with an error annotation."""
        result = runner.invoke(app, ["run", "3.2.0", "--build-type", "Fastest"])
        assert result.exit_code == 1
        assert "::error::" in result.stdout
        assert "Fastest" in result.stdout

    def test_inputs_from_environment(self, tmp_path) -> None:
        """Action inputs are read from INPUT_* variables."""
        fake = MagicMock()
        fake.build.cache_hit = True
        fake.version = SemanticVersion(3, 2, 0)
        fake.package_dir = tmp_path / "package"

        with patch("setup_sdl.builds.service.provision", return_value=fake) as mock:
            result = runner.invoke(
                app,
                ["run"],
                env={
                    "INPUT_VERSION": "3.2.0",
                    "INPUT_BUILD-TYPE": "Debug",
                    "INPUT_NINJA": "false",
                    "INPUT_DISCRIMINATOR": "matrix-1",
                },
            )

        assert result.exit_code == 0
        assert "restored from cache" in result.stdout
        inputs = mock.call_args.args[0]
        assert inputs.version == "3.2.0"
        assert inputs.build_type == "Debug"
        assert inputs.ninja is False
        assert inputs.discriminator == "matrix-1"
        assert mock.call_args.kwargs["workspace"] == Path(tmp_path)


class TestModuleEntryPoint:
    """Test python -m setup_sdl entry point."""

    def test_module_help(self) -> None:
        """python -m setup_sdl --help should work."""
        result = subprocess.run(
            [sys.executable, "-m", "setup_sdl", "--help"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0
        assert "setup-sdl" in result.stdout

    def test_module_version(self) -> None:
        """python -m setup_sdl --version should work."""
        result = subprocess.run(
            [sys.executable, "-m", "setup_sdl", "--version"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0
        assert __version__ in result.stdout
