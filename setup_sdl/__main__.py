"""Allow running as ``python -m setup_sdl``."""

from setup_sdl.cli import app

app(prog_name="setup-sdl")
