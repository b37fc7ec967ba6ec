"""Build orchestration module.

This module handles:
- State hash computation
- Git reference queries and source checkout
- Running CMake
- Cache-gated build orchestration
"""

from setup_sdl.builds.service import ActionInputs, BuildOrchestrator, provision

__all__ = ["ActionInputs", "BuildOrchestrator", "provision"]
