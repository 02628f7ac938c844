"""CLI command modules for apkg-srs.

- shared.py: Common utilities (config/logger loading, console)
- package_commands.py: Typer registration for inspect, to-json and repack
- package_handler.py: Implementation of those commands
"""

from .package_handler import run_inspect, run_repack, run_to_json
from .shared import console, get_config_and_logger

__all__ = [
    "console",
    "get_config_and_logger",
    "run_inspect",
    "run_repack",
    "run_to_json",
]
