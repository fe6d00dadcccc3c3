"""CLI package for mpipe.

- app: entry points (mpipe, mpask) and pipeline wiring
- parser: argparse definitions
- commands/: subcommand implementations (config check)
"""

from .app import ask_main, main, run_ask, run_pipeline

__all__ = ["ask_main", "main", "run_ask", "run_pipeline"]
