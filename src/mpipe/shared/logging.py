from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


class LogConfig:
    """Centralized logging setup for the CLI.

    Logging levels:
    - Default: WARNING only
    - --verbose: INFO from mpipe (retry notices)
    - --debug: DEBUG, including per-attempt tracing

    All log output goes to stderr; stdout is reserved for the payload.
    """

    NOISY_LOGGERS: tuple[str, ...] = (
        "httpx",
        "httpcore",
        "openai",
    )

    @classmethod
    def configure(cls, *, verbose: bool = False, debug: bool = False) -> None:
        """Configure logging based on verbosity flags.

        Args:
            verbose: Enable INFO level logs.
            debug: Enable DEBUG logs (overrides verbose).
        """
        root = logging.getLogger()
        # Replace only our own handler so repeated calls don't stack output
        for handler in list(root.handlers):
            if isinstance(handler, RichHandler):
                root.removeHandler(handler)

        for logger_name in cls.NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

        if debug:
            level = logging.DEBUG
        elif verbose:
            level = logging.INFO
        else:
            level = logging.WARNING

        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            show_time=False,
            show_level=debug,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setLevel(level)
        root.addHandler(handler)
        root.setLevel(logging.WARNING)
        logging.getLogger("mpipe").setLevel(level)
