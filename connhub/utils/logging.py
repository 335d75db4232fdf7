"""
Logging setup for command line use.

Library modules only create module loggers; the CLI calls setup_logging()
once to route records through Rich.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "sqlalchemy.engine")


def setup_logging(level: str = "INFO", console: Optional[Console] = None) -> None:
    """
    Configure the root logger with a RichHandler.

    Args:
        level: Logging level name
        console: Console to write to (stderr by default)
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )

    # Keep client library loggers at WARNING or above
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, logging.getLogger().level))
