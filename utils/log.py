"""Logging setup for entry points.

Library modules only ever call logging.getLogger(__name__). The CLI and the
HTTP server call setup_logging() once to attach a rotating file handler and,
for the terminal, a rich console handler.
"""

import logging
import logging.handlers
import pathlib

from rich.console import Console
from rich.logging import RichHandler

LOG_FILE = pathlib.Path(__file__).parent.parent / "st_narrative.log"
LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: int = logging.INFO,
    console: bool = True,
    log_file: pathlib.Path | None = LOG_FILE,
) -> None:
    """Configure the root logger. Safe to call more than once.

    Args:
        level: Root log level.
        console: Attach a RichHandler writing to stderr.
        log_file: Rotating log file path. None disables file logging.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        if getattr(handler, "_st_narrative", False):
            root.removeHandler(handler)
            handler.close()

    if log_file is not None:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        file_handler._st_narrative = True
        root.addHandler(file_handler)

    if console:
        console_handler = RichHandler(console=Console(stderr=True), show_path=False)
        console_handler.setLevel(logging.WARNING)
        console_handler._st_narrative = True
        root.addHandler(console_handler)

    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
