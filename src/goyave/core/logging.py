"""Logging configuration for goyave.

Log records go to stderr through a rich handler, so the standard output of
commands such as ``goyave path`` stays clean for shell integration::

    cd "$(goyave path myrepo)"

Records emitted by crawl and state workers carry their thread name in the
log file, which makes interleaved repositories easy to tell apart.

Example:
    ```python
    from goyave.core.logging import setup_logging

    setup_logging(debug=True, log_file="~/logs/goyave.log")

    import logging
    logger = logging.getLogger(__name__)
    logger.warning("%s cannot be found in your visible repositories", "notes")
    ```
"""

import logging
import sys
from pathlib import Path
from types import TracebackType
from typing import Optional, Type

from rich.console import Console
from rich.logging import RichHandler

# Diagnostics console, kept apart from command output
console = Console(stderr=True)

DEFAULT_FILE_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"


def _console_handler(debug: bool) -> logging.Handler:
    # Repository paths and names may contain brackets: no rich markup
    handler = RichHandler(
        console=console,
        show_path=debug,
        enable_link_path=debug,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=debug,
    )
    handler.setLevel(logging.DEBUG if debug else logging.INFO)
    return handler


def _file_handler(log_file: str, log_format: str) -> logging.Handler:
    log_path = Path(log_file).expanduser()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(log_format))
    return handler


def setup_logging(
    debug: bool = False,
    log_file: Optional[str] = None,
    log_format: str = DEFAULT_FILE_FORMAT,
) -> None:
    """Set up logging for one goyave invocation.

    Args:
        debug: Show debug records on the console (default: False).
        log_file: Optional path of a file receiving every record at debug
                 level, whatever ``debug`` says. ``~`` is expanded.
        log_format: Format string for the file handler.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(_console_handler(debug))
    if log_file:
        root_logger.addHandler(_file_handler(log_file, log_format))
        root_logger.setLevel(logging.DEBUG)
    else:
        root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    logger = logging.getLogger(__name__)
    logger.debug("Logging initialized (debug=%s, log_file=%s)", debug, log_file)

    def handle_exception(
        exc_type: Type[BaseException],
        exc_value: BaseException,
        exc_traceback: Optional[TracebackType],
    ) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

    sys.excepthook = handle_exception
