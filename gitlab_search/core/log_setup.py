"""
Logging configuration for the command line tool.

Two independent streams are set up:
- the diagnostic stream (``gitlab_search`` logger tree) goes to the console
  and, for warnings and above, to ``error.log``;
- the results stream (``gitlab_search.results``) only goes to ``result.log``.
"""
from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
RESULT_FORMAT = "%(asctime)s - %(message)s"

DIAGNOSTIC_LOGGER_NAME = "gitlab_search"
RESULTS_LOGGER_NAME = "gitlab_search.results"

ERROR_LOG_FILE = "error.log"
RESULT_LOG_FILE = "result.log"


def get_results_logger() -> logging.Logger:
    return logging.getLogger(RESULTS_LOGGER_NAME)


def configure_logging(log_dir: Path, verbose: bool = False) -> None:
    """
    Attach console and file handlers to the diagnostic and results loggers.

    Calling this more than once replaces the handlers instead of stacking them.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    diagnostic = logging.getLogger(DIAGNOSTIC_LOGGER_NAME)
    diagnostic.setLevel(logging.DEBUG)
    _reset_handlers(diagnostic)

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(formatter)
    diagnostic.addHandler(console)

    error_file = logging.FileHandler(log_dir / ERROR_LOG_FILE, encoding="utf-8")
    error_file.setLevel(logging.WARNING)
    error_file.setFormatter(formatter)
    diagnostic.addHandler(error_file)

    results = get_results_logger()
    results.setLevel(logging.INFO)
    results.propagate = False
    _reset_handlers(results)

    result_file = logging.FileHandler(log_dir / RESULT_LOG_FILE, encoding="utf-8")
    result_file.setFormatter(logging.Formatter(RESULT_FORMAT))
    results.addHandler(result_file)


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
