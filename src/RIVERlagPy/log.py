# src/RIVERlagPy/log.py
# SPDX-License-Identifier: MIT
"""Logging and warning setup for batch runs."""

from __future__ import annotations

import logging
import sys
import warnings

PACKAGE_LOGGER = "RIVERlagPy"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
_HANDLER_NAME = "riverlag-stdout"


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Send package log records to stdout.

    Calling it again only updates the level; no handler is added twice.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    if any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.set_name(_HANDLER_NAME)
    logger.addHandler(handler)
    return logger


def set_warning_policy(silence: bool = True) -> None:
    """
    Silence warnings that are not actionable in a batch run.

    pandas ``FutureWarning`` and scikit-learn ``ConvergenceWarning`` are
    ignored when *silence* is true. Data-quality warnings of this package
    are always shown.
    """
    warnings.resetwarnings()
    if silence:
        from sklearn.exceptions import ConvergenceWarning

        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=ConvergenceWarning)


__all__ = ["PACKAGE_LOGGER", "LOG_FORMAT", "setup_logging", "set_warning_policy"]
