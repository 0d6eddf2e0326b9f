# src/RIVERlagPy/errors.py
# SPDX-License-Identifier: MIT
"""
Exception and warning types raised by RIVERlagPy.

Loading and alignment errors are fatal for a run. Model fitting errors are
isolated per backend by :func:`RIVERlagPy.harness.evaluate_backends`.
"""

from __future__ import annotations

from typing import Optional


class RiverLagError(Exception):
    """Base class for all RIVERlagPy errors."""


class ParseError(RiverLagError):
    """A raw file does not conform to its declared format."""

    def __init__(self, path: str, expected: str, reason: str) -> None:
        self.path = str(path)
        self.expected = expected
        self.reason = reason
        super().__init__(f"{self.path}: {reason} (expected {expected})")


class AlignmentError(RiverLagError):
    """The required signal groups share no common time window."""

    def __init__(self, message: str, bounds: Optional[dict] = None) -> None:
        self.bounds = dict(bounds or {})
        super().__init__(message)


class ModelFitError(RiverLagError):
    """A regression backend rejected the dataset."""

    def __init__(self, backend: str, reason: str) -> None:
        self.backend = backend
        self.reason = reason
        super().__init__(f"backend '{backend}' failed: {reason}")


class InsufficientHistoryWarning(UserWarning):
    """A lag or rolling window is longer than the available history."""


__all__ = [
    "RiverLagError",
    "ParseError",
    "AlignmentError",
    "ModelFitError",
    "InsufficientHistoryWarning",
]
