# src/RIVERlagPy/rolling.py
# SPDX-License-Identifier: MIT
"""Trailing rolling means (RAIN -> RAIN24H, TEMPERATURE -> TEMP24H)."""

from __future__ import annotations

import logging
import warnings
from typing import Iterable, Mapping

import numpy as np
import pandas as pd

from .errors import InsufficientHistoryWarning
from .loader import LONG_COLUMNS
from .schema import Signal

logger = logging.getLogger(__name__)

ROLLING_SIGNALS: Mapping[Signal, Signal] = {
    Signal.RAIN: Signal.RAIN24H,
    Signal.TEMPERATURE: Signal.TEMP24H,
}


def trailing_mean(
    values: Iterable[float], window: int = 24, fill_value: float = 0.0
) -> np.ndarray:
    """
    Simple moving average over the last *window* samples.

    The output has the same length as the input. Positions ``0 .. window-2``
    hold *fill_value*; position ``i >= window-1`` holds the mean of inputs
    ``i-window+1 .. i`` (``NaN`` if any of them is missing).
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    s = pd.Series(np.asarray(values, dtype=float))
    if len(s) < window:
        warnings.warn(
            f"Series of {len(s)} samples is shorter than the rolling window ({window}); "
            f"all values set to {fill_value}.",
            InsufficientHistoryWarning,
            stacklevel=2,
        )
    out = np.array(s.rolling(window, min_periods=window).mean(), dtype=float)
    out[: window - 1] = fill_value
    return out


def add_rolling_signals(
    df: pd.DataFrame,
    *,
    window: int = 24,
    fill_value: float = 0.0,
    mapping: Mapping[Signal, Signal] = ROLLING_SIGNALS,
) -> pd.DataFrame:
    """
    Append rolling-mean signals to a cleaned long table.

    Each source series (per station) must already be sorted and free of
    duplicate timestamps. The original signals are kept; the aggregates are
    added as new rows with the derived signal name.
    """
    blocks = [df[LONG_COLUMNS]]
    for source, derived in mapping.items():
        part = df[df["signal"] == source.value]
        for station, g in part.groupby("station", observed=True, sort=True):
            if not g["timestamp"].is_monotonic_increasing or g["timestamp"].duplicated().any():
                raise ValueError(
                    f"{station}/{source.value}: timestamps must be strictly increasing "
                    "before rolling; clean the series first."
                )
            agg = g[["timestamp", "station"]].copy()
            agg["signal"] = derived.value
            agg["value"] = trailing_mean(g["value"].to_numpy(), window, fill_value)
            blocks.append(agg[LONG_COLUMNS])
            logger.debug("%s: %s -> %s (%d rows)", station, source.value, derived.value, len(agg))

    out = pd.concat(blocks, ignore_index=True)
    for col in ("station", "signal"):
        out[col] = out[col].astype(str).astype("category")
    return out.sort_values(["station", "signal", "timestamp"], kind="mergesort").reset_index(drop=True)


__all__ = ["ROLLING_SIGNALS", "trailing_mean", "add_rolling_signals"]
