# src/RIVERlagPy/align.py
# SPDX-License-Identifier: MIT
"""
Alignment of cleaned series and reshaping into the wide feature table.

Steps
-----
1. :func:`overlap_window` – common time span of the required signal groups.
2. :func:`align_long` – clip to that span, keep on-the-hour samples of the
   15-minute signals and restrict to the merged signal set.
3. :func:`pivot_wide` – one row per timestamp, one column per
   (station, signal) pair present in the long table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import pandas as pd

from .errors import AlignmentError
from .loader import LONG_COLUMNS
from .schema import ColumnKey, FeatureSchema, Signal

logger = logging.getLogger(__name__)

DEFAULT_GROUPS: Tuple[Signal, ...] = (Signal.LEVEL, Signal.FLOW, Signal.RAIN24H, Signal.TEMP24H)
SUBHOURLY_SIGNALS: Tuple[Signal, ...] = (Signal.LEVEL, Signal.FLOW)

_SIGNAL_ORDER = {s.value: i for i, s in enumerate(Signal)}


@dataclass(frozen=True, eq=False)
class WideTable:
    """
    Wide feature table plus its column schema.

    ``frame`` is indexed by a unique, ascending ``timestamp`` index and has
    exactly the columns listed in ``schema`` (same order).
    """

    frame: pd.DataFrame
    schema: FeatureSchema

    def __post_init__(self) -> None:
        idx = self.frame.index
        if not idx.is_unique or not idx.is_monotonic_increasing:
            raise ValueError("Wide table index must be unique and sorted ascending.")
        if list(self.frame.columns) != self.schema.columns():
            raise ValueError("Wide table columns do not match its schema.")

    def column(self, key: ColumnKey) -> pd.Series:
        return self.frame[self.schema.column(key)]

    def subset(self, keys: Sequence[ColumnKey]) -> pd.DataFrame:
        return self.frame[self.schema.columns(keys)].copy()

    def to_frame(self) -> pd.DataFrame:
        """Copy with ``timestamp`` as a regular first column."""
        return self.frame.reset_index()

    def __len__(self) -> int:
        return len(self.frame)


# ---------------------------------------------------------------------
# Overlap window
# ---------------------------------------------------------------------


def overlap_window(
    df: pd.DataFrame, groups: Iterable[Signal] = DEFAULT_GROUPS
) -> Tuple[pd.Timestamp, pd.Timestamp]:
    """
    Tightest window covered by every signal group.

    ``start`` is the latest group minimum and ``end`` the earliest group
    maximum, each group pooling all stations of that signal.

    Raises
    ------
    AlignmentError
        If a group has no observations or the window is empty.
    """
    bounds = {}
    for sig in groups:
        sig = Signal.parse(sig)
        ts = df.loc[df["signal"] == sig.value, "timestamp"]
        if ts.empty:
            raise AlignmentError(
                f"alignment: signal group '{sig.value}' has no observations", bounds
            )
        bounds[sig.value] = (ts.min(), ts.max())
    if not bounds:
        raise AlignmentError("alignment: no signal groups given")

    start = max(lo for lo, _ in bounds.values())
    end = min(hi for _, hi in bounds.values())
    if start > end:
        raise AlignmentError(
            f"alignment: no common time window (latest start {start}, earliest end {end})",
            bounds,
        )
    logger.info("Overlap window %s .. %s", start, end)
    return start, end


# ---------------------------------------------------------------------
# Long-format alignment
# ---------------------------------------------------------------------


def on_the_hour(ts: pd.Series) -> pd.Series:
    """Mask of timestamps whose minute component is 0."""
    return ts.dt.minute == 0


def align_long(
    df: pd.DataFrame,
    *,
    groups: Iterable[Signal] = DEFAULT_GROUPS,
    subhourly: Iterable[Signal] = SUBHOURLY_SIGNALS,
    merge_signals: Optional[Iterable[Signal]] = None,
) -> pd.DataFrame:
    """
    Clip a cleaned long table to the overlap window and align its grain.

    Parameters
    ----------
    df :
        Long table including the rolling aggregates.
    groups :
        Signal groups bounding the window.
    subhourly :
        Signals reduced to on-the-hour samples.
    merge_signals :
        Signals kept for the wide table (all when ``None``).
    """
    start, end = overlap_window(df, groups)
    out = df[(df["timestamp"] >= start) & (df["timestamp"] <= end)]

    sub_values = [Signal.parse(s).value for s in subhourly]
    fine = out["signal"].isin(sub_values)
    out = out[~fine | on_the_hour(out["timestamp"])]

    if merge_signals is not None:
        keep = [Signal.parse(s).value for s in merge_signals]
        out = out[out["signal"].isin(keep)]

    if out.empty:
        raise AlignmentError("alignment: no observations left after clipping to the window")

    out = out[LONG_COLUMNS].copy()
    for col in ("station", "signal"):
        out[col] = out[col].astype(str).astype("category")
    return out.sort_values(["station", "signal", "timestamp"], kind="mergesort").reset_index(drop=True)


# ---------------------------------------------------------------------
# Pivot
# ---------------------------------------------------------------------


def pivot_wide(df: pd.DataFrame, fill_value: float = 0.0) -> WideTable:
    """
    Reshape a long table into a :class:`WideTable`.

    Combinations of (timestamp, station, signal) absent from *df* become
    *fill_value*; observations that are present keep their value, including
    ``NaN``.
    """
    if df.empty:
        raise ValueError("Cannot pivot an empty long table.")
    stations = df["station"].astype(str)
    signals = df["signal"].astype(str)
    dup = pd.DataFrame({"t": df["timestamp"], "st": stations, "sig": signals}).duplicated()
    if dup.any():
        raise ValueError(
            f"Long table has {int(dup.sum())} duplicated (timestamp, station, signal) rows."
        )

    pairs = sorted(set(zip(stations, signals)), key=lambda p: (p[0], _SIGNAL_ORDER[p[1]]))
    keys = [ColumnKey(st, Signal.parse(sig)) for st, sig in pairs]
    schema = FeatureSchema.from_keys(keys)
    names = {p: schema.column(k) for p, k in zip(pairs, keys)}

    column = [names[p] for p in zip(stations, signals)]
    s = pd.Series(
        df["value"].to_numpy(dtype=float),
        index=pd.MultiIndex.from_arrays([df["timestamp"], column], names=["timestamp", "column"]),
    )
    wide = s.unstack("column")
    present = pd.Series(True, index=s.index).unstack("column", fill_value=False)
    wide = wide.where(present.astype(bool), fill_value)
    wide = wide.reindex(columns=schema.columns()).sort_index()
    wide.index.name = "timestamp"
    wide.columns.name = None
    logger.info("Wide table: %d rows x %d columns", len(wide), wide.shape[1])
    return WideTable(wide, schema)


def build_wide_table(
    df: pd.DataFrame,
    *,
    groups: Iterable[Signal] = DEFAULT_GROUPS,
    subhourly: Iterable[Signal] = SUBHOURLY_SIGNALS,
    merge_signals: Optional[Iterable[Signal]] = DEFAULT_GROUPS,
    fill_value: float = 0.0,
) -> WideTable:
    """:func:`align_long` followed by :func:`pivot_wide`."""
    aligned = align_long(df, groups=groups, subhourly=subhourly, merge_signals=merge_signals)
    return pivot_wide(aligned, fill_value=fill_value)


__all__ = [
    "DEFAULT_GROUPS",
    "SUBHOURLY_SIGNALS",
    "WideTable",
    "overlap_window",
    "on_the_hour",
    "align_long",
    "pivot_wide",
    "build_wide_table",
]
