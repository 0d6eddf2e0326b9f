# src/RIVERlagPy/export.py
# SPDX-License-Identifier: MIT
"""Semicolon-delimited table snapshots."""

from __future__ import annotations

import os
from typing import Optional

import pandas as pd

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S%z"


def _ensure_parent_dir(path: str) -> None:
    d = os.path.dirname(str(path)) or "."
    os.makedirs(d, exist_ok=True)


def write_snapshot(
    df: pd.DataFrame,
    path: Optional[str],
    *,
    sep: str = ";",
    decimal: str = ",",
    float_format: Optional[str] = None,
) -> Optional[str]:
    """
    Write *df* as a delimited text table, replacing any existing file.

    Parameters
    ----------
    df :
        Table to write. A named (e.g. ``timestamp``) index is written as the
        first column; an unnamed ``RangeIndex`` is dropped.
    path :
        Output ``.csv`` / ``.txt`` path. ``None`` writes nothing.
    sep, decimal :
        Field delimiter and decimal mark (``","`` for German locale tools,
        ``"."`` otherwise). They must differ.

    Returns
    -------
    str or None
        The output path, or ``None`` if nothing was written.
    """
    if path is None:
        return None
    if sep == decimal:
        raise ValueError("sep and decimal must differ.")
    ext = os.path.splitext(str(path))[1].lower()
    if ext not in (".csv", ".txt"):
        raise ValueError(f"Unsupported extension: {ext}")

    out = df
    if out.index.name is not None:
        out = out.reset_index()
    _ensure_parent_dir(path)
    out.to_csv(
        path,
        sep=sep,
        decimal=decimal,
        index=False,
        mode="w",
        date_format=TIMESTAMP_FORMAT,
        float_format=float_format,
        encoding="utf-8",
    )
    return path


def read_snapshot(path: str, *, sep: str = ";", decimal: str = ",") -> pd.DataFrame:
    """Read a table written by :func:`write_snapshot` (``timestamp`` parsed as UTC)."""
    df = pd.read_csv(path, sep=sep, decimal=decimal)
    if "timestamp" in df.columns:
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    return df


__all__ = ["write_snapshot", "read_snapshot"]
