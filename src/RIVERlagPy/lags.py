# src/RIVERlagPy/lags.py
# SPDX-License-Identifier: MIT
"""
Time-shifted feature columns.

Lags are counted in rows of the wide table (hourly grain): a lag ``k``
column holds, at row ``t``, the value observed at row ``t-k``; the first
``k`` rows are missing.

Two uses:

* exploratory lags (6..72 h) correlating an upstream gauge with the target
  to estimate the travel time (:func:`lag_correlation_table`);
* forecast-horizon lags (3..7 days) that become the model predictors
  (:func:`add_forecast_lags`, :func:`forecast_predictors`).
"""

from __future__ import annotations

import logging
import warnings
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from .align import WideTable
from .errors import InsufficientHistoryWarning
from .schema import ColumnKey, FeatureSchema

logger = logging.getLogger(__name__)

EXPLORATORY_LAGS: List[int] = list(range(6, 73, 6))
FORECAST_HORIZON_DAYS: List[int] = [3, 4, 5, 6, 7]


def horizon_lags(days: Iterable[int] = FORECAST_HORIZON_DAYS, samples_per_day: int = 24) -> List[int]:
    """Forecast-horizon lags in samples (``day * samples_per_day``)."""
    return [int(d) * int(samples_per_day) for d in days]


def shift_series(values: pd.Series, lag: int) -> pd.Series:
    """Row ``t`` of the result is row ``t-lag`` of *values* (``NaN`` for ``t < lag``)."""
    lag = int(lag)
    if lag < 0:
        raise ValueError(f"lag must be >= 0, got {lag}")
    if lag == 0:
        return values.copy()
    if lag >= len(values):
        warnings.warn(
            f"Lag {lag} is not shorter than the series ({len(values)} rows); "
            "every row is missing.",
            InsufficientHistoryWarning,
            stacklevel=2,
        )
    return values.astype(float).shift(lag)


def add_lags(table: WideTable, keys: Sequence[ColumnKey], lags: Iterable[int]) -> WideTable:
    """
    Return a new table with lag columns for every key in *keys*.

    Existing columns are kept unchanged; already present lag columns are
    not recomputed. *keys* must be lag-0 keys of *table*.
    """
    lags = sorted({int(k) for k in lags})
    new_cols = {}
    new_keys = []
    for key in keys:
        if key.lag != 0:
            raise ValueError(f"Only base (lag 0) columns can be lagged, got {key}")
        base = table.column(key)
        for lag in lags:
            if lag == 0:
                continue
            lk = key.lagged(lag)
            if lk in table.schema:
                continue
            new_keys.append(lk)
            new_cols[lk] = shift_series(base, lag)

    schema = table.schema.extended(new_keys)
    if not new_keys:
        return WideTable(table.frame.copy(), schema)
    extra = pd.DataFrame({schema.column(k): s for k, s in new_cols.items()}, index=table.frame.index)
    frame = pd.concat([table.frame, extra], axis=1)
    logger.info("Added %d lag columns (lags %s)", len(new_keys), lags)
    return WideTable(frame, schema)


# ---------------------------------------------------------------------
# Exploratory travel-time lags
# ---------------------------------------------------------------------


def lag_correlation_table(
    table: WideTable,
    source: ColumnKey,
    target: ColumnKey,
    lags: Iterable[int] = EXPLORATORY_LAGS,
    *,
    min_overlap: int = 3,
) -> pd.DataFrame:
    """
    Pearson correlation between *target* and *source* shifted by each lag.

    Returns
    -------
    DataFrame
        Columns ``lag``, ``corr``, ``n_overlap``, one row per lag. ``corr``
        is ``NaN`` when fewer than *min_overlap* complete pairs exist or
        either side is constant.
    """
    y = table.column(target).astype(float)
    x = table.column(source).astype(float)
    rows = []
    for lag in lags:
        xs = shift_series(x, lag)
        ok = xs.notna() & y.notna()
        n = int(ok.sum())
        corr = np.nan
        if n >= min_overlap:
            a, b = xs[ok].to_numpy(), y[ok].to_numpy()
            if np.std(a) > 0 and np.std(b) > 0:
                corr = float(np.corrcoef(a, b)[0, 1])
        rows.append({"lag": int(lag), "corr": corr, "n_overlap": n})
    return pd.DataFrame(rows, columns=["lag", "corr", "n_overlap"])


def travel_time_table(
    table: WideTable,
    target: ColumnKey,
    lags: Iterable[int] = EXPLORATORY_LAGS,
    *,
    min_overlap: int = 3,
) -> pd.DataFrame:
    """
    :func:`lag_correlation_table` of every other station measuring the
    target signal against the target.

    Returns
    -------
    DataFrame
        Columns ``station``, ``lag``, ``corr``, ``n_overlap``.
    """
    frames = []
    for source in table.schema.select(signal=target.signal, lag=0):
        if source.station == target.station:
            continue
        t = lag_correlation_table(table, source, target.base, lags, min_overlap=min_overlap)
        t.insert(0, "station", source.station)
        frames.append(t)
    if not frames:
        return pd.DataFrame(columns=["station", "lag", "corr", "n_overlap"])
    return pd.concat(frames, ignore_index=True)


def best_travel_lag(corr_table: pd.DataFrame) -> Optional[int]:
    """Lag with the highest correlation, or ``None`` if all are ``NaN``."""
    valid = corr_table.dropna(subset=["corr"])
    if valid.empty:
        return None
    return int(valid.loc[valid["corr"].idxmax(), "lag"])


# ---------------------------------------------------------------------
# Forecast-horizon lags
# ---------------------------------------------------------------------


def forecast_base_keys(
    schema: FeatureSchema,
    target: ColumnKey,
    exclude_stations: Iterable[str] = (),
) -> List[ColumnKey]:
    """Lag-0 keys that receive forecast lags: all but the target and excluded stations."""
    excluded = {str(s).upper() for s in exclude_stations}
    return [
        k
        for k in schema.select(lag=0)
        if k != target.base and k.station not in excluded
    ]


def add_forecast_lags(
    table: WideTable,
    target: ColumnKey,
    *,
    exclude_stations: Iterable[str] = (),
    days: Iterable[int] = FORECAST_HORIZON_DAYS,
    samples_per_day: int = 24,
) -> WideTable:
    """Lag every eligible base column by each forecast horizon."""
    if target.base not in table.schema:
        raise KeyError(f"Target column not in table: {target}")
    keys = forecast_base_keys(table.schema, target, exclude_stations)
    return add_lags(table, keys, horizon_lags(days, samples_per_day))


def forecast_predictors(
    schema: FeatureSchema,
    *,
    days: Iterable[int] = FORECAST_HORIZON_DAYS,
    samples_per_day: int = 24,
    min_days: Optional[int] = None,
) -> List[ColumnKey]:
    """
    Predictor keys of the forecast-horizon lag family.

    Lag-0 columns are never returned. With *min_days*, only lags of at least
    ``min_days * samples_per_day`` samples are kept (a forecast made
    ``min_days`` ahead cannot use anything more recent).
    """
    family = horizon_lags(days, samples_per_day)
    if min_days is not None:
        family = [lag for lag in family if lag >= int(min_days) * int(samples_per_day)]
    return [k for k in schema.select(lags=family) if k.lag > 0]


__all__ = [
    "EXPLORATORY_LAGS",
    "FORECAST_HORIZON_DAYS",
    "horizon_lags",
    "shift_series",
    "add_lags",
    "lag_correlation_table",
    "travel_time_table",
    "best_travel_lag",
    "forecast_base_keys",
    "add_forecast_lags",
    "forecast_predictors",
]
