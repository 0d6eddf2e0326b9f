# tests/conftest.py
import numpy as np
import pandas as pd
import pytest

from RIVERlagPy.align import WideTable
from RIVERlagPy.loader import long_frame
from RIVERlagPy.schema import ColumnKey, FeatureSchema, Signal


def hourly(n: int, start: str = "2020-01-01 00:00") -> pd.DatetimeIndex:
    return pd.date_range(start, periods=n, freq="h", tz="UTC")


def make_long(series: dict, start: str = "2020-01-01 00:00", freq: str = "h") -> pd.DataFrame:
    """
    Long table from ``{(station, signal): values}``; every series starts at
    *start* with step *freq*.
    """
    rows = []
    for (station, signal), values in series.items():
        ts = pd.date_range(start, periods=len(values), freq=freq, tz="UTC")
        for t, v in zip(ts, values):
            rows.append({"timestamp": t, "station": station, "signal": signal, "value": v})
    return long_frame(rows)


def make_wide(columns: dict, n: int) -> WideTable:
    """WideTable from ``{ColumnKey: values}`` on an hourly index of length *n*."""
    schema = FeatureSchema.from_keys(list(columns))
    frame = pd.DataFrame(
        {schema.column(k): np.asarray(v, dtype=float) for k, v in columns.items()},
        index=pd.Index(hourly(n), name="timestamp"),
    )
    return WideTable(frame, schema)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(0)


@pytest.fixture
def two_station_wide(rng) -> WideTable:
    """
    300 hourly rows: upstream level leads the target level by 12 hours,
    plus a flow column for each station.
    """
    n = 300
    up = 100.0 + np.cumsum(rng.normal(size=n + 12))
    target = up[:-12] * 0.8 + 5.0
    return make_wide(
        {
            ColumnKey("TARGET", Signal.LEVEL): target,
            ColumnKey("TARGET", Signal.FLOW): np.abs(rng.normal(10, 2, size=n)),
            ColumnKey("UP", Signal.LEVEL): up[12:],
            ColumnKey("UP", Signal.FLOW): np.abs(rng.normal(20, 3, size=n)),
        },
        n,
    )
