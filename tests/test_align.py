# tests/test_align.py
import numpy as np
import pandas as pd
import pytest

from RIVERlagPy.align import (
    WideTable,
    align_long,
    build_wide_table,
    overlap_window,
    pivot_wide,
)
from RIVERlagPy.errors import AlignmentError
from RIVERlagPy.loader import long_frame
from RIVERlagPy.schema import ColumnKey, Signal

from conftest import make_long


def _groups_long():
    """Four signal groups with staggered spans (level/flow at 15 min)."""
    level = make_long({("A", "level"): np.arange(40.0)}, start="2020-01-01 00:00", freq="15min")
    flow = make_long({("A", "flow"): np.arange(40.0)}, start="2020-01-01 01:00", freq="15min")
    rain = make_long({("R", "rain24h"): np.arange(12.0)}, start="2019-12-31 23:00")
    temp = make_long({("R", "temp24h"): np.arange(12.0)}, start="2020-01-01 02:00")
    return pd.concat([level, flow, rain, temp], ignore_index=True)


# ---------------------------------------------------------------------
# Overlap window
# ---------------------------------------------------------------------


def test_overlap_window_is_tightest_span():
    start, end = overlap_window(_groups_long())
    # latest start: temp24h 02:00; earliest end: level 09:45
    assert start == pd.Timestamp("2020-01-01 02:00", tz="UTC")
    assert end == pd.Timestamp("2020-01-01 09:45", tz="UTC")


def test_overlap_window_missing_group_raises():
    df = _groups_long()
    df = df[df["signal"] != "temp24h"]
    with pytest.raises(AlignmentError, match="temp24h"):
        overlap_window(df)


def test_overlap_window_disjoint_groups_raise():
    df = pd.concat(
        [
            make_long({("A", "level"): [1.0, 2.0]}, start="2020-01-01"),
            make_long({("A", "flow"): [1.0, 2.0]}, start="2021-01-01"),
        ],
        ignore_index=True,
    )
    with pytest.raises(AlignmentError) as err:
        overlap_window(df, [Signal.LEVEL, Signal.FLOW])
    assert set(err.value.bounds) == {"level", "flow"}


def test_align_long_clips_and_keeps_on_the_hour_samples():
    out = align_long(_groups_long())
    assert out["timestamp"].min() >= pd.Timestamp("2020-01-01 02:00", tz="UTC")
    assert out["timestamp"].max() <= pd.Timestamp("2020-01-01 09:45", tz="UTC")

    fine = out[out["signal"].isin(["level", "flow"])]
    assert (fine["timestamp"].dt.minute == 0).all()
    # level 00:00..09:45 at 15 min -> on-the-hour 02:00..09:00
    assert (out["signal"] == "level").sum() == 8


# ---------------------------------------------------------------------
# Pivot
# ---------------------------------------------------------------------


def test_pivot_two_stations_two_signals():
    df = make_long(
        {
            ("A", "level"): [1.0, 2.0, 3.0, 4.0, 5.0],
            ("A", "flow"): [10.0, 20.0, 30.0, 40.0, 50.0],
            ("B", "level"): [6.0, 7.0, 8.0, 9.0, 10.0],
            ("B", "flow"): [60.0, 70.0, 80.0, 90.0, 100.0],
        }
    )
    wide = pivot_wide(df)
    frame = wide.to_frame()
    assert frame.shape == (5, 5)
    assert frame.columns[0] == "timestamp"
    assert wide.frame.shape[1] == 4
    assert not frame.isna().any().any()
    assert wide.column(ColumnKey("B", Signal.FLOW)).tolist() == [60.0, 70.0, 80.0, 90.0, 100.0]


def test_pivot_preserves_information_and_fills_absent_combinations():
    df = pd.concat(
        [
            make_long({("A", "level"): [1.0, 2.0, 3.0]}),
            make_long({("B", "flow"): [7.0]}, start="2020-01-01 01:00"),
        ],
        ignore_index=True,
    )
    wide = pivot_wide(df, fill_value=0.0)

    for _, row in df.iterrows():
        key = ColumnKey(str(row["station"]), Signal.parse(str(row["signal"])))
        assert wide.frame.loc[row["timestamp"], wide.schema.column(key)] == row["value"]
    assert wide.column(ColumnKey("B", Signal.FLOW)).tolist() == [0.0, 7.0, 0.0]
    assert wide.frame.index.is_unique


def test_pivot_keeps_present_missing_values():
    df = make_long({("A", "level"): [1.0, np.nan], ("B", "level"): [1.0]})
    wide = pivot_wide(df)
    a = wide.column(ColumnKey("A", Signal.LEVEL))
    b = wide.column(ColumnKey("B", Signal.LEVEL))
    assert np.isnan(a.iloc[1])
    assert b.iloc[1] == 0.0


def test_pivot_rejects_duplicate_observations():
    df = make_long({("A", "level"): [1.0, 2.0]})
    with pytest.raises(ValueError, match="duplicated"):
        pivot_wide(pd.concat([df, df.iloc[[0]]], ignore_index=True))


def test_wide_table_validates_index_and_columns():
    df = make_long({("A", "level"): [1.0, 2.0]})
    wide = pivot_wide(df)
    with pytest.raises(ValueError):
        WideTable(wide.frame.iloc[::-1], wide.schema)
    with pytest.raises(ValueError):
        WideTable(wide.frame.rename(columns={"A_level": "x"}), wide.schema)


def test_build_wide_table_columns_follow_present_pairs():
    df = pd.concat(
        [
            _groups_long(),
            long_frame(
                [{"timestamp": "2020-01-01 03:00", "station": "R", "signal": "rain", "value": 1.0}]
            ),
        ],
        ignore_index=True,
    )
    wide = build_wide_table(df)
    assert set(wide.schema.keys()) == {
        ColumnKey("A", Signal.LEVEL),
        ColumnKey("A", Signal.FLOW),
        ColumnKey("R", Signal.RAIN24H),
        ColumnKey("R", Signal.TEMP24H),
    }
    assert len(wide) == 8
