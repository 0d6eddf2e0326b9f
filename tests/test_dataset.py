# tests/test_dataset.py
import numpy as np
import pytest

from RIVERlagPy.dataset import DatasetSplit, build_model_dataset, split_dataset
from RIVERlagPy.errors import InsufficientHistoryWarning
from RIVERlagPy.lags import add_lags
from RIVERlagPy.schema import ColumnKey, Signal

TARGET = ColumnKey("TARGET", Signal.LEVEL)
UP = ColumnKey("UP", Signal.LEVEL)


# ---------------------------------------------------------------------
# build_model_dataset
# ---------------------------------------------------------------------


def test_dataset_keeps_complete_cases(two_station_wide):
    table = add_lags(two_station_wide, [UP], [12, 24])
    ds = build_model_dataset(table, TARGET, [UP.lagged(12), UP.lagged(24)])
    assert len(ds) == 300 - 24
    assert not ds.frame.isna().any().any()
    assert ds.frame.index.is_monotonic_increasing
    assert ds.predictor_columns == table.schema.columns([UP.lagged(12), UP.lagged(24)])
    assert ds.X().shape == (276, 2)
    np.testing.assert_allclose(ds.y(), table.column(TARGET).iloc[24:].to_numpy())


def test_dataset_drops_rows_with_missing_target(two_station_wide):
    table = add_lags(two_station_wide, [UP], [12])
    table.frame.iloc[100, table.frame.columns.get_loc(table.schema.column(TARGET))] = np.nan
    ds = build_model_dataset(table, TARGET, [UP.lagged(12)])
    assert len(ds) == 300 - 12 - 1


def test_dataset_rejects_lag_zero_predictors(two_station_wide):
    with pytest.raises(ValueError, match="Lag-0"):
        build_model_dataset(two_station_wide, TARGET, [UP])


def test_dataset_rejects_lagged_target_and_empty_predictors(two_station_wide):
    table = add_lags(two_station_wide, [UP], [12])
    with pytest.raises(ValueError):
        build_model_dataset(table, UP.lagged(12), [UP.lagged(12)])
    with pytest.raises(ValueError):
        build_model_dataset(table, TARGET, [])


def test_dataset_unknown_predictor(two_station_wide):
    with pytest.raises(KeyError):
        build_model_dataset(two_station_wide, TARGET, [UP.lagged(6)])


def test_dataset_without_complete_rows(two_station_wide):
    with pytest.warns(InsufficientHistoryWarning):
        table = add_lags(two_station_wide, [UP], [400])
    with pytest.raises(ValueError, match="No complete rows"):
        build_model_dataset(table, TARGET, [UP.lagged(400)])


# ---------------------------------------------------------------------
# split_dataset
# ---------------------------------------------------------------------


@pytest.mark.parametrize("n_rows", [73, 100, 312, 1000])
def test_split_is_disjoint_and_covering(n_rows):
    split = split_dataset(n_rows)
    parts = [split.train, split.test, split.validation]
    joined = np.concatenate(parts)
    assert len(joined) == n_rows
    assert sorted(joined.tolist()) == list(range(n_rows))

    np.testing.assert_array_equal(split.validation, np.arange(n_rows - 72, n_rows))
    eligible = n_rows - 72
    assert len(split.train) == max(int(round(0.7 * eligible)), 1)
    assert (split.train < n_rows - 72).all()
    assert (split.test < n_rows - 72).all()


def test_split_is_reproducible():
    a = split_dataset(500, random_state=7)
    b = split_dataset(500, random_state=7)
    c = split_dataset(500, random_state=8)
    np.testing.assert_array_equal(a.train, b.train)
    assert not np.array_equal(a.train, c.train)


def test_split_custom_sizes():
    split = split_dataset(110, validation_size=10, train_fraction=0.5)
    assert len(split.validation) == 10
    assert len(split.train) == 50
    assert len(split.test) == 50


def test_split_needs_more_rows_than_validation():
    with pytest.raises(ValueError, match="more than 72"):
        split_dataset(72)
    with pytest.raises(ValueError):
        split_dataset(100, train_fraction=1.0)


def test_dataset_split_rejects_overlap():
    with pytest.raises(ValueError, match="overlap"):
        DatasetSplit(np.array([0, 1]), np.array([1, 2]), np.array([3]), 4)
    with pytest.raises(ValueError, match="cover"):
        DatasetSplit(np.array([0]), np.array([1]), np.array([3]), 4)
