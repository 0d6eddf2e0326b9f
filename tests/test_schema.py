# tests/test_schema.py
import pytest

from RIVERlagPy.schema import ColumnKey, FeatureSchema, Signal


def test_signal_parse_accepts_names_and_values():
    assert Signal.parse("level") is Signal.LEVEL
    assert Signal.parse("RAIN24H") is Signal.RAIN24H
    assert Signal.parse(Signal.FLOW) is Signal.FLOW
    with pytest.raises(ValueError):
        Signal.parse("humidity")


def test_column_key_normalises_and_rejects_negative_lag():
    k = ColumnKey("kalkofen", "level")
    assert k.station == "KALKOFEN"
    assert k.signal is Signal.LEVEL
    assert k.lagged(72) == ColumnKey("KALKOFEN", Signal.LEVEL, 72)
    assert k.lagged(72).base == k
    with pytest.raises(ValueError):
        ColumnKey("A", Signal.LEVEL, -1)


def test_schema_lookup_both_ways_and_selection():
    keys = [
        ColumnKey("A", Signal.LEVEL),
        ColumnKey("A", Signal.LEVEL, 72),
        ColumnKey("B", Signal.FLOW, 96),
    ]
    schema = FeatureSchema.from_keys(keys)

    assert len(schema) == 3
    for k in keys:
        assert schema.key(schema.column(k)) == k
    assert schema.select(station="a") == keys[:2]
    assert schema.select(lag=0) == keys[:1]
    assert schema.select(lags=[72, 96]) == keys[1:]
    assert schema.select(signal="flow") == keys[2:]
    assert schema.stations() == ["A", "B"]


def test_schema_extended_returns_new_instance():
    base = FeatureSchema.from_keys([ColumnKey("A", Signal.LEVEL)])
    bigger = base.extended([ColumnKey("A", Signal.LEVEL, 24), ColumnKey("A", Signal.LEVEL)])
    assert len(base) == 1
    assert len(bigger) == 2
    assert ColumnKey("A", Signal.LEVEL, 24) in bigger


def test_schema_rejects_name_collisions():
    with pytest.raises(ValueError):
        FeatureSchema({ColumnKey("A", Signal.LEVEL): "x", ColumnKey("B", Signal.LEVEL): "x"})
    with pytest.raises(KeyError):
        FeatureSchema().column(ColumnKey("A", Signal.LEVEL))
