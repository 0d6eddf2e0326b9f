# tests/test_pipeline.py
import os

import numpy as np
import pandas as pd
import pytest

from RIVERlagPy.__main__ import main
from RIVERlagPy.config import PipelineConfig
from RIVERlagPy.errors import ParseError
from RIVERlagPy.export import read_snapshot
from RIVERlagPy.models import load_model
from RIVERlagPy.pipeline import OUTPUT_FILES, run_pipeline
from RIVERlagPy.schema import ColumnKey, Signal

N_DAYS = 20
RAIN_HEADER = "STATIONS_ID;MESS_DATUM;  QN_8;  R1;RS_IND;WRTR;eor\n"
TEMP_HEADER = "STATIONS_ID;MESS_DATUM;QN_9;TT_TU;RF_TU;eor\n"


def _gauge_text(values):
    ts = pd.date_range("2020-01-01 00:00", periods=len(values), freq="15min")
    lines = []
    for t, v in zip(ts, values):
        value = "NULL" if np.isnan(v) else f"{v:.3f}"
        lines.append(f"{t:%Y%m%d%H%M%S} {value}\n")
    return "".join(lines)


def _hourly_text(header, values, template):
    ts = pd.date_range("2020-01-01 00:00", periods=len(values), freq="h")
    return header + "".join(template.format(t=f"{t:%Y%m%d%H}", v=v) for t, v in zip(ts, values))


@pytest.fixture
def gauge_dir(tmp_path):
    """
    Twenty days of synthetic gauges: OBERHOF level leads KALKOFEN level by
    12 hours; JENA provides hourly rain and temperature.
    """
    rng = np.random.default_rng(1)
    n15 = N_DAYS * 96
    lead = 48
    k = np.arange(n15 + lead)
    base = 200.0 + 30.0 * np.sin(2 * np.pi * k / 288.0) + rng.normal(0, 1.0, size=k.size)

    kalkofen_level = 0.9 * base[:-lead] + 10.0
    oberhof_level = base[lead:].copy()
    kalkofen_flow = np.abs(rng.normal(5.0, 1.0, size=n15)) + 1.0
    oberhof_flow = np.abs(rng.normal(8.0, 1.0, size=n15)) + 1.0

    kalkofen_level[500] = np.nan
    oberhof_level[700] = 5000.0
    kalkofen_flow[300] = -5.0

    n_hours = N_DAYS * 24
    rain = rng.gamma(0.5, 1.0, size=n_hours)
    rain[100] = -999.0
    temp = 5.0 + 5.0 * np.sin(2 * np.pi * np.arange(n_hours) / 24.0)
    temp[50] = -999.0

    d = tmp_path / "raw"
    d.mkdir()
    (d / "Kalkofen_W15.txt").write_text(_gauge_text(kalkofen_level), encoding="utf-8")
    (d / "Kalkofen_Q15.txt").write_text(_gauge_text(kalkofen_flow), encoding="utf-8")
    (d / "Oberhof_W15.txt").write_text(_gauge_text(oberhof_level), encoding="utf-8")
    (d / "Oberhof_Q15.txt").write_text(_gauge_text(oberhof_flow), encoding="utf-8")
    (d / "Jena_rr_stunde.txt").write_text(
        _hourly_text(RAIN_HEADER, rain, "2444;{t};    3;{v:8.2f};   0;   -999;eor\n"),
        encoding="utf-8",
    )
    (d / "Jena_tu_stunde.txt").write_text(
        _hourly_text(TEMP_HEADER, temp, "2444;{t};3;{v:6.1f};  90.0;eor\n"),
        encoding="utf-8",
    )
    (d / "README.md").write_text("gauge export\n", encoding="utf-8")
    return d


@pytest.fixture
def fast_config():
    return PipelineConfig(
        target_station="KALKOFEN",
        rf_params={"n_estimators": 10, "random_state": 0},
        tree_params={"random_state": 0},
        mlp_params={"hidden_layer_sizes": (5,), "max_iter": 200, "random_state": 0},
    )


def test_run_pipeline_end_to_end(gauge_dir, tmp_path, fast_config):
    out_dir = tmp_path / "out"
    model_dir = tmp_path / "models"
    result = run_pipeline(
        str(gauge_dir), str(out_dir), fast_config, model_dir=str(model_dir), show_progress=False
    )

    # wide table: 20 days hourly, 3 stations
    assert len(result.wide) == N_DAYS * 24
    assert set(result.wide.schema.keys()) == {
        ColumnKey("KALKOFEN", Signal.LEVEL),
        ColumnKey("KALKOFEN", Signal.FLOW),
        ColumnKey("OBERHOF", Signal.LEVEL),
        ColumnKey("OBERHOF", Signal.FLOW),
        ColumnKey("JENA", Signal.RAIN24H),
        ColumnKey("JENA", Signal.TEMP24H),
    }
    assert not result.wide.frame.isna().any().any()
    assert (result.wide.column(ColumnKey("OBERHOF", Signal.LEVEL)) <= 1000).all()
    assert (result.wide.column(ColumnKey("KALKOFEN", Signal.FLOW)) >= 0).all()

    # five base columns x five horizons, target never lagged
    assert len(result.dataset.predictors) == 25
    assert ColumnKey("KALKOFEN", Signal.LEVEL, 72) not in result.lagged.schema
    assert len(result.dataset) == N_DAYS * 24 - 168
    assert len(result.split.validation) == 72
    assert len(result.split.train) == round(0.7 * (len(result.dataset) - 72))
    assert result.naive_column == ColumnKey("OBERHOF", Signal.LEVEL, 72)

    scores = result.scores
    assert len(scores) == 5 * 3
    assert (scores["status"] == "ok").all()
    assert set(scores["backend"]) == {"naive", "linear", "tree", "forest", "network"}
    assert scores["RMSE"].notna().all()

    best = result.travel_times.dropna().sort_values("corr").iloc[-1]
    assert best["station"] == "OBERHOF"
    assert best["lag"] == 12

    report = result.cleaning_report
    repaired = report.set_index(["station", "signal", "rule"])["n_repaired"]
    assert repaired[("KALKOFEN", "level", "value >= 0")] == 1
    assert repaired[("OBERHOF", "level", "value <= 1000")] == 1
    assert repaired[("JENA", "rain", "value >= 0")] == 1

    for name in OUTPUT_FILES.values():
        assert os.path.exists(out_dir / name)
    written = read_snapshot(str(out_dir / OUTPUT_FILES["dataset"]))
    assert len(written) == len(result.dataset)
    assert written.columns[0] == "timestamp"
    assert os.path.exists(model_dir / "forest.joblib")
    assert load_model(str(model_dir / "naive.joblib")).backend == "naive"


def test_parse_error_aborts_before_writing(gauge_dir, tmp_path, fast_config):
    (gauge_dir / "Broken_W15.txt").write_text("2020-01-01 1.0\n", encoding="utf-8")
    out_dir = tmp_path / "out"
    with pytest.raises(ParseError) as err:
        run_pipeline(str(gauge_dir), str(out_dir), fast_config, show_progress=False)
    assert "Broken_W15.txt" in str(err.value)
    assert not out_dir.exists()


def test_unknown_target_station(gauge_dir, tmp_path, fast_config):
    with pytest.raises(KeyError):
        run_pipeline(
            str(gauge_dir), None, fast_config.replace(target_station="NOWHERE"), show_progress=False
        )


def test_command_line_entry_point(gauge_dir, tmp_path, fast_config):
    cfg_path = tmp_path / "cfg.json"
    fast_config.save(str(cfg_path))
    out_dir = tmp_path / "cli"
    code = main(
        ["--input", str(gauge_dir), "--output", str(out_dir), "--config", str(cfg_path), "--no-progress"]
    )
    assert code == 0
    scores = read_snapshot(str(out_dir / OUTPUT_FILES["scores"]))
    assert len(scores) == 15

    assert main(["--input", str(tmp_path / "missing"), "--output", str(out_dir)]) == 1
