"""
RIVERlagPy
==========

Multi-day water-level forecasting from heterogeneous river-gauge records.

The package turns raw station files (15-minute water level and discharge,
hourly DWD rain and air temperature) into a leakage-free feature matrix and
scores several regression backends on it.

Workflow
--------
1. Loading – :func:`load_raw_files`, :func:`read_raw_file`
2. Cleaning – :func:`clean_long` (rule-triggered forward fill / clamping)
3. Rolling means – :func:`add_rolling_signals` (RAIN24H, TEMP24H)
4. Alignment – :func:`build_wide_table` -> :class:`WideTable`
5. Lags – :func:`add_lags`, :func:`add_forecast_lags`,
   :func:`lag_correlation_table`
6. Modelling – :func:`build_model_dataset`, :func:`split_dataset`,
   :func:`evaluate_backends`

:func:`run_pipeline` chains all of them for a directory of raw files.

Example
-------
    >>> from RIVERlagPy import PipelineConfig, run_pipeline
    >>> cfg = PipelineConfig(target_station="KALKOFEN")
    >>> result = run_pipeline("data/raw", "data/processed", cfg)
    >>> result.scores.query("partition == 'validation'")[["backend", "RMSE"]]
"""

from __future__ import annotations

# Public version (update in sync with pyproject.toml)
__version__ = "0.1.0"

from .errors import (
    RiverLagError,
    ParseError,
    AlignmentError,
    ModelFitError,
    InsufficientHistoryWarning,
)
from .schema import Signal, ColumnKey, FeatureSchema
from .config import PipelineConfig

# ---------------------------------------------------------------------------
# Data preparation
# ---------------------------------------------------------------------------

from .loader import (
    RawFormat,
    RAW_FORMATS,
    detect_format,
    station_from_filename,
    read_raw_file,
    apply_station_aliases,
    discover_raw_files,
    load_raw_files,
    long_frame,
)
from .cleaning import ValidityRule, CLEANING_RULES, forward_fill_invalid, clean_series, clean_long
from .rolling import trailing_mean, add_rolling_signals
from .align import WideTable, overlap_window, align_long, pivot_wide, build_wide_table
from .lags import (
    shift_series,
    add_lags,
    horizon_lags,
    lag_correlation_table,
    travel_time_table,
    best_travel_lag,
    add_forecast_lags,
    forecast_predictors,
)

# ---------------------------------------------------------------------------
# Modelling
# ---------------------------------------------------------------------------

from .dataset import ModelDataset, DatasetSplit, build_model_dataset, split_dataset
from .models import (
    FittedModel,
    RegressionBackend,
    LinearBackend,
    TreeBackend,
    ForestBackend,
    NetworkBackend,
    NaiveBackend,
    make_backend,
    load_model,
)
from .metrics import rmse, nse, kge, regression_metrics
from .harness import evaluate_backends, prediction_table, default_naive_key
from .export import write_snapshot, read_snapshot
from .log import setup_logging, set_warning_policy
from .pipeline import PipelineResult, run_pipeline

__all__ = [
    "__version__",
    # errors
    "RiverLagError",
    "ParseError",
    "AlignmentError",
    "ModelFitError",
    "InsufficientHistoryWarning",
    # schema / config
    "Signal",
    "ColumnKey",
    "FeatureSchema",
    "PipelineConfig",
    # data preparation
    "RawFormat",
    "RAW_FORMATS",
    "detect_format",
    "station_from_filename",
    "read_raw_file",
    "apply_station_aliases",
    "discover_raw_files",
    "load_raw_files",
    "long_frame",
    "ValidityRule",
    "CLEANING_RULES",
    "forward_fill_invalid",
    "clean_series",
    "clean_long",
    "trailing_mean",
    "add_rolling_signals",
    "WideTable",
    "overlap_window",
    "align_long",
    "pivot_wide",
    "build_wide_table",
    "shift_series",
    "add_lags",
    "horizon_lags",
    "lag_correlation_table",
    "travel_time_table",
    "best_travel_lag",
    "add_forecast_lags",
    "forecast_predictors",
    # modelling
    "ModelDataset",
    "DatasetSplit",
    "build_model_dataset",
    "split_dataset",
    "FittedModel",
    "RegressionBackend",
    "LinearBackend",
    "TreeBackend",
    "ForestBackend",
    "NetworkBackend",
    "NaiveBackend",
    "make_backend",
    "load_model",
    "rmse",
    "nse",
    "kge",
    "regression_metrics",
    "evaluate_backends",
    "prediction_table",
    "default_naive_key",
    # I/O and runs
    "write_snapshot",
    "read_snapshot",
    "setup_logging",
    "set_warning_policy",
    "PipelineResult",
    "run_pipeline",
]
