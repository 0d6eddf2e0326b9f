# src/RIVERlagPy/config.py
# SPDX-License-Identifier: MIT
"""
Run configuration for the gauge forecasting pipeline.

A :class:`PipelineConfig` holds every tunable of a run. It can be built in
code or loaded from a YAML / JSON file::

    cfg = PipelineConfig.load("config/pipeline.yaml")
    cfg = cfg.replace(validation_size=96)
"""

from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .schema import ColumnKey, Signal


def _default_rf_params() -> Dict[str, Any]:
    return dict(n_estimators=200, max_depth=None, random_state=42, n_jobs=-1)


def _default_tree_params() -> Dict[str, Any]:
    return dict(max_depth=None, random_state=42)


def _default_mlp_params() -> Dict[str, Any]:
    return dict(hidden_layer_sizes=(10,), max_iter=2000, random_state=42)


@dataclass(frozen=True)
class PipelineConfig:
    """Settings of one pipeline run.

    Attributes
    ----------
    station_aliases :
        Raw station token -> canonical station name (both uppercase).
    source_timezone :
        Timezone of the raw timestamps; they are converted to UTC.
    rolling_window, rolling_fill :
        Trailing window (samples) and fill value of RAIN24H / TEMP24H.
    merge_signals :
        Signals carried into the wide table.
    alignment_signals :
        Signal groups whose common time span bounds the wide table.
    subhourly_signals :
        Signals reduced to on-the-hour samples before merging.
    pivot_fill :
        Value of (timestamp, station, signal) combinations absent from the
        long table.
    target_station, target_signal :
        Column to forecast.
    exclude_stations :
        Stations whose signals never become predictors.
    horizon_days, samples_per_day :
        Forecast-horizon lag family (``day * samples_per_day`` samples).
    forecast_horizon_days :
        Days ahead of the forecast; only lags at least this long are used.
    exploratory_lags :
        Lags (samples) scanned by the travel-time correlation table.
    naive_station, naive_signal, naive_lag :
        Column copied by the naive baseline. Defaults to the first
        predictor of the shortest usable lag.
    validation_size, train_fraction, random_state :
        Dataset split.
    backends :
        Names of the regression backends to evaluate.
    rf_params, tree_params, mlp_params :
        Keyword arguments of the scikit-learn estimators.
    snapshot_sep, snapshot_decimal :
        Delimiter and decimal mark of written tables.
    n_jobs :
        Parallel workers for per-series cleaning (joblib).
    """

    station_aliases: Dict[str, str] = field(default_factory=dict)
    source_timezone: str = "UTC"

    rolling_window: int = 24
    rolling_fill: float = 0.0

    merge_signals: Tuple[str, ...] = ("level", "flow", "rain24h", "temp24h")
    alignment_signals: Tuple[str, ...] = ("level", "flow", "rain24h", "temp24h")
    subhourly_signals: Tuple[str, ...] = ("level", "flow")
    pivot_fill: float = 0.0

    target_station: Optional[str] = None
    target_signal: str = "level"
    exclude_stations: Tuple[str, ...] = ()
    horizon_days: Tuple[int, ...] = (3, 4, 5, 6, 7)
    samples_per_day: int = 24
    forecast_horizon_days: int = 3
    exploratory_lags: Tuple[int, ...] = tuple(range(6, 73, 6))

    naive_station: Optional[str] = None
    naive_signal: Optional[str] = None
    naive_lag: Optional[int] = None

    validation_size: int = 72
    train_fraction: float = 0.7
    random_state: int = 42

    backends: Tuple[str, ...] = ("naive", "linear", "tree", "forest", "network")
    rf_params: Dict[str, Any] = field(default_factory=_default_rf_params)
    tree_params: Dict[str, Any] = field(default_factory=_default_tree_params)
    mlp_params: Dict[str, Any] = field(default_factory=_default_mlp_params)

    snapshot_sep: str = ";"
    snapshot_decimal: str = ","

    n_jobs: int = 1

    def __post_init__(self) -> None:
        # YAML / JSON give lists
        for name in (
            "merge_signals",
            "alignment_signals",
            "subhourly_signals",
            "exclude_stations",
            "horizon_days",
            "exploratory_lags",
            "backends",
        ):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        object.__setattr__(
            self,
            "station_aliases",
            {str(k).upper(): str(v).upper() for k, v in self.station_aliases.items()},
        )
        if self.rolling_window < 1:
            raise ValueError("rolling_window must be >= 1.")
        if not 0.0 < self.train_fraction < 1.0:
            raise ValueError("train_fraction must be in (0, 1).")
        if self.validation_size < 1:
            raise ValueError("validation_size must be >= 1.")
        if self.snapshot_sep == self.snapshot_decimal:
            raise ValueError("snapshot_sep and snapshot_decimal must differ.")
        for name in ("merge_signals", "alignment_signals", "subhourly_signals"):
            for s in getattr(self, name):
                Signal.parse(s)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def target_key(self) -> ColumnKey:
        if not self.target_station:
            raise ValueError("target_station is not configured.")
        return ColumnKey(self.target_station, Signal.parse(self.target_signal))

    @property
    def naive_key(self) -> Optional[ColumnKey]:
        if self.naive_station is None:
            return None
        signal = self.naive_signal or self.target_signal
        lag = self.naive_lag
        if lag is None:
            lag = self.forecast_horizon_days * self.samples_per_day
        return ColumnKey(self.naive_station, Signal.parse(signal), int(lag))

    def signals(self, name: str) -> List[Signal]:
        """Parse one of the signal tuple fields into :class:`Signal` members."""
        return [Signal.parse(s) for s in getattr(self, name)]

    def replace(self, **changes: Any) -> "PipelineConfig":
        return dataclasses.replace(self, **changes)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineConfig":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {unknown}")
        return cls(**d)

    @staticmethod
    def load(path: str) -> "PipelineConfig":
        """Load a configuration from a ``.yaml``/``.yml`` or ``.json`` file."""
        ext = os.path.splitext(str(path))[1].lower()
        with open(path, "r", encoding="utf-8") as f:
            if ext in (".yaml", ".yml"):
                d = yaml.safe_load(f) or {}
            elif ext == ".json":
                d = json.load(f)
            else:
                raise ValueError(f"Unsupported configuration extension: {ext}")
        if not isinstance(d, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping.")
        return PipelineConfig.from_dict(d)

    def save(self, path: str) -> None:
        """Save the configuration as JSON."""
        os.makedirs(os.path.dirname(str(path)) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(dataclasses.asdict(self), f, ensure_ascii=False, indent=2)


__all__ = ["PipelineConfig"]
