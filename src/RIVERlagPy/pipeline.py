# src/RIVERlagPy/pipeline.py
# SPDX-License-Identifier: MIT
"""
End-to-end batch run.

::

    raw files -> load -> clean -> rolling means -> align/pivot
              -> forecast lags -> model dataset -> split -> backends

Each stage returns a new value; nothing is modified in place. Loading and
alignment errors abort the run before any file is written. Backend
failures are recorded in the score table.

Output files (in ``output_dir``)
--------------------------------
``wide_table.csv``        aligned wide feature table
``lagged_table.csv``      wide table plus forecast-horizon lag columns
``model_dataset.csv``     complete-case target + predictors
``scores.csv``            error metrics per backend and partition
``predictions.csv``       observed target and predictions per row
``cleaning_report.csv``   repairs per station, signal and rule
``travel_times.csv``      lag correlation of upstream gauges with the target
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

import pandas as pd

from .align import WideTable, build_wide_table
from .cleaning import CLEANING_RULES, clean_long
from .config import PipelineConfig
from .dataset import DatasetSplit, ModelDataset, build_model_dataset, split_dataset
from .export import write_snapshot
from .harness import backends_from_config, default_naive_key, evaluate_backends, prediction_table
from .lags import add_forecast_lags, forecast_predictors, travel_time_table
from .loader import discover_raw_files, load_raw_files
from .models import FittedModel
from .rolling import add_rolling_signals
from .schema import ColumnKey

logger = logging.getLogger(__name__)

OUTPUT_FILES = {
    "wide": "wide_table.csv",
    "lagged": "lagged_table.csv",
    "dataset": "model_dataset.csv",
    "scores": "scores.csv",
    "predictions": "predictions.csv",
    "cleaning": "cleaning_report.csv",
    "travel_times": "travel_times.csv",
}


@dataclass(frozen=True, eq=False)
class PipelineResult:
    """Every stage output of one run."""

    raw: pd.DataFrame
    cleaned: pd.DataFrame
    cleaning_report: pd.DataFrame
    wide: WideTable
    lagged: WideTable
    travel_times: pd.DataFrame
    dataset: ModelDataset
    split: DatasetSplit
    naive_column: ColumnKey
    scores: pd.DataFrame
    models: Dict[str, FittedModel]
    predictions: pd.DataFrame
    outputs: Dict[str, str]


def prepare_features(long_df: pd.DataFrame, config: PipelineConfig, *, show_progress: bool = False):
    """
    Clean, aggregate and pivot a raw long table.

    Returns ``(cleaned, cleaning_report, wide_table)``.
    """
    cleaned, report = clean_long(
        long_df, CLEANING_RULES, n_jobs=config.n_jobs, show_progress=show_progress
    )
    with_rolling = add_rolling_signals(
        cleaned, window=config.rolling_window, fill_value=config.rolling_fill
    )
    wide = build_wide_table(
        with_rolling,
        groups=config.signals("alignment_signals"),
        subhourly=config.signals("subhourly_signals"),
        merge_signals=config.signals("merge_signals"),
        fill_value=config.pivot_fill,
    )
    return cleaned, report, wide


def run_pipeline(
    input_dir: str,
    output_dir: Optional[str],
    config: PipelineConfig,
    *,
    model_dir: Optional[str] = None,
    show_progress: bool = True,
) -> PipelineResult:
    """
    Run the full forecast evaluation on the raw files in *input_dir*.

    Parameters
    ----------
    input_dir :
        Directory holding the raw ``*Q15*``, ``*W15*``, ``*rr_stunde*`` and
        ``*tu_stunde*`` files.
    output_dir :
        Directory for the snapshot tables (see module docstring). ``None``
        writes nothing.
    config :
        Run configuration; ``target_station`` must be set.
    model_dir :
        Optional directory where fitted models are saved with joblib.
    show_progress :
        Show tqdm progress bars.
    """
    t0 = time.time()
    target = config.target_key

    paths = discover_raw_files(input_dir)
    logger.info("Stage load: %d raw files in %s", len(paths), input_dir)
    raw = load_raw_files(
        paths, aliases=config.station_aliases, source_timezone=config.source_timezone
    )

    logger.info("Stage clean / aggregate / align")
    cleaned, report, wide = prepare_features(raw, config, show_progress=show_progress)
    if target not in wide.schema:
        raise KeyError(
            f"Target {target} is not among the aligned columns {wide.schema.columns()}"
        )

    travel = travel_time_table(wide, target, config.exploratory_lags)
    if not travel.empty:
        best = travel.dropna(subset=["corr"]).sort_values("corr", ascending=False).head(1)
        for _, r in best.iterrows():
            logger.info(
                "Strongest travel-time correlation: %s at lag %d h (r=%.3f)",
                r["station"], int(r["lag"]), r["corr"],
            )

    logger.info("Stage lag features")
    lagged = add_forecast_lags(
        wide,
        target,
        exclude_stations=config.exclude_stations,
        days=config.horizon_days,
        samples_per_day=config.samples_per_day,
    )
    predictors = forecast_predictors(
        lagged.schema,
        days=config.horizon_days,
        samples_per_day=config.samples_per_day,
        min_days=config.forecast_horizon_days,
    )

    logger.info("Stage model harness")
    dataset = build_model_dataset(lagged, target, predictors)
    split = split_dataset(
        len(dataset),
        validation_size=config.validation_size,
        train_fraction=config.train_fraction,
        random_state=config.random_state,
    )
    naive_column = config.naive_key or default_naive_key(target, dataset.predictors)
    backends = backends_from_config(config, naive_column)
    scores, fitted = evaluate_backends(dataset, split, backends, show_progress=show_progress)
    predictions = prediction_table(dataset, split, fitted)

    outputs: Dict[str, str] = {}
    if output_dir is not None:
        os.makedirs(output_dir, exist_ok=True)
        tables = {
            "wide": wide.frame,
            "lagged": lagged.frame,
            "dataset": dataset.frame,
            "scores": scores,
            "predictions": predictions,
            "cleaning": report,
            "travel_times": travel,
        }
        for name, frame in tables.items():
            path = os.path.join(output_dir, OUTPUT_FILES[name])
            write_snapshot(
                frame, path, sep=config.snapshot_sep, decimal=config.snapshot_decimal
            )
            outputs[name] = path
        logger.info("Wrote %d tables to %s", len(outputs), output_dir)

    if model_dir is not None:
        for name, model in fitted.items():
            model.save(os.path.join(model_dir, f"{name}.joblib"))

    failed: List[str] = sorted(set(scores.loc[scores["status"] == "failed", "backend"]))
    if failed:
        logger.warning("Failed backends: %s", ", ".join(failed))
    logger.info("Pipeline finished in %.1f s", time.time() - t0)

    return PipelineResult(
        raw=raw,
        cleaned=cleaned,
        cleaning_report=report,
        wide=wide,
        lagged=lagged,
        travel_times=travel,
        dataset=dataset,
        split=split,
        naive_column=naive_column,
        scores=scores,
        models=fitted,
        predictions=predictions,
        outputs=outputs,
    )


__all__ = ["OUTPUT_FILES", "PipelineResult", "prepare_features", "run_pipeline"]
