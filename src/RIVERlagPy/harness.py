# src/RIVERlagPy/harness.py
# SPDX-License-Identifier: MIT
"""
Fit every backend on the training rows and score it on each partition.

A backend that fails (:class:`~RIVERlagPy.errors.ModelFitError`) is
reported with ``status="failed"`` and does not stop the others.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from tqdm.auto import tqdm

from .config import PipelineConfig
from .dataset import PARTITIONS, DatasetSplit, ModelDataset
from .errors import ModelFitError
from .metrics import METRIC_NAMES, regression_metrics
from .models import FittedModel, RegressionBackend, make_backend
from .schema import ColumnKey

logger = logging.getLogger(__name__)

SCORE_COLUMNS = ["backend", "partition", "n_rows", *METRIC_NAMES, "status", "error"]


def default_naive_key(target: ColumnKey, predictors: Sequence[ColumnKey]) -> ColumnKey:
    """
    Shortest-lag predictor, preferring the target's own signal.

    Among the predictors with the smallest lag, the first one measuring the
    same signal as the target is chosen, else the first one.
    """
    if not predictors:
        raise ValueError("No predictors to choose a naive column from.")
    shortest = min(k.lag for k in predictors)
    candidates = [k for k in predictors if k.lag == shortest]
    same_signal = [k for k in candidates if k.signal is target.signal]
    return (same_signal or candidates)[0]


def backends_from_config(
    config: PipelineConfig, naive_column: Optional[ColumnKey]
) -> List[RegressionBackend]:
    """Backends listed in ``config.backends`` with their configured parameters."""
    params = {
        "linear": {},
        "tree": config.tree_params,
        "forest": config.rf_params,
        "network": config.mlp_params,
    }
    return [
        make_backend(name, params.get(name), naive_column=naive_column)
        for name in config.backends
    ]


def _failed_rows(name: str, split: DatasetSplit, reason: str) -> List[Dict]:
    rows = []
    for part, idx in split.partitions().items():
        row = {"backend": name, "partition": part, "n_rows": int(len(idx))}
        row.update({m: np.nan for m in METRIC_NAMES})
        row.update({"status": "failed", "error": reason})
        rows.append(row)
    return rows


def evaluate_backends(
    dataset: ModelDataset,
    split: DatasetSplit,
    backends: Iterable[RegressionBackend],
    *,
    show_progress: bool = False,
) -> Tuple[pd.DataFrame, Dict[str, FittedModel]]:
    """
    Fit each backend on ``split.train`` and score it on every partition.

    Returns
    -------
    scores : DataFrame
        One row per (backend, partition): ``n_rows``, MAE, RMSE, NSE, KGE,
        ``status`` (``"ok"`` / ``"failed"``) and ``error``.
    fitted : dict
        Backend name -> fitted model, for the backends that succeeded.
    """
    if split.n_rows != len(dataset):
        raise ValueError(
            f"Split covers {split.n_rows} rows but the dataset has {len(dataset)}."
        )
    backends = list(backends)
    iterator = tqdm(backends, desc="Evaluating backends", unit="model") if show_progress else backends

    rows: List[Dict] = []
    fitted: Dict[str, FittedModel] = {}
    for backend in iterator:
        try:
            model = backend.fit(dataset, split.train)
            preds = {
                part: model.predict(dataset.rows(idx))
                for part, idx in split.partitions().items()
                if len(idx)
            }
        except ModelFitError as exc:
            logger.error("Backend %s failed: %s", backend.name, exc)
            rows.extend(_failed_rows(backend.name, split, str(exc)))
            continue

        fitted[backend.name] = model
        for part, idx in split.partitions().items():
            row = {"backend": backend.name, "partition": part, "n_rows": int(len(idx))}
            # empty partitions score NaN
            row.update(regression_metrics(dataset.y(idx), preds.get(part, np.empty(0))))
            row.update({"status": "ok", "error": ""})
            rows.append(row)
        rmse_val = rows[-1]["RMSE"]
        logger.info("Backend %s: validation RMSE %.4f", backend.name, rmse_val)

    scores = pd.DataFrame(rows, columns=SCORE_COLUMNS)
    return scores, fitted


def prediction_table(
    dataset: ModelDataset,
    split: DatasetSplit,
    fitted: Dict[str, FittedModel],
) -> pd.DataFrame:
    """
    Observed target and every backend's prediction, one row per dataset row.

    Columns: ``timestamp``, ``partition``, ``y_true`` and one column per
    backend name.
    """
    out = pd.DataFrame(index=dataset.frame.index)
    labels = np.empty(len(dataset), dtype=object)
    for part, idx in split.partitions().items():
        labels[idx] = part
    out["partition"] = pd.Categorical(labels, categories=list(PARTITIONS))
    out["y_true"] = dataset.y()
    for name, model in fitted.items():
        out[name] = model.predict(dataset.frame)
    out.index.name = "timestamp"
    return out.reset_index()


__all__ = [
    "SCORE_COLUMNS",
    "default_naive_key",
    "backends_from_config",
    "evaluate_backends",
    "prediction_table",
]
