# src/RIVERlagPy/dataset.py
# SPDX-License-Identifier: MIT
"""
Model-ready datasets and their training / test / validation split.

The split is made on complete-case rows after lag generation:

* **validation** – the last ``validation_size`` rows (most recent block);
* **training** – a random ``train_fraction`` of the remaining rows;
* **test** – whatever is left.

The three position sets are disjoint and together cover every row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .align import WideTable
from .schema import ColumnKey, FeatureSchema

logger = logging.getLogger(__name__)

PARTITIONS = ("train", "test", "validation")


@dataclass(frozen=True, eq=False)
class ModelDataset:
    """Target plus lagged predictors, complete cases only, sorted by time."""

    frame: pd.DataFrame
    schema: FeatureSchema
    target: ColumnKey
    predictors: Tuple[ColumnKey, ...]

    @property
    def target_column(self) -> str:
        return self.schema.column(self.target)

    @property
    def predictor_columns(self) -> list:
        return self.schema.columns(self.predictors)

    def rows(self, positions: Optional[Sequence[int]] = None) -> pd.DataFrame:
        if positions is None:
            return self.frame
        return self.frame.iloc[np.asarray(positions, dtype=int)]

    def X(self, positions: Optional[Sequence[int]] = None) -> np.ndarray:
        rows = self.rows(positions)
        return np.asarray(rows[self.predictor_columns].to_numpy(), dtype=float)

    def y(self, positions: Optional[Sequence[int]] = None) -> np.ndarray:
        rows = self.rows(positions)
        return np.asarray(rows[self.target_column].to_numpy(), dtype=float)

    def __len__(self) -> int:
        return len(self.frame)


def build_model_dataset(
    table: WideTable,
    target: ColumnKey,
    predictors: Sequence[ColumnKey],
) -> ModelDataset:
    """
    Select *target* and *predictors* from a wide table and keep complete cases.

    Raises
    ------
    ValueError
        If a predictor is a lag-0 column, the target is lagged, no predictor
        is given or no complete row remains.
    KeyError
        If a key is not part of the table schema.
    """
    if target.lag != 0:
        raise ValueError(f"Target must be a lag-0 column, got {target}")
    if not predictors:
        raise ValueError("At least one predictor is required.")
    same_time = [k for k in predictors if k.lag == 0]
    if same_time:
        raise ValueError(f"Lag-0 columns cannot be predictors: {same_time}")

    keys = [target] + [k for k in predictors if k != target]
    frame = table.subset(keys)
    n_before = len(frame)
    frame = frame.dropna(how="any")
    if frame.empty:
        raise ValueError("No complete rows for the selected target and predictors.")
    logger.info(
        "Model dataset: %d complete rows of %d (%d predictors)",
        len(frame),
        n_before,
        len(keys) - 1,
    )
    schema = FeatureSchema({k: table.schema.column(k) for k in keys})
    return ModelDataset(frame, schema, target, tuple(keys[1:]))


# ---------------------------------------------------------------------
# Split
# ---------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class DatasetSplit:
    """Row positions of each partition of a :class:`ModelDataset`."""

    train: np.ndarray
    test: np.ndarray
    validation: np.ndarray
    n_rows: int

    def __post_init__(self) -> None:
        parts = [np.asarray(p, dtype=int) for p in (self.train, self.test, self.validation)]
        joined = np.concatenate(parts)
        if len(np.unique(joined)) != len(joined):
            raise ValueError("Partitions overlap.")
        if not np.array_equal(np.sort(joined), np.arange(self.n_rows)):
            raise ValueError("Partitions do not cover every row.")

    def partitions(self) -> Dict[str, np.ndarray]:
        return {"train": self.train, "test": self.test, "validation": self.validation}


def split_dataset(
    n_rows: int,
    *,
    validation_size: int = 72,
    train_fraction: float = 0.7,
    random_state: int = 42,
) -> DatasetSplit:
    """
    Split ``range(n_rows)`` into training, test and trailing validation rows.

    Training rows are a random sample (without replacement) of
    ``round(train_fraction * (n_rows - validation_size))`` positions taken
    from the rows before the validation block.
    """
    if validation_size < 1:
        raise ValueError("validation_size must be >= 1.")
    if not 0.0 < train_fraction < 1.0:
        raise ValueError("train_fraction must be in (0, 1).")
    if n_rows <= validation_size:
        raise ValueError(
            f"Need more than {validation_size} complete rows for the split, got {n_rows}."
        )

    eligible = np.arange(n_rows - validation_size)
    n_train = min(max(int(round(train_fraction * len(eligible))), 1), len(eligible))
    rng = np.random.default_rng(random_state)
    train = np.sort(rng.choice(eligible, size=n_train, replace=False))
    test = np.setdiff1d(eligible, train)
    validation = np.arange(n_rows - validation_size, n_rows)
    logger.info(
        "Split: %d train, %d test, %d validation rows", len(train), len(test), len(validation)
    )
    return DatasetSplit(train, test, validation, int(n_rows))


__all__ = [
    "PARTITIONS",
    "ModelDataset",
    "build_model_dataset",
    "DatasetSplit",
    "split_dataset",
]
