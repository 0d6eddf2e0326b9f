# src/RIVERlagPy/models.py
# SPDX-License-Identifier: MIT
"""
Regression backends behind one interface.

Every backend implements ``fit(dataset, rows) -> FittedModel`` and every
fitted model ``predict(rows) -> float64 array``:

=============  ==========================================================
backend        model
=============  ==========================================================
``linear``     :class:`sklearn.linear_model.LinearRegression`
``tree``       :class:`sklearn.tree.DecisionTreeRegressor`
``forest``     :class:`sklearn.ensemble.RandomForestRegressor`
``network``    :class:`sklearn.neural_network.MLPRegressor` on standardised
               features and target
``naive``      copies one lagged column, no fitting
=============  ==========================================================

Any rejection by the underlying estimator surfaces as
:class:`~RIVERlagPy.errors.ModelFitError`.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from joblib import dump, load
from sklearn.ensemble import RandomForestRegressor
from sklearn.linear_model import LinearRegression
from sklearn.neural_network import MLPRegressor
from sklearn.preprocessing import StandardScaler
from sklearn.tree import DecisionTreeRegressor

from .dataset import ModelDataset
from .errors import ModelFitError
from .schema import ColumnKey

_FIT_ERRORS = (ValueError, FloatingPointError, np.linalg.LinAlgError)


# ---------------------------------------------------------------------
# Fitted models
# ---------------------------------------------------------------------


class FittedModel(ABC):
    """A trained backend bound to its predictor columns."""

    def __init__(self, backend: str, target_column: str, predictor_columns: Sequence[str]) -> None:
        self.backend = backend
        self.target_column = target_column
        self.predictor_columns = list(predictor_columns)

    def predict(self, rows: pd.DataFrame) -> np.ndarray:
        """
        Predict the target for every row of *rows*.

        Raises
        ------
        KeyError
            If *rows* lacks a predictor column.
        ModelFitError
            If the estimator rejects the feature values.
        """
        missing = [c for c in self.predictor_columns if c not in rows.columns]
        if missing:
            raise KeyError(f"{self.backend}: rows lack predictor columns {missing}")
        X = np.asarray(rows[self.predictor_columns].to_numpy(), dtype=float)
        try:
            y = self._predict(X)
        except _FIT_ERRORS as exc:
            raise ModelFitError(self.backend, str(exc)) from exc
        return np.asarray(y, dtype="float64").ravel()

    @abstractmethod
    def _predict(self, X: np.ndarray) -> np.ndarray:
        ...

    def save(self, path: str) -> str:
        """Persist the fitted model with joblib."""
        os.makedirs(os.path.dirname(str(path)) or ".", exist_ok=True)
        dump(self, path)
        return path

    def __repr__(self) -> str:
        return f"{type(self).__name__}(backend={self.backend!r}, n_predictors={len(self.predictor_columns)})"


def load_model(path: str) -> FittedModel:
    """Load a model written by :meth:`FittedModel.save`."""
    model = load(path)
    if not isinstance(model, FittedModel):
        raise TypeError(f"{path} does not contain a fitted model.")
    return model


class EstimatorModel(FittedModel):
    def __init__(self, backend, target_column, predictor_columns, estimator) -> None:
        super().__init__(backend, target_column, predictor_columns)
        self.estimator = estimator

    def _predict(self, X: np.ndarray) -> np.ndarray:
        return self.estimator.predict(X)


class StandardisedModel(FittedModel):
    """Estimator trained on z-scored features and target."""

    def __init__(self, backend, target_column, predictor_columns, estimator, x_scaler, y_scaler) -> None:
        super().__init__(backend, target_column, predictor_columns)
        self.estimator = estimator
        self.x_scaler = x_scaler
        self.y_scaler = y_scaler

    @property
    def target_mean(self) -> float:
        return float(self.y_scaler.mean_[0])

    @property
    def target_scale(self) -> float:
        return float(self.y_scaler.scale_[0])

    def _predict(self, X: np.ndarray) -> np.ndarray:
        z = self.estimator.predict(self.x_scaler.transform(X))
        return self.y_scaler.inverse_transform(np.asarray(z).reshape(-1, 1)).ravel()


class ColumnModel(FittedModel):
    """Returns one predictor column unchanged."""

    def __init__(self, backend, target_column, column) -> None:
        super().__init__(backend, target_column, [column])
        self.column = column

    def _predict(self, X: np.ndarray) -> np.ndarray:
        return X[:, 0]


# ---------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------


class RegressionBackend(ABC):
    """Trains a :class:`FittedModel` on selected rows of a :class:`ModelDataset`."""

    name = "backend"

    def fit(self, dataset: ModelDataset, rows: Optional[Sequence[int]] = None) -> FittedModel:
        X, y = dataset.X(rows), dataset.y(rows)
        if len(y) == 0:
            raise ModelFitError(self.name, "no training rows")
        try:
            return self._fit(dataset, X, y)
        except _FIT_ERRORS as exc:
            raise ModelFitError(self.name, str(exc)) from exc

    @abstractmethod
    def _fit(self, dataset: ModelDataset, X: np.ndarray, y: np.ndarray) -> FittedModel:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class EstimatorBackend(RegressionBackend):
    """Plain scikit-learn regressor on raw feature values."""

    def __init__(self, params: Optional[Dict[str, Any]] = None) -> None:
        self.params = dict(params or {})

    @abstractmethod
    def make_estimator(self):
        ...

    def _fit(self, dataset, X, y):
        est = self.make_estimator()
        est.fit(X, y)
        return EstimatorModel(self.name, dataset.target_column, dataset.predictor_columns, est)


class LinearBackend(EstimatorBackend):
    name = "linear"

    def make_estimator(self):
        return LinearRegression(**self.params)


class TreeBackend(EstimatorBackend):
    name = "tree"

    def make_estimator(self):
        return DecisionTreeRegressor(**self.params)


class ForestBackend(EstimatorBackend):
    name = "forest"

    def make_estimator(self):
        params = self.params or dict(n_estimators=200, random_state=42, n_jobs=-1)
        return RandomForestRegressor(**params)


class NetworkBackend(EstimatorBackend):
    """
    Multilayer perceptron on standardised data.

    Features and target are scaled to zero mean and unit variance with the
    training rows' statistics; predictions are mapped back with the stored
    target mean and scale.
    """

    name = "network"

    def make_estimator(self):
        params = self.params or dict(hidden_layer_sizes=(10,), max_iter=2000, random_state=42)
        return MLPRegressor(**params)

    def _fit(self, dataset, X, y):
        x_scaler = StandardScaler().fit(X)
        y_scaler = StandardScaler().fit(y.reshape(-1, 1))
        est = self.make_estimator()
        est.fit(x_scaler.transform(X), y_scaler.transform(y.reshape(-1, 1)).ravel())
        return StandardisedModel(
            self.name, dataset.target_column, dataset.predictor_columns, est, x_scaler, y_scaler
        )


class NaiveBackend(RegressionBackend):
    """Baseline whose prediction is the value of one designated lagged column."""

    name = "naive"

    def __init__(self, column: ColumnKey) -> None:
        self.column = column

    def fit(self, dataset: ModelDataset, rows: Optional[Sequence[int]] = None) -> FittedModel:
        if self.column not in dataset.schema:
            raise ModelFitError(self.name, f"column {self.column} is not in the dataset")
        if self.column == dataset.target:
            raise ModelFitError(self.name, "the naive column cannot be the target itself")
        return ColumnModel(self.name, dataset.target_column, dataset.schema.column(self.column))

    def _fit(self, dataset, X, y):  # pragma: no cover - fit() is overridden
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"NaiveBackend({self.column})"


BACKENDS = {
    "linear": LinearBackend,
    "tree": TreeBackend,
    "forest": ForestBackend,
    "network": NetworkBackend,
}


def make_backend(name: str, params: Optional[Dict[str, Any]] = None, *, naive_column: Optional[ColumnKey] = None) -> RegressionBackend:
    """Instantiate a backend by name."""
    key = str(name).lower()
    if key == "naive":
        if naive_column is None:
            raise ValueError("The naive backend needs a column.")
        return NaiveBackend(naive_column)
    if key not in BACKENDS:
        raise ValueError(f"Unknown backend {name!r}; choose from {sorted(BACKENDS) + ['naive']}")
    return BACKENDS[key](params)


__all__ = [
    "FittedModel",
    "load_model",
    "RegressionBackend",
    "LinearBackend",
    "TreeBackend",
    "ForestBackend",
    "NetworkBackend",
    "NaiveBackend",
    "BACKENDS",
    "make_backend",
]
