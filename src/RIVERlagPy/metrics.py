# src/RIVERlagPy/metrics.py
# SPDX-License-Identifier: MIT
"""
Error metrics for gauge forecasts.

- :func:`rmse`: root-mean-squared error, the headline score of the
  model harness.
- :func:`nse`: Nash–Sutcliffe efficiency.
- :func:`kge`: Kling–Gupta efficiency (Gupta et al., 2009).
- :func:`regression_metrics`: MAE, RMSE, NSE and KGE in one dict.

Inputs may be any iterable of numbers. Undefined metrics (empty input,
constant observations) are returned as ``numpy.nan`` rather than raising.
"""

from __future__ import annotations

from typing import Dict, Iterable, Tuple

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error

METRIC_NAMES = ("MAE", "RMSE", "NSE", "KGE")


def _as_arrays(
    y_true: Iterable[float],
    y_pred: Iterable[float],
) -> Tuple[np.ndarray, np.ndarray]:
    """Float arrays of identical shape; ``ValueError`` otherwise."""
    yt = np.asarray(y_true, dtype=float)
    yp = np.asarray(y_pred, dtype=float)
    if yt.shape != yp.shape:
        raise ValueError(
            f"Shapes of y_true {yt.shape} and y_pred {yp.shape} do not match."
        )
    return yt, yp


def rmse(y_true: Iterable[float], y_pred: Iterable[float]) -> float:
    """Root-mean-squared error (``nan`` for empty input)."""
    yt, yp = _as_arrays(y_true, y_pred)
    if yt.size == 0:
        return np.nan
    return float(np.sqrt(mean_squared_error(yt, yp)))


def nse(y_true: Iterable[float], y_pred: Iterable[float]) -> float:
    """
    Nash–Sutcliffe efficiency.

    .. math::

        \\mathrm{NSE} = 1 - \\frac{\\sum (y_t - y_p)^2}{\\sum (y_t - \\overline{y_t})^2}

    ``nan`` when fewer than two points are given or the observations are
    constant.
    """
    yt, yp = _as_arrays(y_true, y_pred)
    if yt.size < 2:
        return np.nan
    denom = float(np.sum((yt - yt.mean()) ** 2))
    if denom == 0.0:
        return np.nan
    return float(1.0 - np.sum((yt - yp) ** 2) / denom)


def kge(y_true: Iterable[float], y_pred: Iterable[float]) -> float:
    """
    Kling–Gupta efficiency.

    Combines correlation ``r``, variability ratio ``alpha`` and bias ratio
    ``beta``: ``1 - sqrt((r-1)^2 + (alpha-1)^2 + (beta-1)^2)``.
    """
    yt, yp = _as_arrays(y_true, y_pred)
    if yt.size < 2:
        return np.nan
    mu_y, mu_p = float(yt.mean()), float(yp.mean())
    sd_y, sd_p = float(yt.std(ddof=1)), float(yp.std(ddof=1))
    if sd_y == 0.0 or sd_p == 0.0 or mu_y == 0.0:
        return np.nan
    r = float(np.corrcoef(yt, yp)[0, 1])
    if not np.isfinite(r):
        return np.nan
    alpha = sd_p / sd_y
    beta = mu_p / mu_y
    return float(1.0 - np.sqrt((r - 1.0) ** 2 + (alpha - 1.0) ** 2 + (beta - 1.0) ** 2))


def regression_metrics(y_true: Iterable[float], y_pred: Iterable[float]) -> Dict[str, float]:
    """MAE, RMSE, NSE and KGE of one prediction vector."""
    yt, yp = _as_arrays(y_true, y_pred)
    if yt.size == 0:
        return {name: np.nan for name in METRIC_NAMES}
    return {
        "MAE": float(mean_absolute_error(yt, yp)),
        "RMSE": rmse(yt, yp),
        "NSE": nse(yt, yp),
        "KGE": kge(yt, yp),
    }


__all__ = ["METRIC_NAMES", "rmse", "nse", "kge", "regression_metrics"]
