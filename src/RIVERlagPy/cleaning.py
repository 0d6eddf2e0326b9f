# src/RIVERlagPy/cleaning.py
# SPDX-License-Identifier: MIT
"""
Per-series outlier repair.

Each (station, signal) series is checked against an ordered list of
validity rules. Two repair actions exist:

``"ffill"``
    A failing value (or a missing one) is replaced by the last value that
    passed the rule. A failing value with no valid predecessor is left as
    it is.
``"clamp"``
    A failing value is replaced by the rule threshold. Missing values stay
    missing.

Rules run one after another; each sees the series as repaired by the
previous rules.
"""

from __future__ import annotations

import logging
import operator
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Sequence, Tuple

import pandas as pd
from joblib import Parallel, delayed
from tqdm.auto import tqdm

from .loader import LONG_COLUMNS
from .schema import Signal

logger = logging.getLogger(__name__)

_OPS: Dict[str, Callable] = {">=": operator.ge, "<=": operator.le}


@dataclass(frozen=True)
class ValidityRule:
    """``value <op> threshold`` plus the repair applied when it fails."""

    op: str
    threshold: float
    action: str = "ffill"

    def __post_init__(self) -> None:
        if self.op not in _OPS:
            raise ValueError(f"Unsupported operator {self.op!r}; use one of {list(_OPS)}")
        if self.action not in ("ffill", "clamp"):
            raise ValueError(f"Unsupported action {self.action!r}")

    @property
    def name(self) -> str:
        return f"value {self.op} {self.threshold:g}"

    def holds(self, values: pd.Series) -> pd.Series:
        """Boolean mask of values satisfying the rule (missing -> False)."""
        return _OPS[self.op](values, self.threshold) & values.notna()

    def apply(self, values: pd.Series) -> Tuple[pd.Series, int, int]:
        """Return ``(repaired, n_repaired, n_unfilled)``."""
        if self.action == "clamp":
            failing = values.notna() & ~self.holds(values)
            return values.mask(failing, float(self.threshold)), int(failing.sum()), 0
        return forward_fill_invalid(values, self)


def forward_fill_invalid(values: pd.Series, rule: ValidityRule) -> Tuple[pd.Series, int, int]:
    """
    Replace values failing *rule* with the last value that passed it.

    Leading failures without a valid predecessor keep their original value
    and are counted in ``n_unfilled``.
    """
    ok = rule.holds(values)
    carried = values.where(ok).ffill()
    out = values.where(ok, carried)
    unfilled = out.isna() & ~ok & values.notna()
    out = out.fillna(values)
    failing = ~ok
    n_unfilled = int((failing & carried.isna()).sum())
    n_repaired = int(failing.sum()) - n_unfilled
    if unfilled.any():
        logger.debug(
            "%s: %d leading values without a valid predecessor", rule.name, int(unfilled.sum())
        )
    return out, n_repaired, n_unfilled


CLEANING_RULES: Mapping[Signal, Tuple[ValidityRule, ...]] = {
    Signal.LEVEL: (ValidityRule(">=", 0.0), ValidityRule("<=", 1000.0)),
    Signal.FLOW: (ValidityRule(">=", 0.0),),
    Signal.TEMPERATURE: (ValidityRule(">=", -20.0),),
    Signal.RAIN: (ValidityRule(">=", 0.0, action="clamp"),),
}


def clean_series(
    values: pd.Series, rules: Sequence[ValidityRule]
) -> Tuple[pd.Series, List[Dict]]:
    """Apply *rules* in order to one series. Returns the series and per-rule stats."""
    out = values.astype("float64")
    stats = []
    for rule in rules:
        out, n_rep, n_unf = rule.apply(out)
        stats.append({"rule": rule.name, "n_repaired": n_rep, "n_unfilled": n_unf})
    return out, stats


def _prepare_group(g: pd.DataFrame) -> Tuple[pd.DataFrame, int]:
    g = g.sort_values("timestamp", kind="mergesort")
    dup = g["timestamp"].duplicated(keep="first")
    return g.loc[~dup], int(dup.sum())


def _clean_group(
    station: str, signal: str, g: pd.DataFrame, rules: Sequence[ValidityRule]
) -> Tuple[pd.DataFrame, List[Dict]]:
    g, n_dup = _prepare_group(g)
    if n_dup:
        logger.warning("%s/%s: dropped %d duplicate timestamps", station, signal, n_dup)
    values, stats = clean_series(g["value"].reset_index(drop=True), rules)
    out = g.reset_index(drop=True).copy()
    out["value"] = values.to_numpy()
    for s in stats:
        s.update({"station": station, "signal": signal})
    return out, stats


def clean_long(
    df: pd.DataFrame,
    rules: Mapping[Signal, Sequence[ValidityRule]] = CLEANING_RULES,
    *,
    n_jobs: int = 1,
    show_progress: bool = False,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Clean every (station, signal) series of a long table independently.

    Parameters
    ----------
    df :
        Long table (``timestamp, station, signal, value``).
    rules :
        Rules per signal. Signals without an entry are only sorted and
        de-duplicated.
    n_jobs :
        joblib workers; series are independent, so any value is safe.
    show_progress :
        Show a tqdm progress bar over the series.

    Returns
    -------
    cleaned : DataFrame
        New long table sorted by station, signal, timestamp.
    report : DataFrame
        One row per (station, signal, rule) with repair counts.
    """
    groups = [
        (str(st), str(sig), g)
        for (st, sig), g in df.groupby(["station", "signal"], observed=True, sort=True)
    ]
    iterator = tqdm(groups, desc="Cleaning series", unit="series") if show_progress else groups
    results = Parallel(n_jobs=n_jobs)(
        delayed(_clean_group)(st, sig, g, rules.get(Signal.parse(sig), ()))
        for st, sig, g in iterator
    )

    report_cols = ["station", "signal", "rule", "n_repaired", "n_unfilled"]
    if not results:
        return df.iloc[0:0].copy(), pd.DataFrame(columns=report_cols)

    cleaned = pd.concat([r[0] for r in results], ignore_index=True)[LONG_COLUMNS]
    for col in ("station", "signal"):
        cleaned[col] = cleaned[col].astype(str).astype("category")
    report = pd.DataFrame([s for r in results for s in r[1]], columns=report_cols)

    n_rep = int(report["n_repaired"].sum()) if not report.empty else 0
    logger.info("Cleaned %d series, %d values repaired", len(results), n_rep)
    return cleaned, report


__all__ = [
    "ValidityRule",
    "CLEANING_RULES",
    "forward_fill_invalid",
    "clean_series",
    "clean_long",
]
