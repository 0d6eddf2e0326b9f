# src/RIVERlagPy/schema.py
# SPDX-License-Identifier: MIT
"""
Signals and the explicit column schema of the wide feature table.

Every column of a wide table is identified by a :class:`ColumnKey`
``(station, signal, lag)``. The :class:`FeatureSchema` maps those keys to
the string column names used in pandas and in the CSV snapshots. Names are
generated once, when a key is registered, and are only ever looked up
through the schema (never split back into their parts).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union


class Signal(str, Enum):
    """Measured quantity or derived aggregate."""

    LEVEL = "level"
    FLOW = "flow"
    RAIN = "rain"
    TEMPERATURE = "temperature"
    RAIN24H = "rain24h"
    TEMP24H = "temp24h"

    @classmethod
    def parse(cls, value: Union[str, "Signal"]) -> "Signal":
        """Accept a member, its value or its name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        token = str(value).strip().lower()
        for member in cls:
            if token in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown signal: {value!r}")


@dataclass(frozen=True, order=True)
class ColumnKey:
    """Identity of one wide-table column."""

    station: str
    signal: Signal
    lag: int = 0

    def __post_init__(self) -> None:
        if self.lag < 0:
            raise ValueError(f"lag must be >= 0, got {self.lag}")
        object.__setattr__(self, "signal", Signal.parse(self.signal))
        object.__setattr__(self, "station", str(self.station).upper())

    def lagged(self, lag: int) -> "ColumnKey":
        """Same station and signal at another lag."""
        return ColumnKey(self.station, self.signal, int(lag))

    @property
    def base(self) -> "ColumnKey":
        return self.lagged(0)


def _default_name(key: ColumnKey) -> str:
    name = f"{key.station}_{key.signal.value}"
    if key.lag:
        name += f"_lag{key.lag}"
    return name


class FeatureSchema:
    """
    Ordered, immutable mapping ``ColumnKey -> column name``.

    Operations that add keys return a new schema; the original instance is
    left untouched.
    """

    def __init__(self, mapping: Optional[Mapping[ColumnKey, str]] = None) -> None:
        self._by_key: Dict[ColumnKey, str] = {}
        self._by_name: Dict[str, ColumnKey] = {}
        for key, name in (mapping or {}).items():
            self._register(key, name)

    def _register(self, key: ColumnKey, name: str) -> None:
        if key in self._by_key:
            raise ValueError(f"Duplicate column key: {key}")
        if name in self._by_name:
            raise ValueError(
                f"Column name {name!r} already used by {self._by_name[name]}"
            )
        self._by_key[key] = name
        self._by_name[name] = key

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_keys(cls, keys: Iterable[ColumnKey]) -> "FeatureSchema":
        return cls({k: _default_name(k) for k in keys})

    def extended(self, keys: Iterable[ColumnKey]) -> "FeatureSchema":
        """Return a new schema with *keys* appended (existing keys are kept)."""
        mapping = dict(self._by_key)
        for key in keys:
            if key not in mapping:
                mapping[key] = _default_name(key)
        return FeatureSchema(mapping)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def column(self, key: ColumnKey) -> str:
        try:
            return self._by_key[key]
        except KeyError:
            raise KeyError(f"Column key not in schema: {key}") from None

    def columns(self, keys: Optional[Iterable[ColumnKey]] = None) -> List[str]:
        if keys is None:
            return list(self._by_key.values())
        return [self.column(k) for k in keys]

    def key(self, column: str) -> ColumnKey:
        try:
            return self._by_name[column]
        except KeyError:
            raise KeyError(f"Column name not in schema: {column!r}") from None

    def keys(self) -> List[ColumnKey]:
        return list(self._by_key)

    def select(
        self,
        *,
        station: Optional[str] = None,
        signal: Optional[Union[str, Signal]] = None,
        lag: Optional[int] = None,
        lags: Optional[Iterable[int]] = None,
    ) -> List[ColumnKey]:
        """Keys matching every given criterion, in schema order."""
        sig = Signal.parse(signal) if signal is not None else None
        lag_set = set(int(x) for x in lags) if lags is not None else None
        out = []
        for k in self._by_key:
            if station is not None and k.station != str(station).upper():
                continue
            if sig is not None and k.signal is not sig:
                continue
            if lag is not None and k.lag != int(lag):
                continue
            if lag_set is not None and k.lag not in lag_set:
                continue
            out.append(k)
        return out

    def stations(self) -> List[str]:
        return sorted({k.station for k in self._by_key})

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __iter__(self) -> Iterator[ColumnKey]:
        return iter(self._by_key)

    def __len__(self) -> int:
        return len(self._by_key)

    def items(self) -> List[Tuple[ColumnKey, str]]:
        return list(self._by_key.items())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeatureSchema):
            return NotImplemented
        return list(self._by_key.items()) == list(other._by_key.items())

    def __repr__(self) -> str:
        return f"FeatureSchema({len(self)} columns)"


__all__ = ["Signal", "ColumnKey", "FeatureSchema"]
