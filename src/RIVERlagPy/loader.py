# src/RIVERlagPy/loader.py
# SPDX-License-Identifier: MIT
"""
Raw gauge file parsing.

Four raw formats are supported, selected by file name:

=================  ===========  ==================================================
pattern            signal       layout
=================  ===========  ==================================================
``*Q15*``          FLOW         whitespace separated, no header, ``ts value``
``*W15*``          LEVEL        whitespace separated, no header, ``ts value``
``*rr_stunde*``    RAIN         ``;`` separated, header, ``MESS_DATUM`` / ``R1``
``*tu_stunde*``    TEMPERATURE  ``;`` separated, header, ``MESS_DATUM`` / ``TT_TU``
=================  ===========  ==================================================

Every file becomes a block of the canonical long table::

    timestamp (UTC) | station | signal | value

The station is taken from the file name (text before the first space,
underscore or hyphen, uppercased) and then normalised through the station
alias table.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

from .errors import ParseError
from .schema import Signal

logger = logging.getLogger(__name__)

LONG_COLUMNS = ["timestamp", "station", "signal", "value"]

_STATION_SPLIT = re.compile(r"[ _\-]")
_PATTERN_WIDTH = {"%Y": 4, "%m": 2, "%d": 2, "%H": 2, "%M": 2, "%S": 2}


# ---------------------------------------------------------------------
# Format descriptors
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class RawFormat:
    """Layout of one family of raw files.

    ``timestamp_col`` / ``value_col`` are positions for header-less files
    and header names otherwise.
    """

    name: str
    pattern: str
    signal: Signal
    separator: str
    has_header: bool
    timestamp_col: Union[int, str]
    value_col: Union[int, str]
    timestamp_format: str
    n_columns: Optional[int] = None

    @property
    def timestamp_width(self) -> int:
        return sum(_PATTERN_WIDTH[t] for t in re.findall(r"%[A-Za-z]", self.timestamp_format))

    @property
    def expected(self) -> str:
        sep = "whitespace" if self.separator == r"\s+" else repr(self.separator)
        header = "header" if self.has_header else "no header"
        return (
            f"{self.name}: {sep}-separated, {header}, "
            f"timestamp={self.timestamp_col!r} ({self.timestamp_format}), "
            f"value={self.value_col!r}"
        )

    def matches(self, path: str) -> bool:
        return fnmatch.fnmatchcase(os.path.basename(str(path)), self.pattern)


RAW_FORMATS: Sequence[RawFormat] = (
    RawFormat("flow_15min", "*Q15*", Signal.FLOW, r"\s+", False, 0, 1, "%Y%m%d%H%M%S", 2),
    RawFormat("level_15min", "*W15*", Signal.LEVEL, r"\s+", False, 0, 1, "%Y%m%d%H%M%S", 2),
    RawFormat("rain_hourly", "*rr_stunde*", Signal.RAIN, ";", True, "MESS_DATUM", "R1", "%Y%m%d%H"),
    RawFormat("temperature_hourly", "*tu_stunde*", Signal.TEMPERATURE, ";", True, "MESS_DATUM", "TT_TU", "%Y%m%d%H"),
)


def detect_format(path: str, formats: Sequence[RawFormat] = RAW_FORMATS) -> RawFormat:
    """Return the first format whose pattern matches the file name."""
    for fmt in formats:
        if fmt.matches(path):
            return fmt
    expected = ", ".join(f.pattern for f in formats)
    raise ParseError(path, expected, "file name matches no known raw format")


def station_from_filename(path: str) -> str:
    """``"Kalkofen_W15.txt"`` -> ``"KALKOFEN"``."""
    stem = os.path.splitext(os.path.basename(str(path)))[0]
    token = _STATION_SPLIT.split(stem, maxsplit=1)[0].strip().upper()
    if not token:
        raise ParseError(path, "<station>[ _-]<suffix>", "no station token in file name")
    return token


# ---------------------------------------------------------------------
# Single file
# ---------------------------------------------------------------------


def read_raw_file(
    path: str,
    fmt: Optional[RawFormat] = None,
    *,
    source_timezone: str = "UTC",
) -> pd.DataFrame:
    """
    Parse one raw file into the canonical long format.

    Parameters
    ----------
    path :
        File to read.
    fmt :
        Format descriptor. Detected from the file name when omitted.
    source_timezone :
        Timezone of the raw timestamps. Output timestamps are UTC.

    Returns
    -------
    DataFrame
        Columns ``timestamp, station, signal, value``. Only the literal ``"NULL"``
        becomes ``NaN``; absent or empty fields are rejected.

    Raises
    ------
    ParseError
        If the file does not conform to *fmt*.
    """
    fmt = fmt or detect_format(path)
    station = station_from_filename(path)

    try:
        raw = pd.read_csv(
            path,
            sep=fmt.separator,
            header=0 if fmt.has_header else None,
            dtype=str,
            na_filter=False,
            skipinitialspace=fmt.separator != r"\s+",
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise ParseError(path, fmt.expected, f"unreadable table ({exc})") from exc

    if fmt.has_header:
        raw.columns = [str(c).strip() for c in raw.columns]
        missing = [c for c in (fmt.timestamp_col, fmt.value_col) if c not in raw.columns]
        if missing:
            raise ParseError(path, fmt.expected, f"missing columns {missing}")
    elif fmt.n_columns is not None and raw.shape[1] != fmt.n_columns:
        raise ParseError(
            path, fmt.expected, f"found {raw.shape[1]} columns, expected {fmt.n_columns}"
        )

    if raw.empty:
        raise ParseError(path, fmt.expected, "no data rows")

    ts_raw = raw[fmt.timestamp_col].str.strip()
    width = fmt.timestamp_width
    bad_ts = ~ts_raw.fillna("").str.fullmatch(rf"\d{{{width}}}")
    if bad_ts.any():
        first = ts_raw[bad_ts].iloc[0]
        raise ParseError(
            path,
            fmt.expected,
            f"{int(bad_ts.sum())} malformed timestamps (first: {first!r} at row {bad_ts.idxmax()})",
        )
    try:
        ts = pd.to_datetime(ts_raw, format=fmt.timestamp_format)
    except (ValueError, TypeError) as exc:
        raise ParseError(path, fmt.expected, f"invalid timestamp ({exc})") from exc

    ts = ts.dt.tz_localize(source_timezone, ambiguous="NaT", nonexistent="NaT")
    if ts.isna().any():
        raise ParseError(
            path,
            fmt.expected,
            f"{int(ts.isna().sum())} timestamps are not representable in {source_timezone}",
        )
    ts = ts.dt.tz_convert("UTC")

    val_raw = raw[fmt.value_col].str.strip()
    absent = val_raw.isna() | (val_raw == "")
    if absent.any():
        raise ParseError(
            path,
            fmt.expected,
            f"{int(absent.sum())} rows without a value (first at row {absent.idxmax()}); "
            "missing values must be written as NULL",
        )
    is_null = val_raw == "NULL"
    values = pd.to_numeric(val_raw.mask(is_null), errors="coerce")
    bad_val = values.isna() & ~is_null
    if bad_val.any():
        first = val_raw[bad_val].iloc[0]
        raise ParseError(
            path, fmt.expected, f"{int(bad_val.sum())} non-numeric values (first: {first!r})"
        )

    out = pd.DataFrame(
        {
            "timestamp": ts,
            "station": station,
            "signal": fmt.signal.value,
            "value": values.astype("float64"),
        }
    ).reset_index(drop=True)
    logger.debug("Parsed %s (%s): %d rows", path, fmt.name, len(out))
    return out


# ---------------------------------------------------------------------
# Station aliases
# ---------------------------------------------------------------------


def apply_station_aliases(df: pd.DataFrame, aliases: Dict[str, str]) -> pd.DataFrame:
    """
    Map raw station tokens to canonical names and drop unused categories.

    Returns a copy; ``station`` is categorical in the output.
    """
    out = df.copy()
    station = out["station"].astype("category")
    if aliases:
        present = set(station.cat.categories)
        targets = sorted({v for k, v in aliases.items() if k in present} - present)
        station = station.cat.add_categories(targets)
        for raw_name, canonical in aliases.items():
            if raw_name in present and raw_name != canonical:
                station = station.mask(station == raw_name, canonical)
        station = station.astype("category")
    out["station"] = station.cat.remove_unused_categories()
    return out


# ---------------------------------------------------------------------
# Many files
# ---------------------------------------------------------------------


def discover_raw_files(
    input_dir: str, formats: Sequence[RawFormat] = RAW_FORMATS
) -> List[str]:
    """Sorted paths under *input_dir* matching one of *formats*."""
    if not os.path.isdir(input_dir):
        raise ParseError(input_dir, "a directory of raw files", "not a directory")
    found: List[str] = []
    for name in sorted(os.listdir(input_dir)):
        path = os.path.join(input_dir, name)
        if not os.path.isfile(path):
            continue
        if any(f.matches(path) for f in formats):
            found.append(path)
        else:
            logger.info("Ignoring %s: no matching raw format", path)
    if not found:
        expected = ", ".join(f.pattern for f in formats)
        raise ParseError(input_dir, expected, "no raw files found")
    return found


def load_raw_files(
    paths: Iterable[str],
    *,
    aliases: Optional[Dict[str, str]] = None,
    source_timezone: str = "UTC",
    formats: Sequence[RawFormat] = RAW_FORMATS,
) -> pd.DataFrame:
    """
    Parse every file in *paths* and return one long table.

    The first non-conforming file aborts the load with :class:`ParseError`.
    """
    blocks = []
    for p in paths:
        fmt = detect_format(p, formats)
        blocks.append(read_raw_file(p, fmt, source_timezone=source_timezone))
    if not blocks:
        raise ValueError("No raw files given.")

    df = pd.concat(blocks, ignore_index=True)
    df = apply_station_aliases(df, aliases or {})
    df["signal"] = df["signal"].astype("category")
    df = df.sort_values(["station", "signal", "timestamp"], kind="mergesort")
    df = df.reset_index(drop=True)[LONG_COLUMNS]
    logger.info(
        "Loaded %d observations from %d files (%d stations)",
        len(df),
        len(blocks),
        df["station"].nunique(),
    )
    return df


def long_frame(records: Iterable[dict]) -> pd.DataFrame:
    """Build a canonical long table from ``dict`` records (timestamps -> UTC)."""
    df = pd.DataFrame(list(records), columns=LONG_COLUMNS)
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    df["station"] = df["station"].astype(str).str.upper().astype("category")
    df["signal"] = df["signal"].map(lambda s: Signal.parse(s).value).astype("category")
    df["value"] = df["value"].astype("float64")
    return df


__all__ = [
    "LONG_COLUMNS",
    "RawFormat",
    "RAW_FORMATS",
    "detect_format",
    "station_from_filename",
    "read_raw_file",
    "apply_station_aliases",
    "discover_raw_files",
    "load_raw_files",
    "long_frame",
]
