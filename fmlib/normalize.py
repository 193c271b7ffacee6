from __future__ import annotations

import re
import math
import numbers
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import List, Dict, Any, Optional, Union

import numpy as np
import pandas as pd

from fmlib.errors import InvalidInputError

_KEY_RE = re.compile(r"[^A-Za-z0-9]")
_INT_RE = re.compile(r"[+-]?\d+")
_FLOAT_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

SUPPORTED_TABLE_EXTENSIONS = (".csv", ".xlsx")


def normalize_key(key: Any) -> str:
    """'Operating Income ($)' -> 'operating_income____'. Empty headers become '_'."""
    k = _KEY_RE.sub("_", str(key)).lower()
    return k or "_"


def coerce_value(value: Any) -> Any:
    """
    Numeric-parse rule for a single cell.

    - bool / None pass through
    - real numbers come back as plain Python int/float (NaN kept: it means "missing")
    - strings are stripped; blank stays as given; integer literals -> int,
      decimal or scientific literals -> float; NaN/inf results keep the string
    - anything else passes through unchanged
    """
    if value is None or isinstance(value, (bool, np.bool_)):
        return value
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        return float(value)
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return value
        if _INT_RE.fullmatch(s):
            return int(s)
        if _FLOAT_RE.fullmatch(s):
            v = float(s)
            return v if math.isfinite(v) else value
        return value
    return value


def _as_row_sequence(raw_rows: Any) -> List[Mapping]:
    if isinstance(raw_rows, pd.DataFrame):
        return raw_rows.to_dict(orient="records")
    if raw_rows is None or isinstance(raw_rows, (str, bytes, Mapping)) or not isinstance(raw_rows, Sequence):
        raise InvalidInputError(
            f"Expected a sequence of row mappings, got {type(raw_rows).__name__}."
        )
    for i, row in enumerate(raw_rows):
        if not isinstance(row, Mapping):
            raise InvalidInputError(
                f"Row {i} is {type(row).__name__}, expected a mapping of column -> value."
            )
    return list(raw_rows)


def normalize_rows(raw_rows: Union[Sequence[Mapping], pd.DataFrame]) -> List[Dict[str, Any]]:
    """
    Convert parsed spreadsheet/CSV rows into the canonical dataset.

    Keys are lower-cased with every non-alphanumeric character replaced by '_';
    values go through `coerce_value`. Rows and columns are never dropped and
    input order is kept. The input is not modified.
    """
    rows = _as_row_sequence(raw_rows)
    out: List[Dict[str, Any]] = []
    for row in rows:
        clean: Dict[str, Any] = {}
        for key, value in row.items():
            clean[normalize_key(key)] = coerce_value(value)
        out.append(clean)
    return out


def load_table(path: Union[str, Path], *, sheet_name: Union[int, str] = 0) -> List[Dict[str, Any]]:
    """
    Read an uploaded .csv or .xlsx file into raw rows (first worksheet by default).
    Empty cells come back as None.
    """
    p = Path(path)
    ext = p.suffix.lower()
    if ext not in SUPPORTED_TABLE_EXTENSIONS:
        raise InvalidInputError(f"Unsupported file type '{ext or p.name}'. Please upload a CSV or XLSX file.")

    if ext == ".csv":
        df = pd.read_csv(p)
    else:
        df = pd.read_excel(p, sheet_name=sheet_name, engine="openpyxl")

    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


__all__ = [
    'SUPPORTED_TABLE_EXTENSIONS',
    'normalize_key',
    'coerce_value',
    'normalize_rows',
    'load_table',
]
