from __future__ import annotations

import json
import math
import hashlib
import numbers
import datetime as dt
from typing import List, Dict, Any, Optional

import numpy as np
import pandas as pd

# -----------------------------
# General helpers
# -----------------------------
def _today_iso() -> str:
    return dt.date.today().isoformat()

def _is_num(x) -> bool:
    try:
        return (x is not None) and np.isfinite(float(x))
    except Exception:
        return False

def _is_pos(x) -> bool:
    try:
        v = float(x)
        return np.isfinite(v) and v > 0
    except Exception:
        return False

def _is_number_value(x) -> bool:
    """True for real numeric values (not bools, not numeric-looking strings)."""
    if isinstance(x, (bool, np.bool_)) or not isinstance(x, numbers.Real):
        return False
    return bool(np.isfinite(float(x)))

def _is_truthy_number(x) -> bool:
    # A metric cell only counts when it holds a finite, non-zero number.
    return _is_number_value(x) and float(x) != 0.0

def _round_half_up(x: float) -> int:
    return int(math.floor(float(x) + 0.5))

def _fmt_pct(x: float, decimals: int = 1) -> str:
    return f"{float(x) * 100:.{decimals}f}%"

def _merge_overrides(defaults: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    merged = dict(defaults)
    if not overrides:
        return merged
    for k, v in overrides.items():
        if k in merged and v is not None:
            merged[k] = v
    return merged


def _model_confidence_from_flags(
    flags: Dict[str, Any],
    *,
    context: str,
    extra_reasons: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Build a machine-readable confidence assessment for a model result.

    This scores how much of the model rests on the uploaded data versus
    fallback assumptions. It says nothing about whether the valuation is right.
    """
    rules = {
        "used_default_growth": (0.20, "Growth used the 10% default instead of revenue history."),
        "short_revenue_history": (0.10, "Fewer than two revenue periods were found."),
        "negative_revenue": (0.15, "Revenue history contains negative values."),
        "assumed_ebit": (0.20, "EBIT was assumed at 15% of latest revenue."),
        "assumed_ebitda": (0.20, "EBITDA was assumed at 20% of latest revenue."),
        "non_positive_ebit_margin": (0.25, "EBIT margin is zero or negative."),
        "negative_exit_equity": (0.30, "Exit equity value is negative; IRR floored at -100%."),
        "debt_fully_repaid": (0.05, "Debt is fully repaid before exit."),
    }

    score = 1.0
    reasons: List[str] = []
    normalized_flags: Dict[str, bool] = {}

    for key, value in (flags or {}).items():
        active = bool(value)
        normalized_flags[key] = active
        if not active:
            continue
        penalty, reason = rules.get(key, (0.03, f"Flag raised: {key}"))
        score -= penalty
        reasons.append(reason)

    if extra_reasons:
        reasons.extend([str(r) for r in extra_reasons if str(r).strip()])

    score = max(0.0, min(1.0, round(float(score), 3)))
    if score >= 0.75:
        level = "high"
    elif score >= 0.45:
        level = "medium"
    else:
        level = "low"

    # Deduplicate reasons while preserving order
    seen = set()
    reasons_deduped = []
    for r in reasons:
        if r not in seen:
            reasons_deduped.append(r)
            seen.add(r)

    return {
        "schema_version": "1.0",
        "context": context,
        "score": score,
        "level": level,
        "reasons": reasons_deduped,
        "flags": normalized_flags,
    }


MODEL_ASSUMPTIONS_SCHEMA_VERSION = "1.0"


def _assumptions_snapshot_id(model: str, params: Dict[str, Any]) -> str:
    """Deterministic fingerprint for the effective model parameters."""
    material = {
        "model": model,
        "params": {k: (list(v) if isinstance(v, tuple) else v) for k, v in params.items()},
        "assumptions_schema_version": MODEL_ASSUMPTIONS_SCHEMA_VERSION,
    }
    raw = json.dumps(material, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha1(raw.encode("utf-8")).hexdigest()[:12]
    return f"fm-{model.lower()}-{digest}"


def model_assumptions(
    model: str,
    params: Dict[str, Any],
    *,
    as_of_date: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Return the effective assumptions payload for a model result.

    The snapshot id depends only on the model name and its parameters, so two
    runs with the same configuration share an id regardless of date.
    as_of_date stays None unless the caller stamps one, so repeated runs on the
    same dataset compare equal on any day.
    """
    payload = dict(params)
    payload["as_of_date"] = as_of_date
    payload["assumptions_schema_version"] = MODEL_ASSUMPTIONS_SCHEMA_VERSION
    payload["assumptions_snapshot_id"] = _assumptions_snapshot_id(model, params)
    return payload


def to_records(obj, analysis_report_date: Optional[str] = None, schema_version: str = "1.0", notes: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Convert DataFrame / dict / list[dict] to an LLM-friendly JSON envelope with flat primitives.
    """
    if analysis_report_date is None:
        analysis_report_date = _today_iso()

    if isinstance(obj, pd.DataFrame):
        data = json.loads(obj.to_json(orient="records"))
    elif isinstance(obj, dict):
        data = [obj]
    elif isinstance(obj, list):
        data = obj
    else:
        data = [{"value": str(obj)}]

    # replace NaN with None
    def _nan_to_none(v):
        if isinstance(v, float) and (np.isnan(v) or np.isinf(v)):
            return None
        return v

    if isinstance(data, list):
        data = [{k: _nan_to_none(v) for k, v in row.items()} if isinstance(row, dict) else row for row in data]

    return {
        "schema_version": schema_version,
        "analysis_report_date": analysis_report_date,
        "data": data,
        "notes": notes or []
    }


__all__ = [
    '_today_iso',
    '_is_num',
    '_is_pos',
    '_is_number_value',
    '_is_truthy_number',
    '_round_half_up',
    '_fmt_pct',
    '_merge_overrides',
    '_model_confidence_from_flags',
    '_assumptions_snapshot_id',
    'to_records',
    'model_assumptions',
    'MODEL_ASSUMPTIONS_SCHEMA_VERSION',
]
