from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Tuple, Literal, Mapping, Sequence

from fmlib.errors import DegenerateParameterError, InsufficientDataError
from fmlib.normalize import _as_row_sequence
from fmlib.utils import _is_num, _is_truthy_number, _merge_overrides

METRIC_DEFAULTS: Dict[str, float] = {
    "default_growth": 0.10,
    "ebit_fallback_margin": 0.15,     # EBIT ~ 15% of latest revenue when absent
    "ebitda_fallback_margin": 0.20,   # EBITDA ~ 20% of latest revenue when absent
}


@dataclass(frozen=True)
class MetricRule:
    """
    One lookup rule: which canonical keys to try (in priority order), whether to
    collect every row ("series") or stop at the first row that has one ("first"),
    and the METRIC_DEFAULTS key holding the revenue ratio used when nothing matches.
    """

    name: str
    candidate_keys: Tuple[str, ...]
    mode: Literal["series", "first"] = "first"
    fallback_ratio_key: Optional[str] = None

    def value_in(self, row: Mapping[str, Any]) -> Optional[float]:
        for key in self.candidate_keys:
            v = row.get(key)
            if _is_truthy_number(v):
                return float(v)
        return None

    def collect(self, rows: Sequence[Mapping[str, Any]]) -> List[float]:
        found: List[float] = []
        for row in rows:
            v = self.value_in(row)
            if v is None:
                continue
            found.append(v)
            if self.mode == "first":
                break
        return found


METRIC_RULES: Tuple[MetricRule, ...] = (
    MetricRule("revenue", ("revenue", "sales"), mode="series"),
    MetricRule("ebit", ("ebit", "operating_income"), fallback_ratio_key="ebit_fallback_margin"),
    MetricRule("ebitda", ("ebitda",), fallback_ratio_key="ebitda_fallback_margin"),
)


@dataclass(frozen=True)
class ExtractedMetrics:
    revenues: Tuple[float, ...]
    historical_growth: float
    latest_revenue: float
    latest_ebit: float
    ebit_margin: float
    latest_ebitda: float
    flags: Dict[str, bool] = field(default_factory=dict)
    notes: Tuple[str, ...] = ()


def _rule(name: str) -> MetricRule:
    return next(r for r in METRIC_RULES if r.name == name)


def _compound_growth(revenues: Sequence[float]) -> Optional[float]:
    if len(revenues) < 2:
        return None
    first, last = revenues[0], revenues[-1]
    if first <= 0 or last <= 0:
        return None
    try:
        return (last / first) ** (1 / (len(revenues) - 1)) - 1
    except OverflowError:
        return float("inf")


def extract_metrics(
    rows: Sequence[Mapping[str, Any]],
    *,
    overrides: Optional[Dict[str, Any]] = None,
) -> ExtractedMetrics:
    """
    Locate revenue, EBIT and EBITDA in a canonical dataset using METRIC_RULES.

    - revenue: one value per row carrying `revenue` (else `sales`), row order kept
    - historical growth: CAGR from first to last revenue over n-1 periods;
      the 10% default when fewer than two periods (or a negative endpoint) exist
    - EBIT / EBITDA: first row carrying the metric, else a share of latest revenue

    Raises InsufficientDataError when no revenue figure exists, and
    DegenerateParameterError when growth or margin is not a finite number.
    """
    rows = _as_row_sequence(rows)
    params = _merge_overrides(METRIC_DEFAULTS, overrides)
    notes: List[str] = []
    flags: Dict[str, bool] = {
        "short_revenue_history": False,
        "negative_revenue": False,
        "used_default_growth": False,
        "assumed_ebit": False,
        "assumed_ebitda": False,
    }

    revenues = _rule("revenue").collect(rows)
    if not revenues:
        raise InsufficientDataError(
            "No revenue figure found (looked for 'revenue' and 'sales' columns); cannot build a model."
        )
    latest_revenue = revenues[-1]

    growth = _compound_growth(revenues)
    if growth is None:
        growth = float(params["default_growth"])
        flags["used_default_growth"] = True
        if len(revenues) < 2:
            flags["short_revenue_history"] = True
            notes.append(f"Only one revenue period found; using default growth of {growth:.1%}.")
        else:
            flags["negative_revenue"] = True
            notes.append(f"Revenue history has a non-positive endpoint; using default growth of {growth:.1%}.")
    elif not _is_num(growth):
        raise DegenerateParameterError(
            f"Revenue moves from {revenues[0]:g} to {revenues[-1]:g}; historical growth is not a finite number."
        )

    derived: Dict[str, float] = {}
    for rule in METRIC_RULES:
        if rule.mode != "first":
            continue
        hit = rule.collect(rows)
        if hit:
            derived[rule.name] = hit[0]
            continue
        ratio = float(params[rule.fallback_ratio_key])
        derived[rule.name] = latest_revenue * ratio
        flags[f"assumed_{rule.name}"] = True
        notes.append(f"No {rule.name.upper()} column found; assumed {ratio:.0%} of latest revenue.")

    latest_ebit = derived["ebit"]
    ebit_margin = latest_ebit / latest_revenue
    if not (_is_num(ebit_margin) and _is_num(derived["ebitda"])):
        raise DegenerateParameterError("EBIT margin or EBITDA is not a finite number for this dataset.")
    return ExtractedMetrics(
        revenues=tuple(revenues),
        historical_growth=float(growth),
        latest_revenue=float(latest_revenue),
        latest_ebit=float(latest_ebit),
        ebit_margin=float(ebit_margin),
        latest_ebitda=float(derived["ebitda"]),
        flags=flags,
        notes=tuple(notes),
    )


__all__ = [
    'METRIC_DEFAULTS',
    'METRIC_RULES',
    'MetricRule',
    'ExtractedMetrics',
    '_compound_growth',
    'extract_metrics',
]
