from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional, Tuple, Mapping, Sequence

import pandas as pd

from fmlib.errors import DegenerateParameterError
from fmlib.metrics import METRIC_DEFAULTS, extract_metrics
from fmlib.utils import (
    _is_num,
    _is_pos,
    _merge_overrides,
    _model_confidence_from_flags,
    model_assumptions,
)

LBO_DEFAULTS: Dict[str, Any] = {
    "years": 5,
    "purchase_multiple": 8.0,
    "equity_share": 0.40,
    "interest_rate": 0.08,
    "growth_rate": 0.10,
    "ebitda_margin": 0.20,
    "paydown_share": 0.40,    # share of each year's EBITDA applied to debt
    "exit_multiple": 7.0,
}


@dataclass(frozen=True)
class LBOProjection:
    year: int
    revenue: float
    ebitda: float
    interest_expense: float
    debt_paydown: float
    remaining_debt: float


@dataclass(frozen=True)
class LBOResult:
    projections: Tuple[LBOProjection, ...]
    entry_enterprise_value: float
    equity_contribution: float
    debt_financing: float
    exit_enterprise_value: float
    exit_remaining_debt: float
    exit_equity_value: float
    irr: float
    assumptions: Dict[str, Any] = field(default_factory=dict)
    notes: Tuple[str, ...] = ()
    confidence: Dict[str, Any] = field(default_factory=dict)

    kind = "LBO"

    def projection_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(p) for p in self.projections])


def _check_lbo_params(params: Dict[str, Any]) -> None:
    years = params["years"]
    if not isinstance(years, int) or isinstance(years, bool) or years < 1:
        raise DegenerateParameterError(f"LBO horizon must be a positive whole number of years, got {years!r}.")
    for key in ("purchase_multiple", "equity_share"):
        if not _is_pos(params[key]):
            raise DegenerateParameterError(f"LBO {key} must be positive, got {params[key]!r}.")
    for key in ("interest_rate", "growth_rate", "ebitda_margin", "paydown_share", "exit_multiple"):
        if not _is_num(params[key]):
            raise DegenerateParameterError(f"LBO {key} must be a finite number, got {params[key]!r}.")


def run_lbo(
    rows: Sequence[Mapping[str, Any]],
    *,
    overrides: Optional[Dict[str, Any]] = None,
    metric_overrides: Optional[Dict[str, Any]] = None,
    as_of_date: Optional[str] = None,
) -> LBOResult:
    """
    Simplified leveraged buyout on the uploaded dataset.

    Entry at 8x latest EBITDA funded 40% equity / 60% debt. Revenue grows 10% a
    year from the latest figure at a 20% EBITDA margin; interest is 8% on the
    entry debt; 40% of each year's EBITDA goes to paydown. Exit at 7x final
    EBITDA; IRR is the equity CAGR over the horizon.

    Remaining debt in year y is max(0, debt0 - paydown_y * y): a cumulative
    approximation rather than a running balance, so it need not be monotonic.

    Raises DegenerateParameterError when entry equity is not positive or a
    figure overflows to a non-finite value.
    """
    params = _merge_overrides(LBO_DEFAULTS, overrides)
    _check_lbo_params(params)
    m = extract_metrics(rows, overrides=metric_overrides)

    notes = list(m.notes)
    flags = dict(m.flags)

    entry_ev = m.latest_ebitda * params["purchase_multiple"]
    equity0 = entry_ev * params["equity_share"]
    debt0 = entry_ev - equity0
    if equity0 <= 0:
        raise DegenerateParameterError(
            f"Equity contribution of {equity0:,.0f} is not positive (latest EBITDA {m.latest_ebitda:,.0f}); IRR is undefined."
        )

    years = params["years"]
    projections: List[LBOProjection] = []
    for y in range(1, years + 1):
        try:
            revenue = m.latest_revenue * (1 + params["growth_rate"]) ** y
        except OverflowError as exc:
            raise DegenerateParameterError(f"LBO revenue projection overflowed in year {y}: {exc}") from exc
        ebitda = revenue * params["ebitda_margin"]
        interest = debt0 * params["interest_rate"]
        paydown = ebitda * params["paydown_share"]
        remaining = max(0.0, debt0 - paydown * y)
        projections.append(LBOProjection(
            year=y,
            revenue=revenue,
            ebitda=ebitda,
            interest_expense=interest,
            debt_paydown=paydown,
            remaining_debt=remaining,
        ))

    final = projections[-1]
    exit_ev = final.ebitda * params["exit_multiple"]
    equity_value = exit_ev - final.remaining_debt

    flags["debt_fully_repaid"] = final.remaining_debt == 0.0
    flags["negative_exit_equity"] = equity_value <= 0
    if flags["negative_exit_equity"]:
        irr = -1.0
        notes.append("Exit equity value is not positive; IRR floored at -100%.")
    else:
        irr = (equity_value / equity0) ** (1 / years) - 1

    figures = [entry_ev, equity0, debt0, exit_ev, equity_value, irr]
    for p in projections:
        figures.extend([p.revenue, p.ebitda, p.interest_expense, p.debt_paydown, p.remaining_debt])
    if not all(_is_num(v) for v in figures):
        raise DegenerateParameterError("LBO produced a non-finite value; check EBITDA, growth and multiple inputs.")

    return LBOResult(
        projections=tuple(projections),
        entry_enterprise_value=float(entry_ev),
        equity_contribution=float(equity0),
        debt_financing=float(debt0),
        exit_enterprise_value=float(exit_ev),
        exit_remaining_debt=float(final.remaining_debt),
        exit_equity_value=float(equity_value),
        irr=float(irr),
        assumptions=model_assumptions(
            "LBO",
            dict(params, metrics=_merge_overrides(METRIC_DEFAULTS, metric_overrides)),
            as_of_date=as_of_date,
        ),
        notes=tuple(notes),
        confidence=_model_confidence_from_flags(flags, context="run_lbo"),
    )


__all__ = [
    'LBO_DEFAULTS',
    'LBOProjection',
    'LBOResult',
    '_check_lbo_params',
    'run_lbo',
]
