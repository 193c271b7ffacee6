from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional, Tuple, Mapping, Sequence

import pandas as pd

from fmlib.errors import DegenerateParameterError
from fmlib.metrics import METRIC_DEFAULTS, extract_metrics
from fmlib.utils import (
    _is_num,
    _merge_overrides,
    _model_confidence_from_flags,
    model_assumptions,
)

DCF_DEFAULTS: Dict[str, Any] = {
    "years": 5,
    "wacc": 0.10,
    "terminal_growth": 0.02,
    "tax_rate": 0.25,
}


@dataclass(frozen=True)
class DCFProjection:
    year: int
    revenue: float
    ebit: float
    free_cash_flow: float
    present_value: float


@dataclass(frozen=True)
class DCFResult:
    projections: Tuple[DCFProjection, ...]
    terminal_value: float
    pv_terminal_value: float
    enterprise_value: float
    historical_growth: float
    ebit_margin: float
    latest_revenue: float
    assumptions: Dict[str, Any] = field(default_factory=dict)
    notes: Tuple[str, ...] = ()
    confidence: Dict[str, Any] = field(default_factory=dict)

    kind = "DCF"

    def projection_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(p) for p in self.projections])


def _check_dcf_params(params: Dict[str, Any]) -> None:
    years = params["years"]
    wacc = params["wacc"]
    tg = params["terminal_growth"]
    if not isinstance(years, int) or isinstance(years, bool) or years < 1:
        raise DegenerateParameterError(f"DCF horizon must be a positive whole number of years, got {years!r}.")
    if not (_is_num(wacc) and _is_num(tg) and _is_num(params["tax_rate"])):
        raise DegenerateParameterError("DCF rates must be finite numbers.")
    if wacc <= -1:
        raise DegenerateParameterError(f"WACC of {wacc:.1%} makes the discount factor non-positive.")
    if wacc <= tg:
        raise DegenerateParameterError(
            f"WACC ({wacc:.1%}) must exceed terminal growth ({tg:.1%}); terminal value is undefined otherwise."
        )


def dcf_projection(
    latest_revenue: float,
    historical_growth: float,
    ebit_margin: float,
    *,
    years: int = DCF_DEFAULTS["years"],
    wacc: float = DCF_DEFAULTS["wacc"],
    terminal_growth: float = DCF_DEFAULTS["terminal_growth"],
    tax_rate: float = DCF_DEFAULTS["tax_rate"],
) -> Tuple[List[DCFProjection], float, float, float]:
    """
    Pure DCF core. For year y in 1..years:
        revenue = latest_revenue * (1 + growth)^y
        ebit    = revenue * ebit_margin
        fcf     = ebit * (1 - tax_rate)
        pv      = fcf / (1 + wacc)^y
    Terminal value is a Gordon growth on the final year's FCF.

    Returns (projections, terminal_value, pv_terminal_value, enterprise_value).
    Raises DegenerateParameterError when any figure overflows to a non-finite value.
    """
    _check_dcf_params({"years": years, "wacc": wacc, "terminal_growth": terminal_growth, "tax_rate": tax_rate})

    projections: List[DCFProjection] = []
    try:
        for y in range(1, years + 1):
            revenue = latest_revenue * (1 + historical_growth) ** y
            ebit = revenue * ebit_margin
            fcf = ebit * (1 - tax_rate)
            pv = fcf / (1 + wacc) ** y
            projections.append(DCFProjection(year=y, revenue=revenue, ebit=ebit, free_cash_flow=fcf, present_value=pv))

        last_fcf = projections[-1].free_cash_flow
        tv = last_fcf * (1 + terminal_growth) / (wacc - terminal_growth)
        ptv = tv / (1 + wacc) ** years
        ev = ptv + sum(p.present_value for p in projections)
    except OverflowError as exc:
        raise DegenerateParameterError(f"DCF projection overflowed: {exc}") from exc

    figures = [tv, ptv, ev]
    for p in projections:
        figures.extend([p.revenue, p.ebit, p.free_cash_flow, p.present_value])
    if not all(_is_num(v) for v in figures):
        raise DegenerateParameterError("DCF projection produced a non-finite value; check growth and margin inputs.")
    return projections, float(tv), float(ptv), float(ev)


def run_dcf(
    rows: Sequence[Mapping[str, Any]],
    *,
    overrides: Optional[Dict[str, Any]] = None,
    metric_overrides: Optional[Dict[str, Any]] = None,
    as_of_date: Optional[str] = None,
) -> DCFResult:
    """
    Five-year DCF on the uploaded dataset: latest revenue grown at the
    historical CAGR, EBIT at the latest margin, taxed at 25% and discounted at
    a 10% WACC, with a 2% perpetual-growth terminal value.

    `metric_overrides` adjusts the extraction fallbacks (METRIC_DEFAULTS).

    Raises InsufficientDataError (no revenue) or DegenerateParameterError
    (WACC <= terminal growth, or figures that are not finite).
    """
    params = _merge_overrides(DCF_DEFAULTS, overrides)
    _check_dcf_params(params)
    m = extract_metrics(rows, overrides=metric_overrides)

    projections, tv, ptv, ev = dcf_projection(
        m.latest_revenue,
        m.historical_growth,
        m.ebit_margin,
        years=params["years"],
        wacc=params["wacc"],
        terminal_growth=params["terminal_growth"],
        tax_rate=params["tax_rate"],
    )

    notes = list(m.notes)
    flags = dict(m.flags)
    flags["non_positive_ebit_margin"] = m.ebit_margin <= 0
    if flags["non_positive_ebit_margin"]:
        notes.append("EBIT margin is not positive; projected cash flows and enterprise value are negative.")

    return DCFResult(
        projections=tuple(projections),
        terminal_value=tv,
        pv_terminal_value=ptv,
        enterprise_value=ev,
        historical_growth=m.historical_growth,
        ebit_margin=m.ebit_margin,
        latest_revenue=m.latest_revenue,
        assumptions=model_assumptions(
            "DCF",
            dict(params, metrics=_merge_overrides(METRIC_DEFAULTS, metric_overrides)),
            as_of_date=as_of_date,
        ),
        notes=tuple(notes),
        confidence=_model_confidence_from_flags(flags, context="run_dcf"),
    )


__all__ = [
    'DCF_DEFAULTS',
    'DCFProjection',
    'DCFResult',
    '_check_dcf_params',
    'dcf_projection',
    'run_dcf',
]
