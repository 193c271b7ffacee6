from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Tuple, Mapping, Sequence

import pandas as pd

from fmlib.dcf import DCF_DEFAULTS, run_dcf
from fmlib.metrics import METRIC_DEFAULTS
from fmlib.errors import DegenerateParameterError
from fmlib.utils import _is_num, _is_pos, _merge_overrides, model_assumptions

SENSITIVITY_DEFAULTS: Dict[str, Any] = {
    "growth_deltas": (-0.02, -0.01, 0.0, 0.01, 0.02),
    "wacc_values": (0.08, 0.09, 0.10, 0.11, 0.12),
    "display_scale": 1_000_000,   # cells reported in millions
    "decimals": 1,
}


@dataclass(frozen=True)
class SensitivityResult:
    base_enterprise_value: float
    base_wacc: float
    growth_deltas: Tuple[float, ...]
    wacc_values: Tuple[float, ...]
    matrix: Tuple[Tuple[float, ...], ...]   # rows = growth delta, columns = WACC
    assumptions: Dict[str, Any] = field(default_factory=dict)
    notes: Tuple[str, ...] = ()
    confidence: Dict[str, Any] = field(default_factory=dict)

    kind = "Sensitivity"

    def grid_frame(self) -> pd.DataFrame:
        """Long form: one row per (growth delta, WACC) cell."""
        rows = []
        for g, cells in zip(self.growth_deltas, self.matrix):
            for w, v in zip(self.wacc_values, cells):
                rows.append({"Growth_Delta": g, "WACC": w, "EV_Millions": v})
        return pd.DataFrame(rows)

    def wide_frame(self) -> pd.DataFrame:
        wide = pd.DataFrame(list(self.matrix), index=list(self.growth_deltas), columns=list(self.wacc_values))
        wide.index.name = "Growth_Delta"
        wide.columns.name = "WACC"
        return wide


def _sensitivity_matrix_from_inputs(
    *,
    base_ev: float,
    base_wacc: float,
    growth_deltas: Sequence[float],
    wacc_values: Sequence[float],
    display_scale: float = SENSITIVITY_DEFAULTS["display_scale"],
    decimals: int = SENSITIVITY_DEFAULTS["decimals"],
) -> List[List[float]]:
    """
    First-order scaling of the base EV, not a re-discounted cash-flow schedule:

        cell(g, r) = base_ev * (1 + g) / (1 + (r - base_wacc)) / display_scale

    The discount adjustment is relative to the base WACC, so the (0, base_wacc)
    cell reproduces the base EV.
    """
    if not _is_pos(display_scale):
        raise DegenerateParameterError(f"display_scale must be positive, got {display_scale!r}.")
    matrix: List[List[float]] = []
    for g in growth_deltas:
        row: List[float] = []
        for r in wacc_values:
            divisor = 1 + (float(r) - float(base_wacc))
            if divisor <= 0:
                raise DegenerateParameterError(
                    f"WACC of {r:.1%} against a base of {base_wacc:.1%} gives a non-positive discount factor."
                )
            cell = base_ev * (1 + float(g)) / divisor / display_scale
            if not _is_num(cell):
                raise DegenerateParameterError(
                    f"Sensitivity cell at {float(g):+.1%} growth, {r:.1%} WACC is not a finite number."
                )
            row.append(round(cell, int(decimals)))
        matrix.append(row)
    return matrix


def run_sensitivity(
    rows: Sequence[Mapping[str, Any]],
    *,
    overrides: Optional[Dict[str, Any]] = None,
    dcf_overrides: Optional[Dict[str, Any]] = None,
    metric_overrides: Optional[Dict[str, Any]] = None,
    as_of_date: Optional[str] = None,
) -> SensitivityResult:
    """
    Growth x WACC sensitivity of the DCF enterprise value (in millions).

    Base EV is run_dcf on the same dataset; growth deltas -2%..+2% against
    WACC 8%..12% by default.

    Each cell is base_ev * (1 + g) / (1 + (r - base_wacc)), not
    base_ev * (1 + g) / (1 + r): the discount is taken relative to the base
    WACC so the (0%, base WACC) cell equals the base EV. Off-centre cells
    therefore read higher than a raw (1 + r) divisor would give (2037.6
    rather than 1849.0 at 8% WACC for a 1,996.9M base).
    """
    params = _merge_overrides(SENSITIVITY_DEFAULTS, overrides)
    growth_deltas = tuple(float(g) for g in params["growth_deltas"])
    wacc_values = tuple(float(w) for w in params["wacc_values"])
    if not growth_deltas or not wacc_values:
        raise DegenerateParameterError("Sensitivity grid requires at least one growth delta and one WACC value.")
    if not all(_is_num(v) for v in growth_deltas + wacc_values):
        raise DegenerateParameterError("Sensitivity grid values must be finite numbers.")

    base = run_dcf(rows, overrides=dcf_overrides, metric_overrides=metric_overrides, as_of_date=as_of_date)
    base_wacc = float(_merge_overrides(DCF_DEFAULTS, dcf_overrides)["wacc"])

    matrix = _sensitivity_matrix_from_inputs(
        base_ev=base.enterprise_value,
        base_wacc=base_wacc,
        growth_deltas=growth_deltas,
        wacc_values=wacc_values,
        display_scale=params["display_scale"],
        decimals=params["decimals"],
    )

    notes = list(base.notes)
    notes.append("Cells scale the base enterprise value; cash flows are not re-discounted per cell.")

    payload = dict(params)
    payload["base_wacc"] = base_wacc
    payload["metrics"] = _merge_overrides(METRIC_DEFAULTS, metric_overrides)
    return SensitivityResult(
        base_enterprise_value=base.enterprise_value,
        base_wacc=base_wacc,
        growth_deltas=growth_deltas,
        wacc_values=wacc_values,
        matrix=tuple(tuple(r) for r in matrix),
        assumptions=model_assumptions("Sensitivity", payload, as_of_date=as_of_date),
        notes=tuple(notes),
        confidence=dict(base.confidence, context="run_sensitivity"),
    )


__all__ = [
    'SENSITIVITY_DEFAULTS',
    'SensitivityResult',
    '_sensitivity_matrix_from_inputs',
    'run_sensitivity',
]
