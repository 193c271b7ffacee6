from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Mapping, Sequence

import pandas as pd

from fmlib.dcf import DCFResult
from fmlib.lbo import LBOResult
from fmlib.sensitivity import SensitivityResult
from fmlib.utils import _fmt_pct, _round_half_up

# Display name -> engine key (None = listed in the catalogue but not implemented)
MODEL_TEMPLATES: Dict[str, Optional[str]] = {
    "DCF Analysis": "DCF",
    "LBO Model": "LBO",
    "Sensitivity Analysis": "Sensitivity",
    "Comparable Company Analysis": None,
    "Merger Model": None,
}

_TEMPLATE_ALIASES: Dict[str, str] = {
    "dcf": "DCF",
    "discounted cash flow": "DCF",
    "lbo": "LBO",
    "leveraged buyout": "LBO",
    "lbo analysis": "LBO",
    "sensitivity": "Sensitivity",
}

RAW_DATA_SHEET = "Raw Data"
MODEL_SHEET_NAMES = {
    "DCF": "DCF Analysis",
    "LBO": "LBO Analysis",
    "Sensitivity": "Sensitivity Analysis",
}
PLACEHOLDER_NOTE = "Template not implemented yet"

_RESULT_TYPES = {"DCF": DCFResult, "LBO": LBOResult, "Sensitivity": SensitivityResult}


@dataclass
class ReportSheet:
    name: str
    rows: List[List[Any]] = field(default_factory=list)


def resolve_template(name: Any) -> Optional[str]:
    """'DCF Analysis' / 'dcf' / 'LBO Model' ... -> 'DCF' | 'LBO' | 'Sensitivity'; None when unknown."""
    if not isinstance(name, str):
        return None
    key = " ".join(name.strip().lower().split())
    for display, engine_key in MODEL_TEMPLATES.items():
        if key == display.lower():
            return engine_key
    return _TEMPLATE_ALIASES.get(key)


def _raw_data_sheet(rows: Sequence[Mapping[str, Any]]) -> ReportSheet:
    columns: List[str] = []
    for r in rows:
        for k in r.keys():
            if k not in columns:
                columns.append(k)
    out: List[List[Any]] = [list(columns)] if columns else []
    for r in rows:
        out.append([r.get(c) for c in columns])
    return ReportSheet(RAW_DATA_SHEET, out)


def _dcf_rows(result: DCFResult) -> List[List[Any]]:
    rows: List[List[Any]] = [
        ["DCF Analysis"],
        ["Historical Growth Rate", _fmt_pct(result.historical_growth)],
        ["EBIT Margin", _fmt_pct(result.ebit_margin)],
        [],
        ["Year", "Revenue", "EBIT", "Free Cash Flow", "Present Value"],
    ]
    for p in result.projections:
        rows.append([
            p.year,
            _round_half_up(p.revenue),
            _round_half_up(p.ebit),
            _round_half_up(p.free_cash_flow),
            _round_half_up(p.present_value),
        ])
    rows.extend([
        [],
        ["Terminal Value", _round_half_up(result.terminal_value)],
        ["Present Value of Terminal Value", _round_half_up(result.pv_terminal_value)],
        ["Enterprise Value", _round_half_up(result.enterprise_value)],
    ])
    return rows


def _lbo_rows(result: LBOResult) -> List[List[Any]]:
    rows: List[List[Any]] = [
        ["Enterprise Value", _round_half_up(result.entry_enterprise_value)],
        ["Equity Contribution", _round_half_up(result.equity_contribution)],
        ["Debt Financing", _round_half_up(result.debt_financing)],
        [],
        ["Year", "Revenue", "EBITDA", "Interest Expense", "Debt Paydown", "Remaining Debt"],
    ]
    for p in result.projections:
        rows.append([
            p.year,
            _round_half_up(p.revenue),
            _round_half_up(p.ebitda),
            _round_half_up(p.interest_expense),
            _round_half_up(p.debt_paydown),
            _round_half_up(p.remaining_debt),
        ])
    rows.extend([
        [],
        ["Exit Enterprise Value", _round_half_up(result.exit_enterprise_value)],
        ["Remaining Debt", _round_half_up(result.exit_remaining_debt)],
        ["Equity Value", _round_half_up(result.exit_equity_value)],
        ["IRR", _fmt_pct(result.irr)],
    ])
    return rows


def _growth_label(g: float) -> str:
    sign = "+" if g > 0 else ""
    return f"{sign}{g * 100:.1f}% Growth"


def _sensitivity_rows(result: SensitivityResult) -> List[List[Any]]:
    rows: List[List[Any]] = [[""] + [f"{_fmt_pct(w)} WACC" for w in result.wacc_values]]
    for g, cells in zip(result.growth_deltas, result.matrix):
        rows.append([_growth_label(g)] + list(cells))
    return rows


_SHEET_BUILDERS = {"DCF": _dcf_rows, "LBO": _lbo_rows, "Sensitivity": _sensitivity_rows}


def build_report(template: Any, result: Any, rows: Sequence[Mapping[str, Any]]) -> List[ReportSheet]:
    """
    Assemble the tabular report for a template: a leading 'Raw Data' sheet with
    the canonical dataset, then the model sheet.

    Templates without an implementation get a model sheet holding the single
    row ('Note', 'Template not implemented yet'); no error is raised.
    """
    raw = _raw_data_sheet(rows)
    key = resolve_template(template)
    if key is None:
        name = str(template).strip() if template is not None else ""
        return [raw, ReportSheet(name or "Model", [["Note", PLACEHOLDER_NOTE]])]

    expected = _RESULT_TYPES[key]
    if not isinstance(result, expected):
        raise TypeError(f"{key} report needs a {expected.__name__}, got {type(result).__name__}.")
    return [raw, ReportSheet(MODEL_SHEET_NAMES[key], _SHEET_BUILDERS[key](result))]


def report_to_frames(report: Sequence[ReportSheet]) -> Dict[str, pd.DataFrame]:
    """One headerless DataFrame per sheet, cells exactly as laid out."""
    return {sheet.name: pd.DataFrame(sheet.rows) for sheet in report}


def report_to_markdown(report: Sequence[ReportSheet]) -> str:
    """Render every sheet as a pipe table under a '## <sheet>' heading."""
    parts: List[str] = []
    for sheet in report:
        parts.append(f"## {sheet.name}")
        width = max((len(r) for r in sheet.rows), default=0)
        if width == 0:
            parts.append("_No rows._")
            continue
        for i, r in enumerate(sheet.rows):
            cells = ["" if v is None else str(v) for v in r] + [""] * (width - len(r))
            parts.append("| " + " | ".join(cells) + " |")
            if i == 0:
                parts.append("|" + "---|" * width)
    return "\n".join(parts)


def _excel_sheet_name(name: str, used: set) -> str:
    # Excel: max 31 chars, no []:*?/\ and unique per workbook
    base = re.sub(r"[\[\]:*?/\\]", "_", name).strip() or "Sheet"
    base = base[:31]
    candidate, n = base, 1
    while candidate.lower() in used:
        n += 1
        suffix = f" ({n})"
        candidate = base[:31 - len(suffix)] + suffix
    used.add(candidate.lower())
    return candidate


def save_report_excel(report: Sequence[ReportSheet], path: str = "output/model_report.xlsx") -> str:
    """
    Write a report to an .xlsx workbook, one worksheet per sheet.
    Returns the path written.
    """
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    used: set = set()
    with pd.ExcelWriter(path, engine="xlsxwriter") as writer:
        for sheet in report:
            df = pd.DataFrame(sheet.rows)
            df.to_excel(writer, sheet_name=_excel_sheet_name(sheet.name, used), index=False, header=False)
    return path


__all__ = [
    'MODEL_TEMPLATES',
    'RAW_DATA_SHEET',
    'MODEL_SHEET_NAMES',
    'PLACEHOLDER_NOTE',
    'ReportSheet',
    'resolve_template',
    'build_report',
    'report_to_frames',
    'report_to_markdown',
    'save_report_excel',
]
