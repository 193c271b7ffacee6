from __future__ import annotations

from typing import List, Dict, Any, Optional, Mapping, Sequence

from fmlib.dcf import run_dcf
from fmlib.lbo import run_lbo
from fmlib.sensitivity import run_sensitivity
from fmlib.report import MODEL_TEMPLATES, build_report, resolve_template
from fmlib.normalize import _as_row_sequence
from fmlib.utils import _today_iso

_RUNNERS = {
    "DCF": run_dcf,
    "LBO": run_lbo,
    "Sensitivity": run_sensitivity,
}


def list_model_templates() -> List[Dict[str, Any]]:
    """Catalogue shown to the user; only three templates have an engine behind them."""
    return [
        {"template": name, "model": key, "implemented": key is not None}
        for name, key in MODEL_TEMPLATES.items()
    ]


def run_model(
    template: Any,
    rows: Sequence[Mapping[str, Any]],
    *,
    overrides: Optional[Dict[str, Any]] = None,
    metric_overrides: Optional[Dict[str, Any]] = None,
    as_of_date: Optional[str] = None,
):
    """Dispatch to the calculator for `template`; None when the template has no implementation."""
    key = resolve_template(template)
    if key is None:
        return None
    return _RUNNERS[key](rows, overrides=overrides, metric_overrides=metric_overrides, as_of_date=as_of_date)


def _health_block(source: str, result) -> Dict[str, Any]:
    if result is None:
        return {"source": source, "data_incomplete": None, "notes": []}
    flags = (result.confidence or {}).get("flags", {})
    return {
        "source": source,
        "data_incomplete": any(bool(v) for v in flags.values()),
        "confidence_level": (result.confidence or {}).get("level"),
        "notes": sorted(set(result.notes)),
    }


def generate_model(
    template: Any,
    rows: Sequence[Mapping[str, Any]],
    *,
    overrides: Optional[Dict[str, Any]] = None,
    metric_overrides: Optional[Dict[str, Any]] = None,
    analysis_report_date: Optional[str] = None,
) -> Dict[str, Any]:
    """
    One generation request: run the template's calculator on the canonical
    dataset and assemble its report. Each call is independent; nothing is kept.
    `overrides` go to the calculator, `metric_overrides` to metric extraction.

    Unimplemented or unknown templates return the placeholder report with
    result=None. InsufficientDataError / DegenerateParameterError propagate.
    """
    analysis_report_date = analysis_report_date or _today_iso()
    rows = _as_row_sequence(rows)
    key = resolve_template(template)
    result = run_model(
        template, rows, overrides=overrides, metric_overrides=metric_overrides, as_of_date=analysis_report_date
    )
    report = build_report(template, result, rows)

    notes: List[str] = list(result.notes) if result is not None else [
        f"'{template}' is not available yet; returned a placeholder report."
    ]
    return {
        "analysis_report_date": analysis_report_date,
        "template": template,
        "model": key,
        "result": result,
        "report": report,
        "notes": notes,
        "data_health_report": [_health_block(f"run_{(key or 'placeholder').lower()}", result)],
    }


def dataset_summary(rows: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    """Acknowledgement payload for a freshly processed upload."""
    rows = _as_row_sequence(rows)
    columns: List[str] = []
    for r in rows:
        for k in r.keys():
            if k not in columns:
                columns.append(k)
    return {
        "row_count": len(rows),
        "columns": columns,
        "message": (
            f"I've processed your financial data with {len(rows)} rows. "
            "What type of analysis would you like to perform with this data?"
        ),
    }


__all__ = [
    'list_model_templates',
    'run_model',
    'generate_model',
    'dataset_summary',
]
