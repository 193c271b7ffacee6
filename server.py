#!/usr/bin/env python3
"""
Financial Modeling AI — MCP server (STDIO)
Exposes the modeling engine as tools: load an uploaded table, list templates,
generate a DCF / LBO / Sensitivity model, and chart the results.

Transport: STDIO (default). The chat client launches this process and speaks MCP over stdio.
Artifacts: XLSX/PNG written under ./output/<DATASET>/ (created on demand).

Install (example):
  pip install "mcp>=1.2.0" pandas matplotlib xlsxwriter openpyxl

If you prefer the third-party 'fastmcp' package instead of the official 'mcp' package,
this file will also work — it falls back to 'fastmcp' if 'mcp' is unavailable.
"""

from __future__ import annotations

import os
import re
import json
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional, Dict, Any

# Headless plotting for server environments
import matplotlib
matplotlib.use("Agg")

HERE = Path(__file__).resolve().parent

# Prefer official MCP server; fall back to third-party fastmcp if needed
try:
    from mcp.server.fastmcp import FastMCP  # type: ignore
    MCP_IMPL = "mcp.server.fastmcp"
except ImportError:
    from fastmcp import FastMCP  # type: ignore
    MCP_IMPL = "fastmcp"

import fmlib

# ---------- Config ----------
OUTPUT_ROOT = Path(os.environ.get("FM_OUTPUT_DIR", HERE / "output")).resolve()
OUTPUT_ROOT.mkdir(parents=True, exist_ok=True)
MAX_TEXT_CHARS = int(os.environ.get("FM_MAX_TEXT_CHARS", "120000"))

# ---------- Helpers ----------
def ensure_dir(p: Path) -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    return p

def as_uri(p: Path) -> str:
    return p.resolve().as_uri()

def file_resource(p: Any, mime: str) -> Dict[str, Any]:
    """
    Accepts either a Path or a string. If it's already a file:// URI, pass it through.
    Otherwise resolve the filesystem path and convert to a proper file URI.
    """
    if isinstance(p, Path):
        uri = p.resolve().as_uri()
    else:
        s = str(p)
        if s.startswith("file://"):
            uri = s
        else:
            uri = Path(s).resolve().as_uri()
    return {"type": "resource", "uri": uri, "mimeType": mime}

def text_item(s: str) -> Dict[str, Any]:
    return {"type": "text", "text": s}

def dataset_dir(name: Optional[str]) -> Path:
    tag = re.sub(r"[^A-Za-z0-9_-]", "_", Path(name).stem if name else "DATASET") or "DATASET"
    d = OUTPUT_ROOT / tag
    d.mkdir(parents=True, exist_ok=True)
    return d

def _canonical_rows(file_path: Optional[str], rows: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    if file_path:
        return fmlib.normalize_rows(fmlib.load_table(file_path))
    if rows is None:
        raise ValueError("Provide either file_path OR rows.")
    return fmlib.normalize_rows(rows)

def _result_payload(result) -> Optional[Dict[str, Any]]:
    if result is None:
        return None
    payload = asdict(result)
    payload["kind"] = result.kind
    return payload

# ---------- App ----------
app = FastMCP(f"Financial Modeling AI (STDIO) — using {MCP_IMPL}")

@app.tool(name="load_financial_table", description="Read a CSV/XLSX upload and return its normalized rows.")
def tool_load_financial_table(file_path: str):
    rows = fmlib.normalize_rows(fmlib.load_table(file_path))
    summary = fmlib.dataset_summary(rows)
    envelope = fmlib.to_records(rows, notes=[f"columns: {', '.join(summary['columns'])}"])
    return [
        text_item(summary["message"]),
        text_item(json.dumps(envelope, default=str)[:MAX_TEXT_CHARS]),
    ]

@app.tool(name="list_model_templates", description="List the model templates and whether each is implemented.")
def tool_list_model_templates():
    return [text_item(json.dumps(fmlib.list_model_templates(), indent=2))]

@app.tool(name="generate_financial_model", description="Generate a DCF / LBO / Sensitivity model from a file or rows; optional XLSX export.")
def tool_generate_financial_model(template: str, file_path: Optional[str] = None, rows: Optional[List[Dict[str, Any]]] = None, save_xlsx: bool = True):
    data = _canonical_rows(file_path, rows)
    out = fmlib.generate_model(template, data)
    content = [
        text_item(f"{template}: generated {len(out['report'])} sheets from {len(data)} rows"),
        text_item(fmlib.report_to_markdown(out["report"])[:MAX_TEXT_CHARS]),
        text_item(json.dumps({
            "model": out["model"],
            "result": _result_payload(out["result"]),
            "notes": out["notes"],
            "data_health_report": out["data_health_report"],
        }, default=str)[:MAX_TEXT_CHARS]),
    ]
    if save_xlsx:
        tag = (out["model"] or "placeholder").lower()
        path = dataset_dir(file_path) / f"{tag}_model.xlsx"
        fmlib.save_report_excel(out["report"], str(ensure_dir(path)))
        content.append(file_resource(path, "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"))
    return content

@app.tool(name="plot_dcf_projection", description="Chart DCF free cash flow vs present value per year; returns PNG.")
def tool_plot_dcf_projection(file_path: Optional[str] = None, rows: Optional[List[Dict[str, Any]]] = None):
    result = fmlib.run_dcf(_canonical_rows(file_path, rows))
    out = dataset_dir(file_path) / "dcf_projection.png"
    fmlib.plot_dcf_projection(result, save_path=str(ensure_dir(out)))
    return [{"type": "resource", "mimeType": "image/png", "uri": as_uri(out)}]

@app.tool(name="plot_lbo_debt_schedule", description="Chart LBO EBITDA and remaining debt per year; returns PNG.")
def tool_plot_lbo_debt_schedule(file_path: Optional[str] = None, rows: Optional[List[Dict[str, Any]]] = None):
    result = fmlib.run_lbo(_canonical_rows(file_path, rows))
    out = dataset_dir(file_path) / "lbo_debt_schedule.png"
    fmlib.plot_lbo_debt_schedule(result, save_path=str(ensure_dir(out)))
    return [{"type": "resource", "mimeType": "image/png", "uri": as_uri(out)}]

@app.tool(name="plot_sensitivity_heatmap", description="Heat map of EV ($M) across growth and WACC; returns PNG.")
def tool_plot_sensitivity_heatmap(file_path: Optional[str] = None, rows: Optional[List[Dict[str, Any]]] = None):
    result = fmlib.run_sensitivity(_canonical_rows(file_path, rows))
    out = dataset_dir(file_path) / "sensitivity_heatmap.png"
    fmlib.plot_sensitivity_heatmap(result, save_path=str(ensure_dir(out)))
    return [{"type": "resource", "mimeType": "image/png", "uri": as_uri(out)}]

# -------------- main --------------
if __name__ == "__main__":
    import sys, traceback
    try:
        app.run()
    except KeyboardInterrupt:
        pass
    except Exception as e:
        print("FATAL in server.py:", e, file=sys.stderr)
        traceback.print_exc()
        sys.stderr.flush()
        raise
