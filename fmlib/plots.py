from __future__ import annotations

from typing import Optional

import numpy as np
import matplotlib.pyplot as plt

from fmlib.dcf import DCFResult
from fmlib.lbo import LBOResult
from fmlib.sensitivity import SensitivityResult
# VISUALISATION FUNCTIONS

def _fmt_millions(x):
    try:
        return f"{x/1e6:.1f}M"
    except Exception:
        return str(x)

def plot_dcf_projection(result: DCFResult, *, save_path: Optional[str] = None):
    """
    Grouped bars per projection year: free cash flow vs its present value,
    with enterprise value in the title.
    """
    if not isinstance(result, DCFResult) or not result.projections:
        raise ValueError("Expected a DCFResult from run_dcf().")

    years = [p.year for p in result.projections]
    fcf = [p.free_cash_flow for p in result.projections]
    pv = [p.present_value for p in result.projections]
    x = np.arange(len(years))
    w = 0.38

    fig, ax = plt.subplots(figsize=(7, 4))
    ax.bar(x - w / 2, fcf, w, label="Free Cash Flow")
    ax.bar(x + w / 2, pv, w, label="Present Value")
    ax.set_xticks(x)
    ax.set_xticklabels([f"Y{y}" for y in years])
    ax.set_ylabel("Cash Flow")
    ax.set_title(f"DCF Projection (EV = {_fmt_millions(result.enterprise_value)})")
    ax.legend()

    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, bbox_inches="tight")
    return fig, ax

def plot_lbo_debt_schedule(result: LBOResult, *, save_path: Optional[str] = None):
    """EBITDA bars with the remaining-debt line over the holding period."""
    if not isinstance(result, LBOResult) or not result.projections:
        raise ValueError("Expected an LBOResult from run_lbo().")

    years = [p.year for p in result.projections]
    fig, ax = plt.subplots(figsize=(7, 4))
    ax.bar(years, [p.ebitda for p in result.projections], label="EBITDA")
    ax.plot(years, [p.remaining_debt for p in result.projections], marker="o", color="black", label="Remaining Debt")
    ax.set_xticks(years)
    ax.set_xlabel("Year")
    ax.set_title(f"LBO Debt Schedule (IRR = {result.irr:.1%})")
    ax.legend()

    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, bbox_inches="tight")
    return fig, ax

def plot_sensitivity_heatmap(result: SensitivityResult, *, save_path: Optional[str] = None):
    """Growth delta (rows) x WACC (columns) heat map of EV in millions, cells annotated."""
    if not isinstance(result, SensitivityResult) or not result.matrix:
        raise ValueError("Expected a SensitivityResult from run_sensitivity().")

    data = np.array(result.matrix, dtype=float)
    fig, ax = plt.subplots(figsize=(7, 4.5))
    im = ax.imshow(data, cmap="RdYlGn", aspect="auto")
    ax.set_xticks(np.arange(len(result.wacc_values)))
    ax.set_xticklabels([f"{w:.1%}" for w in result.wacc_values])
    ax.set_yticks(np.arange(len(result.growth_deltas)))
    ax.set_yticklabels([f"{g:+.1%}" for g in result.growth_deltas])
    ax.set_xlabel("WACC")
    ax.set_ylabel("Growth Delta")
    ax.set_title("Enterprise Value Sensitivity ($M)")

    for i in range(data.shape[0]):
        for j in range(data.shape[1]):
            ax.text(j, i, f"{data[i, j]:.1f}", ha="center", va="center", fontsize=8)
    fig.colorbar(im, ax=ax)

    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, bbox_inches="tight")
    return fig, ax


__all__ = [
    'plot_dcf_projection',
    'plot_lbo_debt_schedule',
    'plot_sensitivity_heatmap',
]
