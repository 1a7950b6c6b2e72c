"""
Matplotlib charts for portfolio reports, rendered headless to PNG bytes.
"""

import io
from typing import Dict

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from loantape.analytics import AnalysisResult


NAVY = "#1B2A4A"
ACCENT = "#2E5090"
GREY = "#666666"
RED = "#dc2626"
ORANGE = "#ea580c"
GREEN = "#059669"

plt.rcParams.update({
    "font.family": "sans-serif",
    "font.size": 9,
    "axes.titlesize": 11,
    "axes.titleweight": "bold",
    "axes.labelsize": 9,
    "axes.edgecolor": "#cccccc",
    "axes.facecolor": "#ffffff",
    "figure.facecolor": "#ffffff",
    "grid.alpha": 0.3,
})


def fig_to_png(fig, dpi=120) -> bytes:
    """Render a figure to PNG bytes and release it."""
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=dpi, bbox_inches="tight",
                facecolor="#ffffff", edgecolor="none")
    plt.close(fig)
    return buf.getvalue()


def _barh(ax, shares: Dict[str, float], color: str, title: str):
    labels = list(shares.keys())
    values = list(shares.values())
    ax.barh(labels, values, color=color)
    ax.invert_yaxis()
    ax.set_title(title)
    ax.set_xlabel("% of loans")
    ax.grid(axis="x")
    for y, v in enumerate(values):
        ax.text(v, y, f" {v:.1f}%", va="center", fontsize=8, color=GREY)


def chart_portfolio_overview(analysis: AnalysisResult) -> bytes:
    """Product mix and DPD ageing side by side."""
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(10, 3.6))

    product_mix = analysis.portfolio_metrics.loan_type_distribution or {"No loans": 0.0}
    _barh(ax1, product_mix, ACCENT, "Product Mix")

    dpd = analysis.performance_metrics.dpd_distribution or {"Current": 0.0}
    colors = [GREEN] + [ORANGE] * (len(dpd) - 2) + [RED] if len(dpd) > 1 else [GREEN]
    labels = list(dpd.keys())
    ax2.bar(labels, list(dpd.values()), color=colors)
    ax2.set_title("Delinquency Ageing")
    ax2.set_ylabel("% of loans")
    ax2.grid(axis="y")
    ax2.tick_params(axis="x", labelrotation=20)

    plt.tight_layout()
    return fig_to_png(fig)
