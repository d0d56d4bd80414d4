from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import seaborn as sns

from .report import report_to_dataframe
from .stats import StepReport

LOGGER = logging.getLogger("memsweep.charts")

sns.set_style("whitegrid")
plt.rcParams["figure.dpi"] = 100
plt.rcParams["savefig.dpi"] = 300
plt.rcParams["font.size"] = 10
plt.rcParams["axes.labelsize"] = 11
plt.rcParams["axes.titlesize"] = 13
plt.rcParams["legend.fontsize"] = 9

SERIES_COLORS = {
    "avg_ms": "#2E86AB",
    "min_ms": "#6A994E",
    "max_ms": "#C73E1D",
    "band": "#F18F01",
}


def render_report_chart(
    run_report: Mapping[int, StepReport],
    chart_path: Path,
    title: str = "Latency by Memory Size",
    band: tuple[int, int] = (50, 95),
) -> Path | None:
    """Plot average latency per memory size with a percentile band around it.

    Duplicate memory sizes keep their last result. Returns None when there is
    nothing to draw.
    """
    df = report_to_dataframe(run_report)
    if df.empty:
        LOGGER.warning("No results available for chart %s", chart_path)
        return None

    df = df.sort_values("memory_mb")
    positions = list(range(len(df)))
    labels = [str(memory) for memory in df["memory_mb"]]

    fig, ax = plt.subplots(figsize=(10, 6))

    low, high = (f"p{rank}_ms" for rank in band)
    if low in df.columns and high in df.columns:
        ax.fill_between(
            positions,
            df[low],
            df[high],
            color=SERIES_COLORS["band"],
            alpha=0.2,
            label=f"p{band[0]}-p{band[1]}",
        )

    for column, label in (("min_ms", "min"), ("avg_ms", "avg"), ("max_ms", "max")):
        ax.plot(
            positions,
            df[column],
            marker="o",
            linewidth=2.5 if column == "avg_ms" else 1.2,
            linestyle="-" if column == "avg_ms" else "--",
            color=SERIES_COLORS[column],
            label=label,
        )

    for x, value in zip(positions, df["avg_ms"]):
        ax.annotate(
            f"{value}",
            (x, value),
            textcoords="offset points",
            xytext=(0, 8),
            ha="center",
            fontsize=8,
            fontweight="bold",
        )

    ax.set_xticks(positions)
    ax.set_xticklabels(labels)
    ax.set_xlabel("Memory Size (MB)", fontweight="semibold", labelpad=10)
    ax.set_ylabel("Duration (ms)", fontweight="semibold", labelpad=10)
    ax.set_title(title, fontweight="bold", pad=15)
    ax.set_ylim(bottom=0)
    ax.legend(loc="upper right", frameon=True)

    chart_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white", edgecolor="none")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return chart_path


__all__ = ["render_report_chart"]
