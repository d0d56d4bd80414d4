from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Mapping

import pandas as pd

from .stats import StepReport

LOGGER = logging.getLogger("memsweep.report")

BASE_COLUMNS = ["memory_mb", "min_ms", "avg_ms", "max_ms"]


def report_to_dataframe(run_report: Mapping[int, StepReport]) -> pd.DataFrame:
    """One row per memory step, in sweep order, with a column per percentile."""
    rows = []
    ranks: list[int] = []
    for memory, step in run_report.items():
        for rank in step.percentiles:
            if rank not in ranks:
                ranks.append(rank)
        row = {
            "memory_mb": memory,
            "min_ms": step.min,
            "avg_ms": step.avg,
            "max_ms": step.max,
        }
        row.update({f"p{rank}_ms": value for rank, value in step.percentiles.items()})
        rows.append(row)

    columns = BASE_COLUMNS + [f"p{rank}_ms" for rank in ranks]
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows, columns=columns)


def report_to_json(run_report: Mapping[int, StepReport]) -> dict[str, object]:
    return {str(memory): step.as_dict() for memory, step in run_report.items()}


def write_report(
    run_report: Mapping[int, StepReport], output_dir: Path, label: str
) -> tuple[Path, Path]:
    output_dir.mkdir(parents=True, exist_ok=True)

    csv_path = output_dir / f"{label}.csv"
    df = report_to_dataframe(run_report)
    df.to_csv(csv_path, index=False)

    json_path = output_dir / f"{label}.json"
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(report_to_json(run_report), f, indent=2)

    LOGGER.info("Saved report for %d step(s) to %s and %s", len(df), csv_path, json_path)
    return csv_path, json_path


def format_report(run_report: Mapping[int, StepReport]) -> str:
    if not run_report:
        return "<no results>"
    df = report_to_dataframe(run_report)
    return df.to_string(index=False)


__all__ = ["format_report", "report_to_dataframe", "report_to_json", "write_report"]
