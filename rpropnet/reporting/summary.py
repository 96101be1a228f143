"""Result tables and text/JSON summaries of fitted networks."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

import numpy as np
import pandas as pd

from ..core.types import RepetitionResult
from ..training.metrics import repetition_metrics


def result_table(
    results: Sequence[RepetitionResult],
    weight_labels: Sequence[str],
) -> pd.DataFrame:
    """One column per converged repetition, named rows.

    Rows are ``error``, ``reached.threshold``, ``steps``, ``aic``/``bic``
    when computed, then one row per weight in flat order.
    """

    columns = {}
    for position, result in enumerate(results, start=1):
        values = repetition_metrics(
            result.error, result.reached_threshold, result.steps, result.aic, result.bic
        )
        flat = np.concatenate([W.ravel(order="F") for W in result.weights])
        values.update(zip(weight_labels, flat.tolist()))
        columns[position] = pd.Series(values, dtype=np.float64)
    if not columns:
        return pd.DataFrame(index=["error", "reached.threshold", "steps", *weight_labels])
    return pd.DataFrame(columns)


def format_summary(table: pd.DataFrame, repetitions: int) -> str:
    """Render the error/threshold/steps overview sorted by error."""

    converged = table.shape[1]
    if converged == 0:
        return f"0 of {repetitions} repetitions converged.\n"
    noun = "repetition was" if converged == 1 else "repetitions were"
    rows = ["error"]
    if "aic" in table.index:
        rows += ["aic", "bic"]
    rows += ["reached.threshold", "steps"]
    overview = table.loc[rows].T.sort_values("error")
    overview.columns = [
        {"error": "Error", "aic": "AIC", "bic": "BIC", "reached.threshold": "Reached Threshold",
         "steps": "Steps"}[row]
        for row in rows
    ]
    return f"{converged} {noun} calculated.\n\n{overview.to_string()}\n"


def write_summary(table: pd.DataFrame, out_summary_json: str | Path, *, repetitions: int) -> str:
    """Write a deterministic JSON summary of ``table``."""

    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    summary = {
        "version": 1,
        "repetitions": repetitions,
        "converged": int(table.shape[1]),
        "results": {
            str(column): {row: float(value) for row, value in table[column].items()}
            for column in table.columns
        },
    }
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["format_summary", "result_table", "write_summary"]
