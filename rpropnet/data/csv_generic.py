"""Design matrices from pandas frames and CSV files."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import numpy as np
import pandas as pd
from sklearn.preprocessing import LabelEncoder

from .registry import DatasetSpec, add_intercept, register_dataset


def _as_columns(value: str | Sequence[str] | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item) for item in value]


def _encode_response(frame: pd.DataFrame, columns: Sequence[str]) -> tuple[np.ndarray, list[str]]:
    blocks: list[np.ndarray] = []
    names: list[str] = []
    for column in columns:
        series = frame[column]
        if pd.api.types.is_bool_dtype(series) or pd.api.types.is_numeric_dtype(series):
            blocks.append(series.to_numpy(dtype=np.float64).reshape(-1, 1))
            names.append(column)
            continue
        encoder = LabelEncoder()
        encoded = encoder.fit_transform(series.astype(str))
        blocks.append(np.eye(len(encoder.classes_))[encoded])
        names.extend(f"{column}.{label}" for label in encoder.classes_)
    return np.hstack(blocks), names


def design_matrix(
    frame: pd.DataFrame,
    response: str | Sequence[str],
    covariates: str | Sequence[str] | None = None,
    *,
    name: str = "frame",
) -> DatasetSpec:
    """Split ``frame`` into an intercept-prefixed covariate and a response matrix.

    Numeric and boolean response columns are used as-is; any other response
    column is expanded into one indicator column per level. When
    ``covariates`` is omitted every remaining column is used.
    """

    response_cols = _as_columns(response)
    if not response_cols:
        raise ValueError("At least one response column is required")
    missing = [col for col in response_cols if col not in frame.columns]
    if missing:
        raise KeyError(f"Response column(s) not found: {', '.join(missing)}")

    covariate_cols = _as_columns(covariates) or [
        col for col in frame.columns if col not in response_cols
    ]
    missing = [col for col in covariate_cols if col not in frame.columns]
    if missing:
        raise KeyError(f"Covariate column(s) not found: {', '.join(missing)}")

    try:
        x = frame[covariate_cols].to_numpy(dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ValueError("Covariate columns must be numeric") from exc
    y, response_names = _encode_response(frame, response_cols)
    return DatasetSpec(
        name=name,
        covariate=add_intercept(x),
        response=y,
        covariate_names=list(covariate_cols),
        response_names=response_names,
        provenance={"response": response_cols, "covariates": covariate_cols},
    )


@register_dataset("csv")
def load_csv(
    *,
    csv_path: str | Path,
    response: str | Sequence[str],
    covariates: str | Sequence[str] | None = None,
) -> DatasetSpec:
    """Load a CSV file and build its design matrices."""

    path = Path(csv_path)
    frame = pd.read_csv(path)
    spec = design_matrix(frame, response, covariates, name="csv")
    spec.provenance["path"] = str(path)
    return spec


__all__ = ["design_matrix", "load_csv"]
