"""
Roll patch-level values up to class and landscape level.

All functions are pure: input tables are never modified. Undefined patch
values (NaN) are skipped, and an empty set of values yields a "no data"
summary (``n = 0`` and NaN statistics) instead of an error.

Author: Jordan Pierce
Date: January 2026
"""

from typing import Dict, Iterable, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .config import AGGREGATED_COLUMNS

SUMMARY_STATISTICS = ("sum", "mean", "sd", "cv")

# Suffixes used in tidy metric names, e.g. "area_mn"
_STAT_SUFFIXES = {"sum": "sum", "mean": "mn", "sd": "sd", "cv": "cv"}

TIDY_COLUMNS = ["level", "class", "id", "metric", "value"]


def summarise(values: Iterable[float]) -> Dict[str, float]:
    """
    Summarise a set of patch values.

    Formula:
        mean = sum / n
        sd = sqrt(sum((x - mean)^2) / n)        (population SD)
        cv = sd / mean * 100

    Args:
        values: Patch values; NaN entries are ignored.

    Returns:
        Dict[str, float]: Dictionary containing:
            - 'n': Number of defined values
            - 'sum': Sum of values
            - 'mean': Arithmetic mean
            - 'sd': Population standard deviation
            - 'cv': Coefficient of variation in percent (NaN if mean is 0)
        With no defined values, 'n' is 0 and every statistic is NaN.
    """
    arr = np.asarray(list(values), dtype=np.float64)
    arr = arr[~np.isnan(arr)]

    if arr.size == 0:
        return {"n": 0, "sum": np.nan, "mean": np.nan, "sd": np.nan, "cv": np.nan}

    mean = float(np.mean(arr))
    sd = float(np.std(arr, ddof=0))
    cv = sd / mean * 100 if mean != 0 else np.nan

    return {
        "n": int(arr.size),
        "sum": float(np.sum(arr)),
        "mean": mean,
        "sd": sd,
        "cv": float(cv),
    }


def class_level(table: pd.DataFrame, column: str) -> pd.DataFrame:
    """
    Summarise a patch column per class.

    Classes without patches do not appear in the output.

    Args:
        table: Patch table with a ``class_id`` column.
        column: Name of the patch column to summarise.

    Returns:
        pd.DataFrame: One row per class with ``class_id``, ``n``, ``sum``,
        ``mean``, ``sd`` and ``cv``.
    """
    rows = [
        {"class_id": int(class_id), **summarise(values)}
        for class_id, values in table.groupby("class_id", sort=True)[column]
    ]
    return pd.DataFrame(rows, columns=["class_id", "n", *SUMMARY_STATISTICS])


def landscape_level(table: pd.DataFrame, column: str) -> pd.DataFrame:
    """Summarise a patch column over every patch of every class."""
    values = table[column] if len(table) else []
    return pd.DataFrame([summarise(values)], columns=["n", *SUMMARY_STATISTICS])


def tidy(
    table: pd.DataFrame,
    column: str,
    metric: Optional[str] = None,
    levels: Sequence[str] = ("patch", "class", "landscape")
) -> pd.DataFrame:
    """
    Long-format table of a patch column and its roll-ups.

    Args:
        table: Patch table with ``patch_id`` and ``class_id`` columns.
        column: Patch column to report.
        metric: Metric name used in the output. Defaults to ``column``.
        levels: Which of 'patch', 'class', 'landscape' to include.

    Returns:
        pd.DataFrame: Columns ``level``, ``class``, ``id``, ``metric``,
        ``value``. Class rows are named ``<metric>_sum|mn|sd|cv``; landscape
        rows have no class and no id.
    """
    metric = metric or column
    frames = []

    if "patch" in levels and len(table):
        frames.append(pd.DataFrame({
            "level": "patch",
            "class": table["class_id"].to_numpy(),
            "id": table["patch_id"].to_numpy(),
            "metric": metric,
            "value": table[column].to_numpy(dtype=np.float64),
        }))

    if "class" in levels:
        per_class = class_level(table, column)
        for stat in SUMMARY_STATISTICS:
            frames.append(pd.DataFrame({
                "level": "class",
                "class": per_class["class_id"].to_numpy(),
                "id": pd.NA,
                "metric": f"{metric}_{_STAT_SUFFIXES[stat]}",
                "value": per_class[stat].to_numpy(dtype=np.float64),
            }))

    if "landscape" in levels:
        pooled = summarise(table[column]) if len(table) else summarise([])
        frames.append(pd.DataFrame({
            "level": "landscape",
            "class": pd.NA,
            "id": pd.NA,
            "metric": [f"{metric}_{_STAT_SUFFIXES[stat]}" for stat in SUMMARY_STATISTICS],
            "value": [pooled[stat] for stat in SUMMARY_STATISTICS],
        }))

    frames = [frame for frame in frames if len(frame)]
    if not frames:
        return _empty_tidy()

    result = pd.concat(frames, ignore_index=True)
    result["class"] = result["class"].astype("Int64")
    result["id"] = result["id"].astype("Int64")
    result["value"] = result["value"].astype(np.float64)
    return result[TIDY_COLUMNS]


def aggregate_metrics(
    table: pd.DataFrame,
    columns: Optional[Mapping[str, str]] = None,
    levels: Sequence[str] = ("patch", "class", "landscape")
) -> pd.DataFrame:
    """
    Tidy roll-up of several patch columns at once.

    Args:
        table: Patch table.
        columns: Mapping of patch column -> metric name. Defaults to every
                 column of AGGREGATED_COLUMNS present in ``table``.
        levels: Levels to include.

    Returns:
        pd.DataFrame: Concatenated tidy tables.
    """
    if columns is None:
        columns = {col: name for col, name in AGGREGATED_COLUMNS.items() if col in table.columns}

    frames = [tidy(table, column, metric, levels) for column, metric in columns.items()]
    frames = [frame for frame in frames if len(frame)]
    if not frames:
        return _empty_tidy()
    return pd.concat(frames, ignore_index=True)


def _empty_tidy() -> pd.DataFrame:
    return pd.DataFrame({
        "level": pd.Series(dtype=object),
        "class": pd.Series(dtype="Int64"),
        "id": pd.Series(dtype="Int64"),
        "metric": pd.Series(dtype=object),
        "value": pd.Series(dtype=np.float64),
    })
