"""
Tests: Aggregator
====================
Unit tests for the class- and landscape-level roll-ups in
:mod:`landscape_metrics.aggregate`.
"""

from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pytest

from landscape_metrics.aggregate import (
    TIDY_COLUMNS,
    aggregate_metrics,
    class_level,
    landscape_level,
    summarise,
    tidy,
)


@pytest.fixture
def patch_table() -> pd.DataFrame:
    return pd.DataFrame({
        "patch_id": [1, 2, 3, 4],
        "class_id": [1, 3, 1, 3],
        "area": [1.0, 2.0, 3.0, 6.0],
        "frac": [np.nan, 1.2, 1.4, 1.0],
    })


# ---------------------------------------------------------------------------
# Summary statistics
# ---------------------------------------------------------------------------


class TestSummarise:
    def test_statistics(self) -> None:
        stats = summarise([1.0, 2.0, 3.0])
        sd = math.sqrt(2 / 3)
        assert stats["n"] == 3
        assert stats["sum"] == pytest.approx(6.0)
        assert stats["mean"] == pytest.approx(2.0)
        assert stats["sd"] == pytest.approx(sd)
        assert stats["cv"] == pytest.approx(sd / 2 * 100)

    def test_empty_is_no_data(self) -> None:
        stats = summarise([])
        assert stats["n"] == 0
        assert all(np.isnan(stats[key]) for key in ("sum", "mean", "sd", "cv"))

    def test_undefined_values_skipped(self) -> None:
        stats = summarise([np.nan, 2.0, 4.0])
        assert stats["n"] == 2
        assert stats["mean"] == pytest.approx(3.0)

    def test_all_undefined(self) -> None:
        assert summarise([np.nan, np.nan])["n"] == 0

    def test_zero_mean_cv_undefined(self) -> None:
        stats = summarise([0.0, 0.0])
        assert stats["sd"] == 0.0
        assert np.isnan(stats["cv"])

    def test_single_value(self) -> None:
        stats = summarise([5.0])
        assert stats["sd"] == 0.0
        assert stats["cv"] == 0.0


# ---------------------------------------------------------------------------
# Class & landscape level
# ---------------------------------------------------------------------------


class TestLevels:
    def test_classes_without_patches_omitted(self, patch_table) -> None:
        result = class_level(patch_table, "area")
        assert result["class_id"].tolist() == [1, 3]
        assert result["sum"].tolist() == pytest.approx([4.0, 8.0])
        assert result["mean"].tolist() == pytest.approx([2.0, 4.0])

    def test_landscape_pools_all_patches(self, patch_table) -> None:
        result = landscape_level(patch_table, "area")
        assert result["n"].iloc[0] == 4
        assert result["sum"].iloc[0] == pytest.approx(12.0)
        assert result["sd"].iloc[0] == pytest.approx(np.std([1.0, 2.0, 3.0, 6.0]))

    def test_landscape_of_empty_table(self) -> None:
        empty = pd.DataFrame({"patch_id": [], "class_id": [], "area": []})
        result = landscape_level(empty, "area")
        assert result["n"].iloc[0] == 0
        assert np.isnan(result["mean"].iloc[0])

    def test_class_level_of_empty_table(self) -> None:
        empty = pd.DataFrame({"patch_id": [], "class_id": [], "area": []})
        assert len(class_level(empty, "area")) == 0

    def test_inputs_not_modified(self, patch_table) -> None:
        before = patch_table.copy()
        class_level(patch_table, "frac")
        landscape_level(patch_table, "frac")
        tidy(patch_table, "frac")
        pd.testing.assert_frame_equal(patch_table, before)


# ---------------------------------------------------------------------------
# Tidy output
# ---------------------------------------------------------------------------


class TestTidy:
    def test_layout(self, patch_table) -> None:
        result = tidy(patch_table, "area")
        assert list(result.columns) == TIDY_COLUMNS
        assert (result["level"] == "patch").sum() == 4
        assert (result["level"] == "class").sum() == 2 * 4
        assert (result["level"] == "landscape").sum() == 4

    def test_metric_names(self, patch_table) -> None:
        result = tidy(patch_table, "area", metric="area", levels=("class",))
        assert sorted(result["metric"].unique()) == ["area_cv", "area_mn", "area_sd", "area_sum"]

    def test_landscape_rows_have_no_class(self, patch_table) -> None:
        result = tidy(patch_table, "frac", levels=("landscape",))
        assert result["class"].isna().all()
        assert result["id"].isna().all()
        frac_mn = result.loc[result["metric"] == "frac_mn", "value"].iloc[0]
        assert frac_mn == pytest.approx(np.mean([1.2, 1.4, 1.0]))

    def test_aggregate_uses_present_columns(self, patch_table) -> None:
        result = aggregate_metrics(patch_table, levels=("landscape",))
        assert set(result["metric"].str.split("_").str[0]) == {"area", "frac"}

    def test_empty_table(self) -> None:
        empty = pd.DataFrame({"patch_id": [], "class_id": [], "area": []})
        result = tidy(empty, "area", levels=("patch", "class"))
        assert list(result.columns) == TIDY_COLUMNS
        assert len(result) == 0
