"""
Tests: Patch Labeling
========================
Unit tests for :func:`landscape_metrics.patches.label_patches` and
:func:`landscape_metrics.patches.get_patches`.
"""

from __future__ import annotations

import numpy as np
import pytest

from conftest import QUEEN, ROOK, reference_labels
from landscape_metrics.exceptions import InvalidKernelError
from landscape_metrics.grid import LandscapeGrid
from landscape_metrics.patches import get_patches, label_patches


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class TestConnectivity:
    def test_diagonal_cells_split_under_rook(self) -> None:
        patches = label_patches([[1, 2], [2, 1]], neighbourhood=4)
        assert patches.n_patches == 4
        assert patches.patch_grid.tolist() == [[1, 2], [3, 4]]

    def test_diagonal_cells_merge_under_queen(self) -> None:
        patches = label_patches([[1, 2], [2, 1]], neighbourhood=8)
        assert patches.n_patches == 2
        assert patches.patch_grid.tolist() == [[1, 2], [2, 1]]

    @pytest.mark.parametrize("neighbourhood", [4, 8])
    def test_homogeneous_grid_is_one_patch(self, neighbourhood) -> None:
        patches = label_patches(np.full((4, 6), 3), neighbourhood=neighbourhood)
        assert patches.n_patches == 1
        assert patches.table.iloc[0].tolist() == [1, 3, 24]

    @pytest.mark.parametrize("neighbourhood, offsets", [(4, ROOK), (8, QUEEN)])
    def test_matches_breadth_first_reference(self, random_landscape, neighbourhood, offsets) -> None:
        patches = label_patches(random_landscape, neighbourhood=neighbourhood)
        expected = reference_labels(random_landscape, offsets)
        np.testing.assert_array_equal(patches.patch_grid, expected)

    def test_custom_kernel_reaches_two_cells(self) -> None:
        patches = label_patches([[1, 2, 1]], neighbourhood=np.ones((5, 5)))
        assert patches.patch_grid.tolist() == [[1, 2, 1]]

    def test_custom_kernel_matches_reference(self, random_landscape) -> None:
        kernel = np.ones((5, 5))
        offsets = [(dr, dc) for dr in range(-2, 3) for dc in range(-2, 3) if (dr, dc) != (0, 0)]
        patches = label_patches(random_landscape, neighbourhood=kernel)
        np.testing.assert_array_equal(patches.patch_grid, reference_labels(random_landscape, offsets))

    def test_asymmetric_kernel_connects_both_ways(self) -> None:
        right_only = [[0, 0, 0], [0, 0, 1], [0, 0, 0]]
        patches = label_patches(np.ones((2, 3)), neighbourhood=right_only)
        assert patches.patch_grid.tolist() == [[1, 1, 1], [2, 2, 2]]

    def test_invalid_neighbourhood(self) -> None:
        with pytest.raises(InvalidKernelError):
            label_patches([[1, 2]], neighbourhood=6)


# ---------------------------------------------------------------------------
# Patch ids & table
# ---------------------------------------------------------------------------


class TestPatchIds:
    def test_first_discovery_order(self) -> None:
        values = [[2, 1, 1],
                  [2, 2, 1],
                  [1, 2, 2]]
        patches = label_patches(values, neighbourhood=4)
        assert patches.patch_grid.tolist() == [[1, 2, 2], [1, 1, 2], [3, 1, 1]]
        assert patches.table["class_id"].tolist() == [2, 1, 1]
        assert patches.table["n_cells"].tolist() == [5, 3, 1]

    def test_deterministic(self, random_landscape) -> None:
        first = label_patches(random_landscape, neighbourhood=8)
        second = label_patches(random_landscape, neighbourhood=8)
        np.testing.assert_array_equal(first.patch_grid, second.patch_grid)
        assert first.table.equals(second.table)

    def test_cell_counts_cover_valid_cells(self, random_landscape) -> None:
        grid = LandscapeGrid(random_landscape)
        patches = label_patches(grid)
        assert patches.table["n_cells"].sum() == grid.n_valid

    def test_same_id_means_same_class(self, random_landscape) -> None:
        patches = label_patches(random_landscape, neighbourhood=8)
        grid = patches.grid
        for patch_id in range(1, patches.n_patches + 1):
            classes = np.unique(grid.labels[patches.patch_grid == patch_id])
            assert classes.tolist() == [patches.class_of(patch_id)]

    def test_adjacent_same_class_cells_share_id(self, random_landscape) -> None:
        patches = label_patches(random_landscape, neighbourhood=4)
        ids, labels, valid = patches.patch_grid, patches.grid.labels, patches.grid.valid_mask
        same_right = valid[:, :-1] & valid[:, 1:] & (labels[:, :-1] == labels[:, 1:])
        same_down = valid[:-1, :] & valid[1:, :] & (labels[:-1, :] == labels[1:, :])
        assert np.all(ids[:, :-1][same_right] == ids[:, 1:][same_right])
        assert np.all(ids[:-1, :][same_down] == ids[1:, :][same_down])

    def test_patch_grid_read_only(self) -> None:
        patches = label_patches([[1, 2]])
        assert not patches.patch_grid.flags.writeable

    def test_class_lookup(self) -> None:
        patches = label_patches([[1, 2, 1]], neighbourhood=4)
        assert patches.class_of(2) == 2
        assert patches.patches_of_class(1).tolist() == [1, 3]
        with pytest.raises(KeyError):
            patches.class_of(4)

    def test_patch_mask(self) -> None:
        patches = label_patches([[1, 2, 1], [1, 1, 2]], neighbourhood=4)
        np.testing.assert_array_equal(
            patches.patch_mask(1), [[True, False, False], [True, True, False]]
        )
        assert patches.patch_mask(4).sum() == 1

    def test_classes_in_separate_corners(self) -> None:
        # Class bounding boxes overlap and leave gaps of other classes
        values = np.full((9, 9), 3)
        values[0:2, 0:2] = 1
        values[7:9, 7:9] = 1
        values[4, 4] = 2
        patches = label_patches(values, neighbourhood=8)
        np.testing.assert_array_equal(patches.patch_grid, reference_labels(values, QUEEN))
        assert patches.table["class_id"].tolist() == [1, 3, 2, 1]


# ---------------------------------------------------------------------------
# No-data
# ---------------------------------------------------------------------------


class TestNoDataPatches:
    def test_all_nodata_has_no_patches(self) -> None:
        patches = label_patches(np.full((3, 3), np.nan))
        assert patches.n_patches == 0
        assert list(patches.table.columns) == ["patch_id", "class_id", "n_cells"]
        assert not patches.patch_grid.any()

    def test_nodata_breaks_connectivity(self) -> None:
        patches = label_patches([[1, np.nan, 1]], neighbourhood=8)
        assert patches.patch_grid.tolist() == [[1, 0, 2]]

    def test_single_cell_patch(self) -> None:
        patches = label_patches([[5]])
        assert patches.table.iloc[0].tolist() == [1, 5, 1]


# ---------------------------------------------------------------------------
# Per-class patches
# ---------------------------------------------------------------------------


class TestGetPatches:
    def test_per_class_grids(self) -> None:
        result = get_patches([[1, 2, 1], [1, 2, 2]], neighbourhood=4)
        assert sorted(result) == [1, 2]
        assert result[1].tolist() == [[1, 0, 2], [1, 0, 0]]
        assert result[2].tolist() == [[0, 1, 0], [0, 1, 1]]

    def test_single_class(self) -> None:
        result = get_patches([[1, 2]], class_id=2)
        assert list(result) == [2]

    def test_unknown_class(self) -> None:
        with pytest.raises(KeyError):
            get_patches([[1, 2]], class_id=7)
