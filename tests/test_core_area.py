"""
Tests: Core Area Engine
==========================
Unit tests for :mod:`landscape_metrics.core_area`.
"""

from __future__ import annotations

import numpy as np
import pytest

from landscape_metrics.core_area import (
    CORE_CELL,
    EDGE_CELL,
    NODATA_CELL,
    core_areas,
    core_partition,
    n_core_areas,
    validate_edge_depth,
)
from landscape_metrics.exceptions import InvalidDepthError
from landscape_metrics.patches import label_patches


# ---------------------------------------------------------------------------
# Edge depth validation
# ---------------------------------------------------------------------------


class TestEdgeDepth:
    @pytest.mark.parametrize("depth", [0, 1, 3, 2.0, np.int64(4)])
    def test_accepted(self, depth) -> None:
        assert validate_edge_depth(depth) == int(depth)

    @pytest.mark.parametrize("depth", [-1, 1.5, "2", None, True])
    def test_rejected(self, depth) -> None:
        with pytest.raises(InvalidDepthError):
            validate_edge_depth(depth)

    def test_partition_rejects_negative_depth(self) -> None:
        patches = label_patches(np.ones((3, 3)))
        with pytest.raises(InvalidDepthError):
            core_partition(patches, edge_depth=-2)


# ---------------------------------------------------------------------------
# Stripping
# ---------------------------------------------------------------------------


class TestCorePartition:
    def test_depth_zero_keeps_everything(self, random_landscape) -> None:
        patches = label_patches(random_landscape)
        partition = core_partition(patches, edge_depth=0)
        assert partition.core_cells.tolist() == patches.table["n_cells"].tolist()
        assert not partition.edge_mask.any()

    @pytest.mark.parametrize("depth, expected", [(1, 9), (2, 1), (3, 0)])
    def test_square_erodes_one_ring_per_round(self, depth, expected) -> None:
        patches = label_patches(np.ones((5, 5)))
        assert core_partition(patches, edge_depth=depth).core_cells.tolist() == [expected]

    def test_grid_edge_not_boundary(self) -> None:
        patches = label_patches(np.ones((5, 5)))
        partition = core_partition(patches, edge_depth=2, boundary_is_edge=False)
        assert partition.core_cells.tolist() == [25]

    def test_neighbouring_patches_strip_each_other(self) -> None:
        values = np.array([[1, 1, 1, 2, 2, 2]] * 3)
        patches = label_patches(values)
        partition = core_partition(patches, edge_depth=1, boundary_is_edge=False)
        assert partition.core_cells.tolist() == [6, 6]
        assert partition.partition[:, 2].tolist() == [EDGE_CELL] * 3
        assert partition.partition[:, 0].tolist() == [CORE_CELL] * 3

    def test_nodata_cells(self) -> None:
        values = np.ones((5, 5))
        values[2, 2] = np.nan
        patches = label_patches(values)
        partition = core_partition(patches, edge_depth=1)
        assert partition.partition[2, 2] == NODATA_CELL
        # The hole strips its four rook neighbours as well as the outer ring
        assert partition.core_cells.tolist() == [4]

    def test_monotone_in_depth(self, clumped_landscape) -> None:
        patches = label_patches(clumped_landscape)
        previous = patches.table["n_cells"].to_numpy()
        for depth in range(0, 5):
            current = core_partition(patches, edge_depth=depth).core_cells.to_numpy()
            assert np.all(current <= previous)
            previous = current

    def test_core_cells_remain_core_at_lower_depth(self, clumped_landscape) -> None:
        patches = label_patches(clumped_landscape)
        deep = core_partition(patches, edge_depth=3).core_mask
        shallow = core_partition(patches, edge_depth=1).core_mask
        assert np.all(shallow[deep])

    def test_core_area_in_hectares(self) -> None:
        patches = label_patches(np.ones((5, 5)), resolution=100)
        result = core_areas(patches, edge_depth=1)
        assert result.tolist() == pytest.approx([9.0])
        assert result.index.tolist() == [1]

    def test_core_never_exceeds_area(self, random_landscape) -> None:
        patches = label_patches(random_landscape, resolution=10)
        areas = patches.table["n_cells"].to_numpy() * patches.grid.cell_area_ha
        result = core_areas(patches, edge_depth=1, boundary_is_edge=False)
        assert np.all(result.to_numpy() <= areas + 1e-12)

    def test_empty_grid(self) -> None:
        patches = label_patches(np.full((3, 3), np.nan))
        partition = core_partition(patches, edge_depth=2)
        assert len(partition.core_cells) == 0
        assert (partition.partition == NODATA_CELL).all()


# ---------------------------------------------------------------------------
# Number of core areas
# ---------------------------------------------------------------------------


class TestNumberOfCoreAreas:
    def test_dumbbell_has_two_cores(self) -> None:
        values = np.full((5, 11), 2)
        values[1:4, 1:4] = 1
        values[1:4, 7:10] = 1
        values[2, 4:7] = 1

        patches = label_patches(values, neighbourhood=8)
        partition = core_partition(patches, edge_depth=1)
        dumbbell = patches.patches_of_class(1)[0]

        assert partition.core_cells[dumbbell] == 4
        assert n_core_areas(partition)[dumbbell] == 2

    def test_no_core_means_zero(self) -> None:
        patches = label_patches([[1, 2, 1]], neighbourhood=4)
        partition = core_partition(patches, edge_depth=1)
        assert n_core_areas(partition).tolist() == [0, 0, 0]

    def test_core_regions_use_rook_connectivity(self) -> None:
        # Two blocks meeting at one corner form a single queen patch
        values = np.full((8, 8), 2)
        values[1:4, 1:4] = 1
        values[4:7, 4:7] = 1

        patches = label_patches(values, neighbourhood=8)
        partition = core_partition(patches, edge_depth=0)
        (blocks,) = patches.patches_of_class(1)

        assert partition.core_cells[blocks] == 18
        assert n_core_areas(partition)[blocks] == 2
