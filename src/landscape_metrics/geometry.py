"""
Per-patch geometry: area, perimeter, shape index and fractal dimension.

Perimeters always follow cell edges under the 4-neighbourhood, whatever
connectivity was used to label the patches: a cell side counts as perimeter
when the cell on the other side is outside the grid, holds no data, or belongs
to another patch. Diagonal contacts never shorten a perimeter.

Units:
    - area: hectares
    - perimeter: meters
    - shape index and fractal dimension: unitless

Author: Jordan Pierce
Date: January 2026
"""

from typing import Any, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .grid import LandscapeGrid, as_grid, resolve_neighbourhood
from .patches import PatchLabels


# =============================================================================
# AREA & PERIMETER
# =============================================================================


def patch_areas(patches: PatchLabels) -> np.ndarray:
    """Area of each patch in hectares, ordered by patch id."""
    return patches.table["n_cells"].to_numpy(dtype=np.float64) * patches.grid.cell_area_ha


def patch_edge_counts(patches: PatchLabels) -> Tuple[np.ndarray, np.ndarray]:
    """
    Count the boundary cell sides of each patch.

    Returns:
        Tuple[np.ndarray, np.ndarray]:
            - Sides between vertically stacked cells (each ``x_res`` long)
            - Sides between side-by-side cells (each ``y_res`` long)
    """
    n_bins = patches.n_patches + 1

    # A zero frame turns the grid edge into a patch boundary
    padded = np.pad(patches.patch_grid, 1, mode="constant", constant_values=0)

    above, below = padded[:-1, :], padded[1:, :]
    differs = above != below
    horizontal_sides = (
        np.bincount(above[differs], minlength=n_bins)
        + np.bincount(below[differs], minlength=n_bins)
    )

    left, right = padded[:, :-1], padded[:, 1:]
    differs = left != right
    vertical_sides = (
        np.bincount(left[differs], minlength=n_bins)
        + np.bincount(right[differs], minlength=n_bins)
    )

    # Bin 0 collects the no-patch side of each edge
    return horizontal_sides[1:], vertical_sides[1:]


def patch_perimeters(patches: PatchLabels) -> np.ndarray:
    """Perimeter of each patch in meters, ordered by patch id."""
    horizontal_sides, vertical_sides = patch_edge_counts(patches)
    grid = patches.grid
    return horizontal_sides * grid.x_res + vertical_sides * grid.y_res


# =============================================================================
# SHAPE METRICS
# =============================================================================


def minimum_perimeter(area_cells: Union[Sequence[float], np.ndarray]) -> np.ndarray:
    """
    Smallest perimeter (in cell sides) any raster patch of ``area_cells`` cells can have.

    With ``n = floor(sqrt(a))`` and ``m = a - n**2`` the minimum is ``4n`` for a
    perfect square, ``4n + 2`` when ``a <= n(n + 1)`` and ``4n + 4`` otherwise.
    """
    area_cells = np.asarray(area_cells, dtype=np.float64)
    n = np.floor(np.sqrt(area_cells))
    m = area_cells - n ** 2

    min_p = np.full(area_cells.shape, 4 * n + 4)
    min_p = np.where(area_cells <= n * (n + 1), 4 * n + 2, min_p)
    min_p = np.where(np.isclose(m, 0), 4 * n, min_p)
    return min_p


def shape_index(
    n_cells: Union[Sequence[float], np.ndarray],
    perimeter_m: Union[Sequence[float], np.ndarray],
    grid: LandscapeGrid
) -> np.ndarray:
    """
    Shape index of each patch: perimeter over the minimum raster perimeter.

    Formula:
        SHAPE = P_cells / min_P(A_cells)

    The index is >= 1 and equals 1 for grid-aligned squares. For non-square
    cells there is no raster square standard, so the Euclidean standard
    ``0.25 * P / sqrt(A)`` is used instead.

    Args:
        n_cells: Cell count of each patch.
        perimeter_m: Perimeter of each patch in meters.
        grid: The grid the patches come from (for the cell size).

    Returns:
        np.ndarray: Shape index per patch.
    """
    n_cells = np.asarray(n_cells, dtype=np.float64)
    perimeter_m = np.asarray(perimeter_m, dtype=np.float64)

    if grid.is_square_cells:
        perimeter_cells = perimeter_m / grid.x_res
        return perimeter_cells / minimum_perimeter(n_cells)

    area_m2 = n_cells * grid.cell_area_m2
    return 0.25 * perimeter_m / np.sqrt(area_m2)


def fractal_dimension(
    n_cells: Union[Sequence[float], np.ndarray],
    perimeter_m: Union[Sequence[float], np.ndarray],
    grid: LandscapeGrid
) -> np.ndarray:
    """
    Fractal dimension index of each patch.

    Formula:
        FRAC = 2 * ln(0.25 * P) / ln(A)

    with P in meters and A in square meters. FRAC approaches 1 for simple
    shapes such as squares and 2 for plane-filling shapes.

    Returns:
        np.ndarray: FRAC per patch; NaN for single-cell patches and wherever
        ``ln(A)`` is zero.
    """
    n_cells = np.asarray(n_cells, dtype=np.float64)
    perimeter_m = np.asarray(perimeter_m, dtype=np.float64)
    area_m2 = n_cells * grid.cell_area_m2

    with np.errstate(divide="ignore", invalid="ignore"):
        frac = 2 * np.log(0.25 * perimeter_m) / np.log(area_m2)

    undefined = (n_cells <= 1) | np.isclose(area_m2, 1.0)
    return np.where(undefined, np.nan, frac)


def patch_geometry(patches: PatchLabels) -> pd.DataFrame:
    """
    Compute area, perimeter and shape metrics for every patch.

    Args:
        patches: Output of label_patches().

    Returns:
        pd.DataFrame: One row per patch with columns ``patch_id``, ``class_id``,
        ``n_cells``, ``area`` (ha), ``perimeter`` (m), ``shape_index`` and
        ``frac``.

    Example:
        >>> patches = label_patches(np.ones((3, 3)), resolution=10)
        >>> patch_geometry(patches)[["area", "perimeter", "shape_index"]].iloc[0].tolist()
        [0.09, 120.0, 1.0]
    """
    table = patches.table.copy()
    n_cells = table["n_cells"].to_numpy(dtype=np.float64)
    perimeter = patch_perimeters(patches)

    table["area"] = patch_areas(patches)
    table["perimeter"] = perimeter
    table["shape_index"] = shape_index(n_cells, perimeter, patches.grid)
    table["frac"] = fractal_dimension(n_cells, perimeter, patches.grid)
    return table


# =============================================================================
# BOUNDARIES
# =============================================================================


def boundary_cells(
    key: np.ndarray,
    valid: np.ndarray,
    offsets: Sequence[Tuple[int, int]],
    boundary_is_edge: bool = True
) -> np.ndarray:
    """
    Flag valid cells with at least one neighbour of a different key.

    Args:
        key: Integer array; cells with equal keys belong together.
        valid: Boolean mask of cells taking part.
        offsets: Neighbour offsets to inspect.
        boundary_is_edge: Whether a neighbour outside the array counts as
                          different.

    Returns:
        np.ndarray: Boolean mask of boundary cells.
    """
    height, width = key.shape
    pad = max((max(abs(dr), abs(dc)) for dr, dc in offsets), default=0)

    key_p = np.pad(key, pad, mode="constant", constant_values=0)
    valid_p = np.pad(valid, pad, mode="constant", constant_values=False)
    inside_p = np.pad(np.ones(key.shape, dtype=bool), pad, mode="constant",
                      constant_values=False)

    boundary = np.zeros(key.shape, dtype=bool)
    for dr, dc in offsets:
        window = (slice(pad + dr, pad + dr + height), slice(pad + dc, pad + dc + width))
        n_inside = inside_p[window]

        differs = n_inside & (~valid_p[window] | (key_p[window] != key))
        if boundary_is_edge:
            differs |= ~n_inside
        boundary |= differs

    return boundary & valid


def get_boundaries(
    landscape: Any,
    neighbourhood: Any = 4,
    as_nan: bool = False,
    boundary_is_edge: bool = False,
    resolution: Union[float, Tuple[float, float]] = 1.0
) -> np.ndarray:
    """
    Mark the boundary cells of patches or classes.

    A cell is a boundary cell when any of its neighbours under the chosen
    neighbourhood holds another patch id (for PatchLabels input) or another
    class (for grid input), or holds no data.

    Args:
        landscape: PatchLabels, a LandscapeGrid, or a 2-D label array to wrap.
        neighbourhood: Neighbourhood used to look for differing neighbours.
                      8-neighbourhood boundaries contain the 4-neighbourhood ones.
        as_nan: Return NaN instead of 0 for interior cells.
        boundary_is_edge: Treat cells next to the grid edge as boundary cells.
        resolution: Cell size, only used when ``landscape`` is a raw array.

    Returns:
        np.ndarray: Float grid with 1 for boundary cells, 0 (or NaN) for
        interior cells and NaN for no-data.
    """
    hood = resolve_neighbourhood(neighbourhood)

    if isinstance(landscape, PatchLabels):
        key = landscape.patch_grid
        valid = landscape.grid.valid_mask
    else:
        grid = as_grid(landscape, resolution=resolution)
        key = grid.labels
        valid = grid.valid_mask

    boundary = boundary_cells(key, valid, hood.offsets, boundary_is_edge=boundary_is_edge)

    interior_value = np.nan if as_nan else 0.0
    result = np.where(boundary, 1.0, interior_value)
    result[~valid] = np.nan
    return result
