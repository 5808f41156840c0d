"""
Cell adjacency (co-occurrence) counting between classes.

The full adjacency matrix is a double count: every data cell looks at each of
its neighbours under the kernel, and each ordered pair ``(focal, neighbour)``
adds one to ``M[class(focal), class(neighbour)]``. For mirror-symmetric
kernels (4, 8, and any symmetric custom matrix) this makes the matrix
symmetric, and every like-adjacency between two cells contributes 2 to the
diagonal.

The scan runs over independent row bands whose partial matrices are summed,
so bands can be spread over a thread pool and a caller can stop the scan
between bands.

Author: Jordan Pierce
Date: January 2026
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from tqdm import tqdm

from .config import ADJACENCY_VIEWS, DEFAULT_BAND_ROWS
from .exceptions import ComputationCancelled
from .grid import LandscapeGrid, Neighbourhood, as_grid, resolve_neighbourhood


# =============================================================================
# FULL MATRIX
# =============================================================================


def get_adjacencies(
    landscape: Any,
    neighbourhood: Any = 4,
    what: str = "full",
    upper: bool = False,
    include_diagonal: bool = True,
    resolution: Union[float, Tuple[float, float]] = 1.0,
    n_jobs: int = 1,
    band_rows: Optional[int] = None,
    should_stop: Optional[Callable[[], bool]] = None,
    progress: bool = False
) -> pd.DataFrame:
    """
    Count adjacencies between the classes of a grid.

    Args:
        landscape: A LandscapeGrid, or a 2-D label array to wrap.
        neighbourhood: 4 (rook), 8 (queen) or an odd-by-odd binary kernel whose
                      ones define the neighbours.
        what: Which part of the matrix to return:
              - 'full': the complete double-count matrix
              - 'like': the diagonal only (same-class adjacencies)
              - 'unlike': the strictly lower (or upper) triangle
              - 'triangle': one triangle, counting each class pair once
        upper: Keep the upper instead of the lower triangle for 'unlike' and
               'triangle'.
        include_diagonal: Whether 'triangle' keeps the diagonal.
        resolution: Cell size, only used when ``landscape`` is a raw array.
        n_jobs: Number of worker threads for the band scan.
        band_rows: Rows per band. Defaults to DEFAULT_BAND_ROWS.
        should_stop: Optional zero-argument callable checked between bands.
        progress: Show a progress bar over bands.

    Returns:
        pd.DataFrame: Class x class matrix indexed by class id. The 'full' view
        holds integer counts; other views are float with NaN marking entries
        that were not requested (a genuine zero stays 0).

    Raises:
        InvalidKernelError: If the neighbourhood is not valid.
        ValueError: If ``what`` is unknown or the scan settings are invalid.
        ComputationCancelled: If ``should_stop`` returned True.

    Example:
        >>> get_adjacencies([[1, 2], [2, 1]], neighbourhood=4).to_numpy().tolist()
        [[0, 4], [4, 0]]
    """
    if what not in ADJACENCY_VIEWS:
        raise ValueError(f"Invalid what '{what}'. Use one of {', '.join(ADJACENCY_VIEWS)}.")

    hood = resolve_neighbourhood(neighbourhood)
    grid = as_grid(landscape, resolution=resolution)

    full = adjacency_matrix(
        grid,
        hood,
        n_jobs=n_jobs,
        band_rows=band_rows,
        should_stop=should_stop,
        progress=progress,
    )
    return adjacency_view(full, what=what, upper=upper, include_diagonal=include_diagonal)


def adjacency_matrix(
    grid: LandscapeGrid,
    neighbourhood: Any = 4,
    n_jobs: int = 1,
    band_rows: Optional[int] = None,
    should_stop: Optional[Callable[[], bool]] = None,
    progress: bool = False
) -> pd.DataFrame:
    """Compute the full double-count adjacency matrix of a grid."""
    hood = resolve_neighbourhood(neighbourhood)
    band_rows = DEFAULT_BAND_ROWS if band_rows is None else band_rows
    if band_rows < 1:
        raise ValueError(f"band_rows must be positive, got {band_rows}")
    if n_jobs < 1:
        raise ValueError(f"n_jobs must be positive, got {n_jobs}")

    classes = grid.classes
    n_classes = len(classes)
    index_grid = class_index_grid(grid)

    bands = row_bands(grid.height, band_rows)
    counts = np.zeros((n_classes, n_classes), dtype=np.int64)

    if n_classes > 0:
        partials = _scan_bands(index_grid, hood, n_classes, bands, n_jobs, should_stop, progress)
        counts = merge_counts(partials, n_classes)

    return pd.DataFrame(counts, index=pd.Index(classes, name="class"),
                        columns=pd.Index(classes, name="class"))


def class_index_grid(grid: LandscapeGrid) -> np.ndarray:
    """Map each cell to the position of its class in ``grid.classes`` (-1 for no-data)."""
    index_grid = np.full(grid.shape, -1, dtype=np.int64)
    index_grid[grid.valid_mask] = np.searchsorted(grid.classes, grid.labels[grid.valid_mask])
    return index_grid


def row_bands(height: int, band_rows: int) -> List[Tuple[int, int]]:
    """Split ``range(height)`` into ``(start, stop)`` row bands."""
    return [(start, min(start + band_rows, height)) for start in range(0, height, band_rows)]


def count_band(
    index_grid: np.ndarray,
    offsets: Sequence[Tuple[int, int]],
    n_classes: int,
    start: int,
    stop: int
) -> np.ndarray:
    """
    Count adjacencies whose focal cell lies in rows ``[start, stop)``.

    Neighbours are looked up in the whole grid, so bands never miss pairs
    that cross a band edge.
    """
    height, width = index_grid.shape
    counts = np.zeros(n_classes * n_classes, dtype=np.int64)

    for dr, dc in offsets:
        # Focal window whose shifted neighbours stay inside the grid
        r0, r1 = max(start, -dr), min(stop, height - dr)
        c0, c1 = max(0, -dc), min(width, width - dc)
        if r0 >= r1 or c0 >= c1:
            continue

        focal = index_grid[r0:r1, c0:c1]
        neighbour = index_grid[r0 + dr:r1 + dr, c0 + dc:c1 + dc]
        both_valid = (focal >= 0) & (neighbour >= 0)

        pair_index = focal[both_valid] * n_classes + neighbour[both_valid]
        counts += np.bincount(pair_index, minlength=n_classes * n_classes)

    return counts.reshape(n_classes, n_classes)


def merge_counts(partials: Sequence[np.ndarray], n_classes: int) -> np.ndarray:
    """Sum partial band matrices; order does not matter."""
    total = np.zeros((n_classes, n_classes), dtype=np.int64)
    for partial in partials:
        total += partial
    return total


def _check_stop(should_stop: Optional[Callable[[], bool]], completed: int) -> None:
    if should_stop is not None and should_stop():
        raise ComputationCancelled(
            f"Adjacency scan cancelled after {completed} band(s)", completed_units=completed
        )


def _scan_bands(
    index_grid: np.ndarray,
    hood: Neighbourhood,
    n_classes: int,
    bands: Sequence[Tuple[int, int]],
    n_jobs: int,
    should_stop: Optional[Callable[[], bool]],
    progress: bool
) -> List[np.ndarray]:
    partials = []

    if n_jobs == 1:
        for start, stop in tqdm(bands, desc="Counting adjacencies", unit="band",
                                disable=not progress):
            _check_stop(should_stop, len(partials))
            partials.append(count_band(index_grid, hood.offsets, n_classes, start, stop))
        return partials

    # numpy releases the GIL inside the vectorized band work
    with ThreadPoolExecutor(max_workers=n_jobs) as executor:
        futures = [
            executor.submit(count_band, index_grid, hood.offsets, n_classes, start, stop)
            for start, stop in bands
        ]
        try:
            for future in tqdm(as_completed(futures), total=len(futures),
                               desc="Counting adjacencies", unit="band", disable=not progress):
                _check_stop(should_stop, len(partials))
                partials.append(future.result())
        except ComputationCancelled:
            for future in futures:
                future.cancel()
            raise

    return partials


# =============================================================================
# VIEWS
# =============================================================================


def adjacency_view(
    full: pd.DataFrame,
    what: str = "full",
    upper: bool = False,
    include_diagonal: bool = True
) -> pd.DataFrame:
    """
    Derive one of the adjacency views from a full matrix without rescanning.

    Args:
        full: Full double-count matrix from adjacency_matrix().
        what: 'full', 'like', 'unlike' or 'triangle'.
        upper: Keep the upper triangle for 'unlike' and 'triangle'.
        include_diagonal: Whether 'triangle' keeps the diagonal.

    Returns:
        pd.DataFrame: A new matrix; excluded entries are NaN.

    Raises:
        ValueError: If ``what`` is unknown.
    """
    if what not in ADJACENCY_VIEWS:
        raise ValueError(f"Invalid what '{what}'. Use one of {', '.join(ADJACENCY_VIEWS)}.")

    if what == "full":
        return full.copy()

    values = full.to_numpy(dtype=np.float64)
    ones = np.ones(values.shape, dtype=bool)

    if what == "like":
        keep = np.eye(len(values), dtype=bool)
    elif what == "unlike":
        keep = np.triu(ones, k=1) if upper else np.tril(ones, k=-1)
    else:
        k = 0 if include_diagonal else 1
        keep = np.triu(ones, k=k) if upper else np.tril(ones, k=-k)

    return pd.DataFrame(np.where(keep, values, np.nan), index=full.index.copy(),
                        columns=full.columns.copy())


# =============================================================================
# CO-OCCURRENCE VECTOR
# =============================================================================


def triangular_index(r: int, c: int) -> int:
    """Position of entry ``(r, c)`` (``r >= c``) in a row-wise packed lower triangle."""
    if c > r:
        r, c = c, r
    return r * (r + 1) // 2 + c


def get_cooccurrence_vector(
    landscape: Any,
    neighbourhood: Any = 4,
    ordered: bool = True,
    resolution: Union[float, Tuple[float, float]] = 1.0
) -> np.ndarray:
    """
    Flatten the full adjacency matrix into a co-occurrence vector.

    Args:
        landscape: A LandscapeGrid, or a 2-D label array to wrap.
        neighbourhood: Connectivity specification.
        ordered: If True, return the full matrix in row-major order
                 (``n_classes ** 2`` entries). If False, fold each unordered
                 class pair into one entry of the packed lower triangle
                 (``n * (n + 1) / 2`` entries, see triangular_index()).
        resolution: Cell size, only used when ``landscape`` is a raw array.

    Returns:
        np.ndarray: int64 vector of pair counts.
    """
    grid = as_grid(landscape, resolution=resolution)
    counts = adjacency_matrix(grid, neighbourhood).to_numpy()

    if ordered:
        return counts.ravel()

    n_classes = len(counts)
    vector = np.zeros(n_classes * (n_classes + 1) // 2, dtype=np.int64)
    for r in range(n_classes):
        for c in range(r + 1):
            pair_count = counts[r, c] if r == c else counts[r, c] + counts[c, r]
            vector[triangular_index(r, c)] = pair_count
    return vector
