"""
LandscapeGrid: an immutable view over a categorical raster.

This module provides the grid model every engine operation consumes, plus the
neighbourhood (connectivity) definitions used for patch labeling, adjacency
counting and boundary detection.

Grids are stored row-major: ``labels[row, col]`` with row 0 at the top, so
``shape == (height, width)``. No-data cells are tracked in a boolean mask and
never take part in patches or adjacency counts.

Author: Jordan Pierce
Date: January 2026
"""

from dataclasses import dataclass
from typing import Any, Iterator, Optional, Tuple, Union

import numpy as np
from scipy import ndimage

from .config import NODATA_LABEL, SQM_PER_HECTARE
from .exceptions import InvalidGridError, InvalidKernelError


# =============================================================================
# NEIGHBOURHOODS
# =============================================================================

_NAMED_NEIGHBOURHOODS = {
    "4": 4,
    "rook": 4,
    "8": 8,
    "queen": 8,
}


def _standard_kernel(directions: int) -> np.ndarray:
    # Rook = Von Neumann, queen = Moore
    connectivity = 1 if directions == 4 else 2
    kernel = ndimage.generate_binary_structure(2, connectivity).astype(np.int8)
    kernel[1, 1] = 0
    return kernel


@dataclass(frozen=True, eq=False)
class Neighbourhood:
    """
    A validated connectivity rule.

    Attributes:
        kernel: Odd-by-odd 0/1 matrix centred on the focal cell (centre is 0).
        offsets: ``(d_row, d_col)`` offsets of every neighbour, in row-major
                 kernel order.
        directions: 4 or 8 for the standard rules, None for custom kernels.
    """

    kernel: np.ndarray
    offsets: Tuple[Tuple[int, int], ...]
    directions: Optional[int] = None

    @property
    def name(self) -> str:
        if self.directions is not None:
            return str(self.directions)
        rows, cols = self.kernel.shape
        return f"custom{rows}x{cols}"

    @property
    def is_symmetric(self) -> bool:
        """True when every offset's mirror image is also an offset."""
        offset_set = set(self.offsets)
        return all((-dr, -dc) in offset_set for dr, dc in self.offsets)

    @property
    def symmetric_offsets(self) -> Tuple[Tuple[int, int], ...]:
        """Offsets closed under mirroring, used where connectivity must be mutual."""
        offset_set = set(self.offsets)
        offset_set.update((-dr, -dc) for dr, dc in self.offsets)
        return tuple(sorted(offset_set))

    @property
    def structure(self) -> Optional[np.ndarray]:
        """
        A 3x3 structuring element for ``scipy.ndimage``, or None.

        Only available when the neighbourhood is symmetric and every offset
        lies within one cell of the focal cell.
        """
        if not self.is_symmetric:
            return None
        if any(abs(dr) > 1 or abs(dc) > 1 for dr, dc in self.offsets):
            return None

        structure = np.zeros((3, 3), dtype=bool)
        structure[1, 1] = True
        for dr, dc in self.offsets:
            structure[1 + dr, 1 + dc] = True
        return structure


def resolve_neighbourhood(neighbourhood: Any) -> Neighbourhood:
    """
    Turn a connectivity specification into a validated Neighbourhood.

    Args:
        neighbourhood: The literal 4 (rook) or 8 (queen), one of the strings
                      "4", "8", "rook", "queen", an existing Neighbourhood, or
                      an odd-by-odd matrix whose ones mark neighbours. Zeros and
                      NaN mark non-neighbours; the centre element is ignored.

    Returns:
        Neighbourhood: The validated neighbourhood.

    Raises:
        InvalidKernelError: If the value is not 4, 8 or a valid kernel matrix.

    Example:
        >>> diagonal = [[1, np.nan, 1],
        ...             [np.nan, 0, np.nan],
        ...             [1, np.nan, 1]]
        >>> resolve_neighbourhood(diagonal).offsets
        ((-1, -1), (-1, 1), (1, -1), (1, 1))
    """
    if isinstance(neighbourhood, Neighbourhood):
        return neighbourhood

    # Named or scalar connectivity
    if isinstance(neighbourhood, str):
        directions = _NAMED_NEIGHBOURHOODS.get(neighbourhood.strip().lower())
        if directions is None:
            raise InvalidKernelError(
                f"Unknown neighbourhood {neighbourhood!r}. Use 4, 8 or a binary matrix.",
                kernel=neighbourhood,
            )
        return _standard_neighbourhood(directions)

    if isinstance(neighbourhood, (bool, np.bool_)):
        raise InvalidKernelError(
            "neighbourhood must be either 4, 8 or a binary matrix", kernel=neighbourhood
        )

    if np.ndim(neighbourhood) == 0:
        try:
            value = float(neighbourhood)
        except (TypeError, ValueError):
            value = None
        if value not in (4.0, 8.0):
            raise InvalidKernelError(
                f"neighbourhood must be either 4, 8 or a binary matrix, got {neighbourhood!r}",
                kernel=neighbourhood,
            )
        return _standard_neighbourhood(int(value))

    return _custom_neighbourhood(neighbourhood)


def _standard_neighbourhood(directions: int) -> Neighbourhood:
    kernel = _standard_kernel(directions)
    return Neighbourhood(
        kernel=kernel,
        offsets=_kernel_offsets(kernel),
        directions=directions,
    )


def _custom_neighbourhood(matrix: Any) -> Neighbourhood:
    try:
        kernel = np.array(matrix, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidKernelError(f"Kernel is not a numeric matrix: {e}", kernel=matrix) from e

    if kernel.ndim != 2:
        raise InvalidKernelError(
            f"Kernel must be a 2-D matrix, got {kernel.ndim} dimension(s)", kernel=matrix
        )

    rows, cols = kernel.shape
    if rows % 2 == 0 or cols % 2 == 0:
        raise InvalidKernelError(
            f"Kernel dimensions must be odd, got {rows}x{cols}", kernel=matrix
        )

    # NaN marks a non-neighbour just like 0
    defined = ~np.isnan(kernel)
    if not np.all(np.isin(kernel[defined], (0.0, 1.0))):
        raise InvalidKernelError(
            "Kernel may only contain 0, 1 or NaN values", kernel=matrix
        )

    binary = np.where(defined, kernel, 0.0).astype(np.int8)
    binary[rows // 2, cols // 2] = 0
    binary.setflags(write=False)

    return Neighbourhood(kernel=binary, offsets=_kernel_offsets(binary))


def _kernel_offsets(kernel: np.ndarray) -> Tuple[Tuple[int, int], ...]:
    centre_r, centre_c = kernel.shape[0] // 2, kernel.shape[1] // 2
    rows, cols = np.nonzero(kernel)
    return tuple(
        (int(r - centre_r), int(c - centre_c)) for r, c in zip(rows, cols)
    )


def neighbour_offsets(neighbourhood: Any) -> Tuple[Tuple[int, int], ...]:
    """Return the ``(d_row, d_col)`` offsets of a connectivity specification."""
    return resolve_neighbourhood(neighbourhood).offsets


# =============================================================================
# GRID MODEL
# =============================================================================


class LandscapeGrid:
    """
    An immutable categorical raster with a known cell resolution.

    The grid copies its input, converts class labels to ``int64`` and keeps a
    separate validity mask. No-data can be given as NaN (float input), as the
    masked cells of a ``numpy.ma.MaskedArray``, as ``None`` entries of nested
    lists, or as cells equal to an explicit ``nodata`` sentinel.

    Attributes:
        labels (np.ndarray): Read-only ``(height, width)`` int64 class labels.
                             No-data cells hold ``NODATA_LABEL``.
        valid_mask (np.ndarray): Read-only boolean mask of cells holding data.
        x_res (float): Cell width in meters.
        y_res (float): Cell height in meters.

    Example:
        >>> grid = LandscapeGrid([[1, 1, 2],
        ...                       [1, np.nan, 2]], resolution=30)
        >>> grid.shape, grid.n_valid, grid.cell_area_ha
        ((2, 3), 5, 0.09)
    """

    def __init__(
        self,
        values: Any,
        resolution: Union[float, Tuple[float, float]] = 1.0,
        nodata: Optional[float] = None
    ):
        """
        Build and validate a grid.

        Args:
            values: 2-D array-like of whole-number class labels.
            resolution: Cell size in meters, either a single value for square
                        cells or an ``(x_res, y_res)`` pair.
            nodata: Optional sentinel value marking no-data cells.

        Raises:
            InvalidGridError: If the array is not rectangular and 2-D, holds
                              non-integral labels, or resolution is not positive.
        """
        self.nodata = nodata
        self.x_res, self.y_res = _coerce_resolution(resolution)

        labels, valid_mask = _coerce_values(values, nodata)
        labels.setflags(write=False)
        valid_mask.setflags(write=False)
        self.labels = labels
        self.valid_mask = valid_mask

        self.validate()

    def validate(self) -> "LandscapeGrid":
        """
        Check the grid invariants.

        Returns:
            LandscapeGrid: The grid itself, so calls can be chained.

        Raises:
            InvalidGridError: If any invariant does not hold.
        """
        if self.labels.ndim != 2 or self.labels.size == 0:
            raise InvalidGridError(
                f"Grid must be a non-empty 2-D array, got shape {self.labels.shape}"
            )
        if self.labels.shape != self.valid_mask.shape:
            raise InvalidGridError("Validity mask does not match the label array")
        for name, value in (("x", self.x_res), ("y", self.y_res)):
            if not np.isfinite(value) or value <= 0:
                raise InvalidGridError(f"{name} resolution must be positive, got {value}")
        return self

    # -------------------------------------------------------------------------
    # Dimensions
    # -------------------------------------------------------------------------

    @property
    def height(self) -> int:
        return int(self.labels.shape[0])

    @property
    def width(self) -> int:
        return int(self.labels.shape[1])

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)

    @property
    def n_cells(self) -> int:
        return int(self.labels.size)

    @property
    def n_valid(self) -> int:
        return int(np.count_nonzero(self.valid_mask))

    @property
    def is_empty(self) -> bool:
        """True when every cell is no-data."""
        return self.n_valid == 0

    @property
    def resolution(self) -> Tuple[float, float]:
        return (self.x_res, self.y_res)

    @property
    def cell_area_m2(self) -> float:
        return self.x_res * self.y_res

    @property
    def cell_area_ha(self) -> float:
        return self.cell_area_m2 / SQM_PER_HECTARE

    @property
    def is_square_cells(self) -> bool:
        return bool(np.isclose(self.x_res, self.y_res, rtol=1e-3))

    @property
    def classes(self) -> np.ndarray:
        """Sorted unique class ids present in the grid."""
        return np.unique(self.labels[self.valid_mask])

    # -------------------------------------------------------------------------
    # Cell access
    # -------------------------------------------------------------------------

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.height and 0 <= col < self.width

    def _check_bounds(self, row: int, col: int) -> None:
        if not self.in_bounds(row, col):
            raise IndexError(
                f"Cell ({row}, {col}) is outside the {self.height}x{self.width} grid"
            )

    def is_nodata(self, row: int, col: int) -> bool:
        self._check_bounds(row, col)
        return not bool(self.valid_mask[row, col])

    def cell(self, row: int, col: int) -> Optional[int]:
        """
        Return the class id of a cell, or None for no-data.

        Raises:
            IndexError: If the cell lies outside the grid.
        """
        self._check_bounds(row, col)
        if not self.valid_mask[row, col]:
            return None
        return int(self.labels[row, col])

    def neighbours(
        self,
        row: int,
        col: int,
        neighbourhood: Any = 4
    ) -> Iterator[Tuple[int, int]]:
        """
        Yield the in-bounds, data-holding neighbours of a cell.

        Args:
            row: Row of the focal cell.
            col: Column of the focal cell.
            neighbourhood: Connectivity specification (see resolve_neighbourhood).

        Yields:
            Tuple[int, int]: ``(row, col)`` of each neighbour in offset order.
        """
        self._check_bounds(row, col)
        for dr, dc in neighbour_offsets(neighbourhood):
            r, c = row + dr, col + dc
            if self.in_bounds(r, c) and self.valid_mask[r, c]:
                yield r, c

    def index_to_rc(self, index: int) -> Tuple[int, int]:
        """Convert a row-major flat index to ``(row, col)``."""
        if not 0 <= index < self.n_cells:
            raise IndexError(f"Index {index} is outside a grid of {self.n_cells} cells")
        return (index // self.width, index % self.width)

    def rc_to_index(self, row: int, col: int) -> int:
        """Convert ``(row, col)`` to a row-major flat index."""
        self._check_bounds(row, col)
        return row * self.width + col

    def __repr__(self) -> str:
        return (
            f"LandscapeGrid(shape={self.shape}, resolution={self.resolution}, "
            f"classes={self.classes.tolist()}, nodata_cells={self.n_cells - self.n_valid})"
        )


def as_grid(
    landscape: Any,
    resolution: Union[float, Tuple[float, float]] = 1.0,
    nodata: Optional[float] = None
) -> LandscapeGrid:
    """Return ``landscape`` as a LandscapeGrid, wrapping raw arrays if needed."""
    if isinstance(landscape, LandscapeGrid):
        return landscape
    return LandscapeGrid(landscape, resolution=resolution, nodata=nodata)


# =============================================================================
# INPUT COERCION
# =============================================================================


def _coerce_resolution(resolution: Any) -> Tuple[float, float]:
    try:
        if np.ndim(resolution) == 0:
            x_res = y_res = float(resolution)
        else:
            values = [float(v) for v in resolution]
            if len(values) != 2:
                raise InvalidGridError(
                    f"Resolution must be a single value or an (x, y) pair, got {resolution!r}"
                )
            x_res, y_res = values
    except (TypeError, ValueError) as e:
        if isinstance(e, InvalidGridError):
            raise
        raise InvalidGridError(f"Resolution is not numeric: {resolution!r}") from e

    for value in (x_res, y_res):
        if not np.isfinite(value) or value <= 0:
            raise InvalidGridError(f"Resolution must be positive, got {resolution!r}")

    return x_res, y_res


def _check_rectangular(values: Any) -> None:
    if len(values) == 0:
        raise InvalidGridError("Grid must contain at least one row")

    row_lengths = set()
    for row in values:
        if not isinstance(row, (list, tuple, np.ndarray)):
            raise InvalidGridError("Grid rows must be sequences of class labels")
        row_lengths.add(len(row))

    if len(row_lengths) != 1:
        raise InvalidGridError(
            f"Grid is not rectangular: row lengths {sorted(row_lengths)}"
        )


def _coerce_values(values: Any, nodata: Optional[float]) -> Tuple[np.ndarray, np.ndarray]:
    if isinstance(values, (list, tuple)):
        _check_rectangular(values)

    # Masked arrays carry their own no-data cells
    if isinstance(values, np.ma.MaskedArray):
        mask = np.ma.getmaskarray(values).copy()
        values = np.ma.getdata(values)
    else:
        mask = None

    try:
        arr = np.array(values)
    except ValueError as e:
        raise InvalidGridError(f"Grid is not rectangular: {e}") from e

    if arr.ndim != 2 or arr.size == 0:
        raise InvalidGridError(f"Grid must be a non-empty 2-D array, got shape {arr.shape}")

    # None entries in nested lists become no-data
    if arr.dtype == object:
        is_none = np.vectorize(lambda v: v is None, otypes=[bool])(arr)
        arr = np.where(is_none, np.nan, arr)
        try:
            arr = arr.astype(np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidGridError(f"Grid labels must be numeric: {e}") from e

    if arr.dtype.kind == "b":
        arr = arr.astype(np.int64)
    if arr.dtype.kind not in "iuf":
        raise InvalidGridError(f"Grid labels must be numeric, got dtype {arr.dtype}")

    nodata_mask = np.zeros(arr.shape, dtype=bool) if mask is None else mask
    if arr.dtype.kind == "f":
        nodata_mask |= np.isnan(arr)
    if nodata is not None and not (isinstance(nodata, float) and np.isnan(nodata)):
        nodata_mask |= arr == nodata

    valid_mask = ~nodata_mask
    valid_values = arr[valid_mask]

    if arr.dtype.kind == "f":
        if not np.all(np.isfinite(valid_values)):
            raise InvalidGridError("Grid labels must be finite whole numbers")
        if not np.all(valid_values == np.round(valid_values)):
            raise InvalidGridError("Grid labels must be whole numbers (integral class ids)")

    if valid_values.size:
        if arr.dtype.kind == "u":
            out_of_range = valid_values.max() > np.uint64(np.iinfo(np.int64).max)
        elif arr.dtype.kind == "f":
            # Both bounds are powers of two, so the float comparison is exact
            out_of_range = valid_values.min() < -2.0 ** 63 or valid_values.max() >= 2.0 ** 63
        else:
            out_of_range = False
        if out_of_range:
            raise InvalidGridError(
                "Grid labels must fit in a 64-bit signed integer, "
                f"got range [{valid_values.min()}, {valid_values.max()}]"
            )

    labels = np.full(arr.shape, NODATA_LABEL, dtype=np.int64)
    labels[valid_mask] = valid_values.astype(np.int64)

    return labels, valid_mask
