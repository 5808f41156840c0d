"""
LandscapeAnalyzer: one-stop access to the landscape metrics engine.

This module provides the LandscapeAnalyzer class, which wraps a categorical
grid and lazily computes and caches everything derived from it.

The results are organized into four categories:
    - Patches: Patch labeling and the per-patch table
    - Geometry: Area, Perimeter, Shape Index, Fractal Dimension
    - Core Area: Edge/core partition, core area and number of core areas
    - Configuration: Class adjacency (co-occurrence) matrices

Class- and landscape-level roll-ups (sum, mean, SD, CV) are built on top of
the patch table.

Author: Jordan Pierce
Date: January 2026
"""

from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from tqdm import tqdm

from .adjacency import adjacency_matrix, adjacency_view
from .aggregate import aggregate_metrics, summarise
from .config import AGGREGATED_COLUMNS
from .core_area import CorePartition, core_partition, n_core_areas, validate_edge_depth
from .geometry import patch_geometry
from .grid import LandscapeGrid, as_grid, resolve_neighbourhood
from .patches import PatchLabels, label_patches


# =============================================================================
# CLASS DEFINITION
# =============================================================================


class LandscapeAnalyzer:
    """
    A cached analyzer for the structural metrics of a categorical grid.

    The analyzer validates its inputs once, then computes patches, geometry,
    core areas and adjacencies on first use. Every result is derived from the
    read-only grid, so calling a method twice returns the same values.

    Attributes:
        grid (LandscapeGrid): The validated grid.
        neighbourhood: Connectivity used for patch labeling (4 or 8).
        edge_depth (int): Default edge depth for core-area queries.
        boundary_is_edge (bool): Whether the grid edge counts as a patch boundary
                                 for core areas.
        verbose (bool): Print progress messages.

    Example:
        >>> analyzer = LandscapeAnalyzer(
        ...     landcover,
        ...     resolution=30,   # 30 m cells
        ...     neighbourhood=8,
        ...     edge_depth=2
        ... )
        >>> patches = analyzer.calculate_patch_table()
        >>> summary_df, report = analyzer.generate_report()
    """

    def __init__(
        self,
        values: Any,
        resolution: Union[float, Tuple[float, float]] = 1.0,
        nodata: Optional[float] = None,
        neighbourhood: Any = 8,
        edge_depth: int = 1,
        boundary_is_edge: bool = True,
        verbose: bool = True
    ):
        """
        Initialize the LandscapeAnalyzer with a grid and its settings.

        Args:
            values: A LandscapeGrid or 2-D array-like of class labels.
            resolution: Cell size in meters; a single value or an (x, y) pair.
                       Ignored when ``values`` is already a LandscapeGrid.
            nodata: Optional sentinel marking no-data cells.
            neighbourhood: Connectivity for patch labeling: 4, 8 or a kernel.
            edge_depth: Default number of edge cells stripped for core areas.
            boundary_is_edge: Whether cells along the grid edge are patch edge.
            verbose: Print progress messages.

        Raises:
            InvalidGridError: If the grid or resolution is malformed.
            InvalidKernelError: If the neighbourhood is not valid.
            InvalidDepthError: If edge_depth is negative or fractional.
        """
        # Validate everything before any work is done
        self.neighbourhood = resolve_neighbourhood(neighbourhood)
        self.edge_depth = validate_edge_depth(edge_depth)
        self.boundary_is_edge = boundary_is_edge
        self.verbose = verbose
        self.grid: LandscapeGrid = as_grid(values, resolution=resolution, nodata=nodata)

        # Cache for derived data
        self._patches: Optional[PatchLabels] = None
        self._geometry: Optional[pd.DataFrame] = None
        self._partitions: Dict[Tuple[int, bool], CorePartition] = {}
        self._adjacencies: Dict[Tuple[Tuple[int, int], ...], pd.DataFrame] = {}

        # Print initialization summary
        self._log("=" * 60)
        self._log("LandscapeAnalyzer Initialized")
        self._log("=" * 60)
        self._log(f"  Grid:        {self.grid.height} rows x {self.grid.width} cols")
        self._log(f"  Resolution:  {self.grid.x_res:g} x {self.grid.y_res:g} m")
        self._log(f"  No-data:     {self.grid.n_cells - self.grid.n_valid} cells")
        self._log(f"  Classes:     {self.grid.classes.tolist()}")
        self._log(f"  Neighbours:  {self.neighbourhood.name}")
        self._log(f"  Edge depth:  {self.edge_depth}")
        self._log("=" * 60)

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)

    def _resolve_depth(self, edge_depth: Optional[int]) -> int:
        return self.edge_depth if edge_depth is None else validate_edge_depth(edge_depth)

    def _load_patches(self) -> PatchLabels:
        """
        Label and cache the patches of the grid.

        Returns:
            PatchLabels: Patch-id grid and patch table.
        """
        if self._patches is not None:
            return self._patches

        self._log("[INFO] Labeling patches...")
        self._patches = label_patches(self.grid, neighbourhood=self.neighbourhood,
                                      progress=self.verbose)

        if self._patches.n_patches == 0:
            self._log("[WARNING] Grid holds no data, no patches found")
        else:
            self._log(f"[INFO] Found {self._patches.n_patches} patches")
        return self._patches

    def _load_geometry(self) -> pd.DataFrame:
        if self._geometry is None:
            self._geometry = patch_geometry(self._load_patches())
        return self._geometry

    # =========================================================================
    # PATCH METRICS
    # =========================================================================

    @property
    def patches(self) -> PatchLabels:
        return self._load_patches()

    def calculate_patch_table(self, edge_depth: Optional[int] = None) -> pd.DataFrame:
        """
        Calculate the Patch Table - One Row per Patch.

        Combines the patch labeling, the patch geometry and the core area at
        the requested edge depth.

        Args:
            edge_depth: Edge depth for the core area. Defaults to the analyzer's.

        Returns:
            pd.DataFrame: DataFrame with one row per patch containing:
                - 'patch_id': Patch id (1-based, row-major discovery order)
                - 'class_id': Class of the patch
                - 'n_cells': Number of cells
                - 'area': Area in hectares
                - 'perimeter': Perimeter in meters
                - 'shape_index': Perimeter over minimum raster perimeter (>= 1)
                - 'frac': Fractal dimension index (NaN for single cells)
                - 'core_area': Core area in hectares
                - 'n_core_areas': Number of disjunct core areas

        Raises:
            InvalidDepthError: If edge_depth is negative or fractional.

        Example:
            >>> table = analyzer.calculate_patch_table(edge_depth=1)
            >>> large = table[table['area'] > 1.0]
        """
        depth = self._resolve_depth(edge_depth)
        self._log(f"\n[METRIC] Calculating Patch Table (edge depth={depth})...")

        partition = self.calculate_core_partition(depth)
        table = self._load_geometry().copy()
        table["core_area"] = partition.core_areas.to_numpy()
        table["n_core_areas"] = n_core_areas(partition).to_numpy()

        if len(table) > 0:
            self._log(f"  → Patches: {len(table)}")
            self._log(f"  → Area: total={table['area'].sum():.4f} ha, "
                      f"mean={table['area'].mean():.4f} ha")
            self._log(f"  → Shape index: mean={table['shape_index'].mean():.3f}")
            self._log(f"  → Core area: total={table['core_area'].sum():.4f} ha")

        return table

    # =========================================================================
    # CORE AREA
    # =========================================================================

    def calculate_core_partition(self, edge_depth: Optional[int] = None) -> CorePartition:
        """
        Calculate the Edge/Core Partition - The Patch Interior Metric.

        Args:
            edge_depth: Number of stripping rounds. Defaults to the analyzer's.

        Returns:
            CorePartition: Partition grid plus core cells per patch.

        Raises:
            InvalidDepthError: If edge_depth is negative or fractional.
        """
        depth = self._resolve_depth(edge_depth)
        key = (depth, self.boundary_is_edge)

        if key not in self._partitions:
            self._partitions[key] = core_partition(
                self._load_patches(), edge_depth=depth, boundary_is_edge=self.boundary_is_edge
            )
        return self._partitions[key]

    # =========================================================================
    # ADJACENCY
    # =========================================================================

    def calculate_adjacencies(
        self,
        what: str = "full",
        upper: bool = False,
        neighbourhood: Any = 4,
        include_diagonal: bool = True,
        n_jobs: int = 1,
        should_stop: Optional[Callable[[], bool]] = None
    ) -> pd.DataFrame:
        """
        Calculate the Class Adjacency Matrix - The Configuration Metric.

        The full matrix is computed once per neighbourhood and cached; other
        views are derived from it.

        Args:
            what: 'full', 'like', 'unlike' or 'triangle'.
            upper: Keep the upper triangle for 'unlike' and 'triangle'.
            neighbourhood: Kernel used for adjacency (4, 8 or a binary matrix).
                          Independent of the patch-labeling neighbourhood.
            include_diagonal: Whether 'triangle' keeps the diagonal.
            n_jobs: Worker threads for the band scan.
            should_stop: Optional cancellation check between row bands.

        Returns:
            pd.DataFrame: Class x class matrix; NaN marks excluded entries.

        Raises:
            InvalidKernelError: If the neighbourhood is not valid.
            ComputationCancelled: If should_stop requested a stop.
        """
        hood = resolve_neighbourhood(neighbourhood)
        self._log(f"\n[METRIC] Calculating Adjacencies (neighbourhood={hood.name}, what={what})...")

        # Keyed on offsets: kernels of different shape can share their bytes
        cache_key = hood.offsets
        if cache_key not in self._adjacencies:
            self._adjacencies[cache_key] = adjacency_matrix(
                self.grid, hood, n_jobs=n_jobs, should_stop=should_stop, progress=self.verbose
            )

        full = self._adjacencies[cache_key]
        values = full.to_numpy()
        if values.size > 0:
            like = int(np.trace(values))
            self._log(f"  → Like adjacencies: {like}, unlike: {int(values.sum()) - like}")

        return adjacency_view(full, what=what, upper=upper, include_diagonal=include_diagonal)

    # =========================================================================
    # CLASS & LANDSCAPE ROLL-UPS
    # =========================================================================

    def calculate_class_metrics(self, edge_depth: Optional[int] = None) -> pd.DataFrame:
        """
        Calculate Class-Level Metrics - sum, mean, SD and CV per class.

        Returns:
            pd.DataFrame: Tidy table (level, class, id, metric, value) for
            area, perimeter, shape index, fractal dimension and core area.
        """
        table = self.calculate_patch_table(edge_depth)
        self._log("\n[METRIC] Aggregating class-level metrics...")
        return aggregate_metrics(table, AGGREGATED_COLUMNS, levels=("class",))

    def calculate_landscape_metrics(self, edge_depth: Optional[int] = None) -> pd.DataFrame:
        """
        Calculate Landscape-Level Metrics - pooled over all patches.

        Returns:
            pd.DataFrame: Tidy table (level, class, id, metric, value).
        """
        table = self.calculate_patch_table(edge_depth)
        self._log("\n[METRIC] Aggregating landscape-level metrics...")
        result = aggregate_metrics(table, AGGREGATED_COLUMNS, levels=("landscape",))

        frac_mn = result.loc[result["metric"] == "frac_mn", "value"]
        if len(frac_mn) and not np.isnan(frac_mn.iloc[0]):
            self._log(f"  → Mean fractal dimension: {frac_mn.iloc[0]:.4f}")
        return result

    # =========================================================================
    # COMPREHENSIVE REPORT
    # =========================================================================

    def generate_report(
        self,
        include_patch_details: bool = True,
        adjacency_neighbourhood: Any = 4
    ) -> Tuple[pd.DataFrame, Dict[str, Any]]:
        """
        Generate a comprehensive landscape metrics report.

        Runs every metric category and returns both a summary DataFrame and a
        dictionary of plain Python values (suitable for JSON export by the
        caller).

        Args:
            include_patch_details: Whether to include the per-patch table.
            adjacency_neighbourhood: Kernel used for the adjacency matrix.

        Returns:
            Tuple[pd.DataFrame, Dict[str, Any]]:
                - DataFrame with one key value per metric category
                - Dictionary with full results

        Note:
            A metric that fails is recorded under 'skipped_metrics' with the
            error message and the remaining metrics are still computed.
        """
        self._log("\n" + "=" * 60)
        self._log("GENERATING LANDSCAPE METRICS REPORT")
        self._log("=" * 60)

        report: Dict[str, Any] = {
            'metadata': {
                'height': self.grid.height,
                'width': self.grid.width,
                'resolution_m': list(self.grid.resolution),
                'nodata_cells': self.grid.n_cells - self.grid.n_valid,
                'classes': self.grid.classes.tolist(),
                'neighbourhood': self.neighbourhood.name,
                'edge_depth': self.edge_depth,
                'boundary_is_edge': self.boundary_is_edge
            },
            'metrics': {},
            'patch_details': None,
            'computed_metrics': [],
            'skipped_metrics': []
        }

        summary_rows = []

        metrics_config: List[Tuple[str, Callable[[], Any]]] = [
            ('patches', self._summarise_patches),
            ('landscape', self._summarise_landscape),
            ('classes', self._summarise_classes),
            ('adjacency', lambda: self._summarise_adjacency(adjacency_neighbourhood)),
        ]

        for name, method in tqdm(metrics_config, desc="Computing metrics", unit="metric",
                                 disable=not self.verbose):
            try:
                result = method()
            except Exception as e:
                self._log(f"[ERROR] {name}: {e}")
                report['skipped_metrics'].append({'name': name, 'reason': str(e)})
                continue

            report['metrics'][name] = result
            report['computed_metrics'].append(name)

            # First numeric value is the key measure
            for key, value in result.items():
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    summary_rows.append({'metric': name, 'key_measure': key, 'value': value})
                    break

        if include_patch_details and 'patches' in report['computed_metrics']:
            table = self.calculate_patch_table()
            report['patch_details'] = table.to_dict(orient='records')

        summary_df = pd.DataFrame(summary_rows, columns=['metric', 'key_measure', 'value'])

        self._log("\n" + "=" * 60)
        self._log("REPORT SUMMARY")
        self._log("=" * 60)
        self._log(f"Computed: {len(report['computed_metrics'])} metrics")
        self._log(f"Skipped: {len(report['skipped_metrics'])} metrics")
        self._log("\nKey Results:")
        self._log("-" * 40)
        for _, row in summary_df.iterrows():
            self._log(f"  {row['metric']:25s} {row['key_measure']:20s} = {row['value']:.4f}")
        self._log("=" * 60)

        return summary_df, to_builtin(report)

    def _summarise_patches(self) -> Dict[str, Any]:
        table = self.calculate_patch_table()
        return {
            'n_patches': int(len(table)),
            'total_area_ha': float(table['area'].sum()) if len(table) else 0.0,
            'total_core_area_ha': float(table['core_area'].sum()) if len(table) else 0.0,
            'patches_per_class': {
                int(k): int(v) for k, v in table.groupby('class_id').size().items()
            }
        }

    def _summarise_landscape(self) -> Dict[str, Any]:
        table = self.calculate_patch_table()
        result = {}
        for column, metric in AGGREGATED_COLUMNS.items():
            stats = summarise(table[column]) if len(table) else summarise([])
            result.update({f"{metric}_{stat}": stats[stat] for stat in ('mean', 'sd', 'cv')})
        return result

    def _summarise_classes(self) -> Dict[str, Any]:
        tidy = self.calculate_class_metrics()
        result: Dict[str, Any] = {'n_classes': int(tidy['class'].nunique())}
        for class_id, rows in tidy.groupby('class'):
            result[str(class_id)] = dict(zip(rows['metric'], rows['value']))
        return result

    def _summarise_adjacency(self, neighbourhood: Any) -> Dict[str, Any]:
        full = self.calculate_adjacencies(what="full", neighbourhood=neighbourhood)
        values = full.to_numpy()
        like = int(np.trace(values)) if values.size else 0
        return {
            'total_adjacencies': int(values.sum()),
            'like_adjacencies': like,
            'unlike_adjacencies': int(values.sum()) - like,
            'classes': full.index.tolist(),
            'matrix': values.tolist()
        }


# =============================================================================
# HELPERS
# =============================================================================


def to_builtin(obj: Any) -> Any:
    """Convert numpy scalars/arrays to Python types; NaN becomes None."""
    if isinstance(obj, np.ndarray):
        return [to_builtin(v) for v in obj.tolist()]
    elif isinstance(obj, (np.integer,)):
        return int(obj)
    elif isinstance(obj, (np.floating, float)):
        value = float(obj)
        return None if np.isnan(value) else value
    elif obj is pd.NA:
        return None
    elif isinstance(obj, dict):
        return {k: to_builtin(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [to_builtin(v) for v in obj]
    return obj


# =============================================================================
# MODULE-LEVEL CONVENIENCE FUNCTION
# =============================================================================


def analyze(
    values: Any,
    resolution: Union[float, Tuple[float, float]] = 1.0,
    nodata: Optional[float] = None,
    neighbourhood: Any = 8,
    edge_depth: int = 1,
    boundary_is_edge: bool = True,
    verbose: bool = True
) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """
    Convenience function to run the full landscape metrics analysis.

    This is a shortcut for creating a LandscapeAnalyzer and generating a
    report in a single function call.

    Args:
        values: 2-D array-like of class labels or a LandscapeGrid.
        resolution: Cell size in meters.
        nodata: Optional no-data sentinel.
        neighbourhood: Connectivity for patch labeling.
        edge_depth: Edge depth for core areas.
        boundary_is_edge: Whether the grid edge counts as patch boundary.
        verbose: Print progress messages.

    Returns:
        Tuple[pd.DataFrame, Dict[str, Any]]: Summary DataFrame and full report dict.

    Example:
        >>> from landscape_metrics import analyze
        >>> df, report = analyze(landcover, resolution=30, edge_depth=2)
    """
    analyzer = LandscapeAnalyzer(
        values,
        resolution=resolution,
        nodata=nodata,
        neighbourhood=neighbourhood,
        edge_depth=edge_depth,
        boundary_is_edge=boundary_is_edge,
        verbose=verbose
    )

    return analyzer.generate_report()
