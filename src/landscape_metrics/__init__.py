"""
Landscape Metrics - structural metrics of categorical spatial grids.

This package turns a raster of class labels (e.g., land-cover types) into
patches, class adjacency counts, per-patch geometry and core areas, and rolls
patch values up to class and landscape level.

Main Classes:
    LandscapeGrid: Validated, read-only categorical raster
    LandscapeAnalyzer: Cached access to every metric of one grid

Engine Functions:
    label_patches: Connected-component patch labeling (4, 8 or custom kernel)
    get_adjacencies: Class x class adjacency matrix and its views
    patch_geometry: Area, perimeter, shape index and fractal dimension
    core_partition: Edge/core split of every patch
    aggregate_metrics: Class- and landscape-level roll-ups

Example:
    >>> import numpy as np
    >>> from landscape_metrics import LandscapeAnalyzer, label_patches
    >>>
    >>> landcover = np.array([[1, 1, 2],
    ...                       [1, 2, 2],
    ...                       [3, 3, np.nan]])
    >>> patches = label_patches(landcover, neighbourhood=4)
    >>> patches.table
    >>>
    >>> analyzer = LandscapeAnalyzer(landcover, resolution=30, edge_depth=1)
    >>> summary_df, report = analyzer.generate_report()
"""

from .adjacency import adjacency_view, get_adjacencies, get_cooccurrence_vector
from .aggregate import aggregate_metrics, class_level, landscape_level, summarise, tidy
from .analyzer import LandscapeAnalyzer, analyze
from .core_area import CorePartition, core_areas, core_partition, n_core_areas
from .exceptions import (
    ComputationCancelled,
    InvalidDepthError,
    InvalidGridError,
    InvalidKernelError,
    LandscapeMetricsError,
)
from .geometry import get_boundaries, patch_geometry
from .grid import LandscapeGrid, Neighbourhood, resolve_neighbourhood
from .patches import PatchLabels, get_patches, label_patches

__version__ = "0.1.0"
__author__ = "Jordan Pierce"
__all__ = [
    "LandscapeGrid",
    "LandscapeAnalyzer",
    "Neighbourhood",
    "PatchLabels",
    "CorePartition",
    "analyze",
    "resolve_neighbourhood",
    "label_patches",
    "get_patches",
    "get_adjacencies",
    "adjacency_view",
    "get_cooccurrence_vector",
    "patch_geometry",
    "get_boundaries",
    "core_partition",
    "core_areas",
    "n_core_areas",
    "summarise",
    "class_level",
    "landscape_level",
    "tidy",
    "aggregate_metrics",
    "LandscapeMetricsError",
    "InvalidGridError",
    "InvalidKernelError",
    "InvalidDepthError",
    "ComputationCancelled",
]
