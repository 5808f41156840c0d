"""
Shared constants for the landscape metrics engine.

Author: Jordan Pierce
Date: January 2026
"""

# Label stored in integer grids for cells that hold no data
NODATA_LABEL = -1

# Patch id used for "no patch" in patch-id grids
BACKGROUND_PATCH_ID = 0

# Square meters per hectare
SQM_PER_HECTARE = 10_000.0

# Rows per unit of work when scanning a grid in bands
DEFAULT_BAND_ROWS = 256

# Adjacency matrix views
ADJACENCY_VIEWS = ("full", "like", "unlike", "triangle")

# Patch-level columns rolled up to class and landscape level
AGGREGATED_COLUMNS = {
    "area": "area",
    "perimeter": "perimeter",
    "shape_index": "shape",
    "frac": "frac",
    "core_area": "core",
}
