"""
Shared fixtures for the landscape metrics tests.

Grids are built in memory with numpy; no raster files are needed.
"""

from __future__ import annotations

from collections import deque

import numpy as np
import pytest


@pytest.fixture
def random_landscape() -> np.ndarray:
    """A 20x25 grid of three classes with a few no-data cells."""
    rng = np.random.default_rng(42)
    values = rng.integers(1, 4, size=(20, 25)).astype(np.float64)
    values[rng.random(values.shape) < 0.05] = np.nan
    return values


@pytest.fixture
def clumped_landscape() -> np.ndarray:
    """A 30x30 grid with large blocky patches, so core areas exist."""
    rng = np.random.default_rng(7)
    coarse = rng.integers(1, 4, size=(6, 6))
    return np.kron(coarse, np.ones((5, 5), dtype=np.int64))


def reference_labels(values: np.ndarray, offsets) -> np.ndarray:
    """Straightforward row-major BFS labeling used as a test oracle."""
    height, width = values.shape
    valid = ~np.isnan(values.astype(np.float64))
    labels = np.zeros(values.shape, dtype=np.int64)
    next_id = 0

    for r in range(height):
        for c in range(width):
            if not valid[r, c] or labels[r, c]:
                continue
            next_id += 1
            labels[r, c] = next_id
            queue = deque([(r, c)])
            while queue:
                cr, cc = queue.popleft()
                for dr, dc in offsets:
                    nr, nc = cr + dr, cc + dc
                    if (0 <= nr < height and 0 <= nc < width and valid[nr, nc]
                            and not labels[nr, nc] and values[nr, nc] == values[r, c]):
                        labels[nr, nc] = next_id
                        queue.append((nr, nc))
    return labels


ROOK = [(-1, 0), (0, -1), (0, 1), (1, 0)]
QUEEN = [(-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1)]
