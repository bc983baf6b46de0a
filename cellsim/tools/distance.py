import math
from typing import Sequence, Tuple

import numpy as np

Position = Tuple[float, float, float]

# Distances closer than this are treated as equal when picking a cell
TIE_TOLERANCE_METERS = 1e-9


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Euclidean distance between two 2D or 3D points in metres.

    A missing z coordinate is taken as zero.
    """
    ax, ay, az = _xyz(a)
    bx, by, bz = _xyz(b)
    return math.sqrt((ax - bx) ** 2 + (ay - by) ** 2 + (az - bz) ** 2)


def nearest_cell(position, cells):
    """Find the closest cell to ``position``.

    Args:
        position: (x, y[, z]) of the mobile endpoint in metres.
        cells: Ordered sequence of ``(cell_id, (x, y[, z]))`` pairs.

    Returns:
        ``(cell_id, distance)`` of the closest cell. When several cells are
        equidistant within :data:`TIE_TOLERANCE_METERS` the one listed first
        wins.

    Raises:
        ValueError: If ``cells`` is empty.
    """
    if not cells:
        raise ValueError("No cells to choose from")

    ids = [cell_id for cell_id, _ in cells]
    coords = np.array([_xyz(pos) for _, pos in cells], dtype=float)
    dists = np.linalg.norm(coords - np.array(_xyz(position), dtype=float), axis=1)

    min_dist = dists.min()
    # first index within tolerance of the minimum keeps the lowest-index rule
    best = int(np.flatnonzero(dists <= min_dist + TIE_TOLERANCE_METERS)[0])
    return ids[best], float(dists[best])


def _xyz(point: Sequence[float]) -> Position:
    if len(point) == 2:
        return float(point[0]), float(point[1]), 0.0
    x, y, z = point
    return float(x), float(y), float(z)


__all__ = ["Position", "distance", "nearest_cell", "TIE_TOLERANCE_METERS"]
