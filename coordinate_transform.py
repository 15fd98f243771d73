"""Coordinate transformation from wipe tower space to print space.

The wipe tower generator renders every tool change as if the tower corner
sat at the origin with no rotation. This module rotates and shifts those
points to where the tower actually stands on the bed.
"""

import numpy as np
from typing import Tuple
from dataclasses import dataclass


Point2D = Tuple[float, float]


def rotation_matrix(angle_rad: float) -> np.ndarray:
    """Return the 2x2 counter-clockwise rotation matrix for an angle in radians."""
    c = np.cos(angle_rad)
    s = np.sin(angle_rad)
    return np.array([[c, -s], [s, c]])


def transform_point(point: Point2D, rotation_deg: float,
                    translation: Point2D) -> Point2D:
    """Rotate a point about the origin, then translate it.

    Args:
        point: (X, Y) in tower-local coordinates
        rotation_deg: Tower rotation in degrees
        translation: (X, Y) position of the tower

    Returns:
        (X, Y) in print coordinates
    """
    angle_rad = np.radians(rotation_deg)
    out = rotation_matrix(angle_rad) @ np.asarray(point, dtype=float)
    out = out + np.asarray(translation, dtype=float)
    return (float(out[0]), float(out[1]))


@dataclass(frozen=True)
class TowerTransform:
    """Fixed placement of the wipe tower for the whole print."""
    rotation_deg: float = 0.0
    position: Point2D = (0.0, 0.0)

    def apply(self, point: Point2D) -> Point2D:
        return transform_point(point, self.rotation_deg, self.position)
