"""Geometry module for shape primitives.

Components:
    sphere: Sphere primitive, the shared HitRecord and the direction -> UV map
    quad: Parallelogram primitive

Surfaces form a closed set of kinds (see SurfaceKind). The scene stores a kind
tag per object and dispatches to the matching intersection routine with a
single if/elif chain inside the kernel.

Ray-object intersection follows the pattern:
    record = hit_<shape>(ray_origin, ray_direction, shape, t_min, t_max)
"""

from enum import IntEnum

from .quad import Quad, hit_quad
from .sphere import HitRecord, Sphere, hit_sphere, uv_at_dir, uv_at_dir_py


class SurfaceKind(IntEnum):
    """Tag identifying which primitive an object's surface is."""

    SPHERE = 0
    QUAD = 1


__all__ = [
    "SurfaceKind",
    "Sphere",
    "HitRecord",
    "hit_sphere",
    "uv_at_dir",
    "uv_at_dir_py",
    "Quad",
    "hit_quad",
]
