"""Core rendering module.

Components:
    ray: Ray data structure and sampling utilities
    integrator: Path tracing estimator and the parallel render driver

The integrator unrolls the recursive light-transport estimator into a bounded
loop and averages jittered camera paths per pixel in a Taichi kernel. Tone
mapping happens on the host.

All compute-intensive operations use Taichi kernels.
"""

from .ray import (
    Ray,
    build_onb_from_normal,
    local_to_world,
    make_ray,
    random_cosine_direction,
    ray_at,
    safe_normalize,
    sample_cosine_hemisphere,
    vec3,
)

# Note: integrator is NOT imported here; it depends on the camera, materials
# and scene modules, which import from this package.
#
# For rendering, use:
#   from prayer.core.integrator import render

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "safe_normalize",
    "random_cosine_direction",
    "build_onb_from_normal",
    "local_to_world",
    "sample_cosine_hemisphere",
]
