"""Quad primitive with ray-quad intersection.

A quad is defined by:
- Q: A corner point of the quad
- u: Edge vector from Q to adjacent corner
- v: Edge vector from Q to other adjacent corner

The quad spans the parallelogram from Q to Q+u+v. Quads are two-sided: the
reported normal always faces the incoming ray, so a ground plane or wall
scatters light back toward the side it was seen from. The hit UV is the
parametric position (alpha, beta) inside the parallelogram.

Ray-quad intersection uses the parametric plane test:
1. Find where ray intersects the plane containing the quad
2. Check if the intersection point lies within the quad bounds

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prayer.geometry.quad import Quad, hit_quad
    >>> # Floor quad at y=0, spanning x=[0,1] and z=[0,1]
    >>> quad = Quad(
    ...     Q=ti.math.vec3(0, 0, 0),
    ...     u=ti.math.vec3(1, 0, 0),
    ...     v=ti.math.vec3(0, 0, 1)
    ... )
"""

import taichi as ti
import taichi.math as tm

from .sphere import HitRecord, vec2

vec3 = tm.vec3


@ti.dataclass
class Quad:
    """A quad (parallelogram) defined by a corner point and two edge vectors.

    Attributes:
        Q: The corner point of the quad (vec3).
        u: Edge vector from Q to adjacent corner (vec3).
        v: Edge vector from Q to other adjacent corner (vec3).
    """

    Q: vec3
    u: vec3
    v: vec3


@ti.func
def _compute_quad_frame(quad: Quad):
    """Compute the quad's plane normal and the dual basis for (alpha, beta).

    With n = u x v (unnormalized), the vectors

        w_u = (v x n) / dot(n, n)
        w_v = (n x u) / dot(n, n)

    satisfy alpha = dot(w_u, P - Q) and beta = dot(w_v, P - Q) for any point
    P = Q + alpha * u + beta * v in the quad's plane.

    Args:
        quad: The quad to compute frame for.

    Returns:
        Tuple of (normal, d, w_u, w_v) where d is the plane constant.
    """
    n = tm.cross(quad.u, quad.v)
    n_dot_n = tm.dot(n, n)

    normal = vec3(0.0, 0.0, 0.0)
    w_u = vec3(0.0, 0.0, 0.0)
    w_v = vec3(0.0, 0.0, 0.0)

    # Degenerate quad (u and v parallel) keeps zero vectors and never hits
    if n_dot_n > 1e-10:
        normal = n / ti.sqrt(n_dot_n)
        w_u = tm.cross(quad.v, n) / n_dot_n
        w_v = tm.cross(n, quad.u) / n_dot_n

    d = tm.dot(normal, quad.Q)
    return normal, d, w_u, w_v


@ti.func
def hit_quad(
    ray_origin: vec3,
    ray_direction: vec3,
    quad: Quad,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-quad intersection.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray (need not be normalized).
        quad: The quad to test intersection against.
        t_min: Minimum t value to consider a valid hit (avoids self-intersection).
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A HitRecord containing intersection information. Check hit field
        to determine if intersection occurred.
    """
    normal, d, w_u, w_v = _compute_quad_frame(quad)
    denom = tm.dot(normal, ray_direction)

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    hit_uv = vec2(0.0, 0.0)

    # Ray not parallel to plane
    if ti.abs(denom) > 1e-8:
        t = (d - tm.dot(normal, ray_origin)) / denom

        if t > t_min and t < t_max:
            point = ray_origin + t * ray_direction
            p_minus_q = point - quad.Q
            alpha = tm.dot(w_u, p_minus_q)
            beta = tm.dot(w_v, p_minus_q)

            if alpha >= 0.0 and alpha <= 1.0 and beta >= 0.0 and beta <= 1.0:
                did_hit = 1
                hit_t = t
                hit_point = point
                hit_uv = vec2(alpha, beta)
                # Face the normal against the incoming ray
                hit_normal = normal
                if denom > 0.0:
                    hit_normal = -normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        uv=hit_uv,
    )
