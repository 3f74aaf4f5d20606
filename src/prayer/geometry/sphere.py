"""Sphere primitive with robust ray-sphere intersection.

This module provides the Sphere dataclass, the shared HitRecord produced by
every primitive, and the latitude/longitude UV parameterization used both for
texturing spheres and for looking up the environment in the direction of an
escaping ray.

Intersection uses the robust quadratic formula from Ray Tracing Gems to avoid
catastrophic cancellation when b^2 is nearly equal to 4ac.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prayer.geometry.sphere import Sphere, hit_sphere
    >>> sphere = Sphere(center=ti.math.vec3(0, 0, -1), radius=0.5)
    >>> # Use hit_sphere within a Taichi kernel
"""

import math

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3
vec2 = tm.vec2


@ti.dataclass
class Sphere:
    """A sphere defined by center point and radius.

    Attributes:
        center: The center point of the sphere (vec3).
        radius: The radius of the sphere (positive float).
    """

    center: vec3
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Record of a ray-primitive intersection.

    Attributes:
        hit: Whether the ray intersected the primitive (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
        point: The 3D point where the ray intersected the surface.
        normal: The unit surface normal at the intersection point.
        uv: The surface parameterization of the hit point, each in [0, 1].

    All fields other than ``hit`` are only meaningful if hit == 1.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    uv: vec2


@ti.func
def uv_at_dir(direction: vec3) -> vec2:
    """Map a unit direction to latitude/longitude coordinates.

    u wraps once around the y axis starting from -x, v runs from the +y pole
    (v = 0) to the -y pole (v = 1), so that v follows image rows top to
    bottom.

    Args:
        direction: A unit direction vector.

    Returns:
        The (u, v) coordinates, each in [0, 1].
    """
    y = tm.clamp(direction.y, -1.0, 1.0)
    u = 0.5 + ti.atan2(direction.z, direction.x) / (2.0 * tm.pi)
    v = 0.5 - ti.asin(y) / tm.pi
    return vec2(u, v)


@ti.func
def _solve_quadratic_robust(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Solve a*t^2 + 2*h*t + c = 0 using a numerically stable method.

    Args:
        h: Half of the linear coefficient.
        a: Quadratic coefficient.
        c: Constant term.
        sqrt_d: Square root of discriminant (h^2 - a*c).

    Returns:
        Tuple of (t0, t1) where t0 <= t1.
    """
    # q = -(h + sign(h) * sqrt(discriminant))
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0

    if ti.abs(q) < 1e-10:
        # Tangent ray through the center plane: standard formula is safe here
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-sphere intersection.

    Solves |ray_origin + t * ray_direction - center|^2 = radius^2 in the
    half-b form a*t^2 + 2*h*t + c = 0 with

        a = dot(direction, direction)
        h = dot(direction, origin - center)
        c = dot(origin - center, origin - center) - radius^2

    and keeps the smaller root that lies strictly inside (t_min, t_max),
    falling back to the larger one (ray starting inside the sphere).

    The normal is always the outward normal, (point - center) / radius,
    regardless of which side the ray arrives from.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray (need not be normalized).
        sphere: The sphere to test intersection against.
        t_min: Minimum t value to consider a valid hit (avoids self-intersection).
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A HitRecord containing intersection information. Check hit field
        to determine if intersection occurred.
    """
    oc = ray_origin - sphere.center

    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius

    discriminant = h * h - a * c

    # Taichi requires outer-scope declaration of the result fields
    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    hit_uv = vec2(0.0, 0.0)

    if discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, a, c, sqrt_d)

        t = t0
        valid = (t > t_min) and (t < t_max)

        if not valid:
            t = t1
            valid = (t > t_min) and (t < t_max)

        if valid:
            did_hit = 1
            hit_t = t
            hit_point = ray_origin + t * ray_direction
            hit_normal = (hit_point - sphere.center) / sphere.radius
            hit_uv = uv_at_dir(hit_normal)

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        uv=hit_uv,
    )


def uv_at_dir_py(direction: tuple[float, float, float]) -> tuple[float, float]:
    """Python-side counterpart of :func:`uv_at_dir`, for host code and tests.

    Args:
        direction: A unit direction as (x, y, z).

    Returns:
        The (u, v) coordinates.
    """
    x, y, z = direction
    y = max(-1.0, min(1.0, y))
    u = 0.5 + math.atan2(z, x) / (2.0 * math.pi)
    v = 0.5 - math.asin(y) / math.pi
    return u, v
