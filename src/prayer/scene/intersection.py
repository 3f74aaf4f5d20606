"""Scene-level object storage and nearest-hit queries.

Objects are stored in insertion order in a single object table. Each entry
carries a SurfaceKind tag, the index of its shape in the per-kind shape
arrays, and its material id. ``intersect_scene`` walks the table once,
dispatching on the tag, and keeps the closest hit.

The environment (radiance for rays that escape the scene) is a field id
stored alongside the objects.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prayer.scene.intersection import add_sphere, clear_scene
    >>> clear_scene()
    >>> add_sphere(ti.math.vec3(0, 0, -1), 0.5, material_id=0)
    >>> # Use intersect_scene within a Taichi kernel
"""

import numpy as np
import taichi as ti
import taichi.math as tm

from prayer.geometry import SurfaceKind
from prayer.geometry.quad import Quad, hit_quad
from prayer.geometry.sphere import HitRecord, Sphere, hit_sphere, uv_at_dir
from prayer.materials.field import sample_field

vec3 = tm.vec3
vec2 = tm.vec2

# Minimum hit distance; rays leave surfaces without an origin offset
T_MIN = 1e-3

# Largest finite float32
T_MAX = float(np.finfo(np.float32).max)


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with material information.

    Attributes:
        hit: Whether the ray intersected any object (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
        point: The 3D point where the ray intersected the surface.
        normal: The unit surface normal at the intersection point.
        uv: Surface coordinates of the hit point.
        material_id: The material of the hit object, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    uv: vec2
    material_id: ti.i32


MAX_OBJECTS = 1024

# Object table, in insertion order
object_kinds = ti.field(dtype=ti.i32, shape=MAX_OBJECTS)
object_shape_indices = ti.field(dtype=ti.i32, shape=MAX_OBJECTS)
object_material_ids = ti.field(dtype=ti.i32, shape=MAX_OBJECTS)
num_objects = ti.field(dtype=ti.i32, shape=())

# Sphere storage: Structure of Arrays layout
sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_OBJECTS)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_OBJECTS)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Quad storage: corner point Q and the two edge vectors
quad_corners = ti.Vector.field(3, dtype=ti.f32, shape=MAX_OBJECTS)
quad_edge_u = ti.Vector.field(3, dtype=ti.f32, shape=MAX_OBJECTS)
quad_edge_v = ti.Vector.field(3, dtype=ti.f32, shape=MAX_OBJECTS)
num_quads = ti.field(dtype=ti.i32, shape=())

# Field id sampled for rays that hit nothing; -1 means black
environment_field = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Remove all objects and the environment.

    Resets the counts to zero. The field data is overwritten as new objects
    are added.
    """
    num_objects[None] = 0
    num_spheres[None] = 0
    num_quads[None] = 0
    environment_field[None] = -1


def _append_object(kind: SurfaceKind, shape_index: int, material_id: int) -> int:
    idx = num_objects[None]
    if idx >= MAX_OBJECTS:
        raise RuntimeError(f"Maximum number of objects ({MAX_OBJECTS}) exceeded")
    object_kinds[idx] = int(kind)
    object_shape_indices[idx] = shape_index
    object_material_ids[idx] = material_id
    num_objects[None] = idx + 1
    return idx


def add_sphere(center: vec3, radius: float, material_id: int = 0) -> int:
    """Add a sphere object to the scene.

    Args:
        center: The center point of the sphere.
        radius: The radius of the sphere (should be positive).
        material_id: The material to shade the sphere with.

    Returns:
        The object index of the sphere.

    Raises:
        RuntimeError: If the maximum number of objects is exceeded.
    """
    shape_idx = num_spheres[None]
    obj_idx = _append_object(SurfaceKind.SPHERE, shape_idx, material_id)
    sphere_centers[shape_idx] = center
    sphere_radii[shape_idx] = radius
    num_spheres[None] = shape_idx + 1
    return obj_idx


def add_quad(q: vec3, u: vec3, v: vec3, material_id: int = 0) -> int:
    """Add a quad object to the scene.

    The quad represents a parallelogram with vertices at Q, Q+u, Q+v, Q+u+v.

    Args:
        q: The corner point of the quad.
        u: Edge vector from q to adjacent corner.
        v: Edge vector from q to other adjacent corner.
        material_id: The material to shade the quad with.

    Returns:
        The object index of the quad.

    Raises:
        RuntimeError: If the maximum number of objects is exceeded.
    """
    shape_idx = num_quads[None]
    obj_idx = _append_object(SurfaceKind.QUAD, shape_idx, material_id)
    quad_corners[shape_idx] = q
    quad_edge_u[shape_idx] = u
    quad_edge_v[shape_idx] = v
    num_quads[None] = shape_idx + 1
    return obj_idx


def set_environment(field_id: int) -> None:
    """Use a registered field as the environment (-1 for black)."""
    environment_field[None] = field_id


def get_object_count() -> int:
    """Get the number of objects in the scene."""
    return int(num_objects[None])


@ti.func
def _hit_object(
    obj: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect one object, dispatching on its surface kind."""
    kind = object_kinds[obj]
    shape = object_shape_indices[obj]
    rec = HitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        uv=vec2(0.0, 0.0),
    )

    if kind == int(SurfaceKind.SPHERE):
        sphere = Sphere(center=sphere_centers[shape], radius=sphere_radii[shape])
        rec = hit_sphere(ray_origin, ray_direction, sphere, t_min, t_max)
    elif kind == int(SurfaceKind.QUAD):
        quad = Quad(Q=quad_corners[shape], u=quad_edge_u[shape], v=quad_edge_v[shape])
        rec = hit_quad(ray_origin, ray_direction, quad, t_min, t_max)

    return rec


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Find the nearest object hit by a ray.

    Objects are tested in insertion order against [t_min, closest_t], and
    closest_t shrinks to each accepted hit. A later object therefore only
    replaces the current hit if it is strictly closer.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A SceneHitRecord for the closest intersection; hit == 0 on a miss.
    """
    closest_t = t_max
    result = SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        uv=vec2(0.0, 0.0),
        material_id=-1,
    )

    for i in range(num_objects[None]):
        rec = _hit_object(i, ray_origin, ray_direction, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = SceneHitRecord(
                hit=1,
                t=rec.t,
                point=rec.point,
                normal=rec.normal,
                uv=rec.uv,
                material_id=object_material_ids[i],
            )

    return result


@ti.func
def sample_environment(direction: vec3) -> vec3:
    """Radiance arriving from the environment along a unit direction."""
    result = vec3(0.0, 0.0, 0.0)
    env = environment_field[None]
    if env >= 0:
        result = sample_field(env, uv_at_dir(direction))
    return result
