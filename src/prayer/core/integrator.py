"""Path tracing integrator and render driver.

The light-transport estimator is defined recursively:

    trace_radiance(ray, 0)     = 0
    trace_radiance(ray, depth) = environment(uv_at_dir(normalize(ray.direction)))
                                     if the ray misses every object
                               = weight * trace_radiance(bounce_ray, depth - 1) + emission
                                     otherwise

where ``weight``, ``emission`` and ``bounce_ray`` come from shading the hit
(see ``prayer.materials.pbr.shade``). Since shading is linear in the incident
radiance, the recursion is unrolled into a loop of at most ``depth``
iterations carrying the product of the weights (the path throughput).

The render driver runs one Taichi task per pixel. Each task averages
``samples`` jittered camera paths into a preallocated radiance buffer; tone
mapping, gamma and 8-bit packing then happen on the host with NumPy.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prayer.core.integrator import render
    >>> from prayer.scene.presets import create_spheres_scene
    >>> scene, camera_params = create_spheres_scene()
    >>> pixels = render(scene, camera_params, (320, 240), samples=16)
    >>> len(pixels)
    230400
"""

import logging
import time

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from prayer.camera.pinhole import Camera, CameraParams, get_ray_jittered, setup_camera
from prayer.core.ray import Ray, make_ray
from prayer.materials.pbr import shade
from prayer.scene.intersection import T_MAX, T_MIN, intersect_scene, sample_environment
from prayer.scene.manager import Scene

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Render Target (Radiance Buffer)
# =============================================================================

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

# Mean radiance per pixel, indexed [row, column] with row 0 at the top
_radiance_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH))


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def trace_radiance(ray: Ray, depth: ti.i32) -> vec3:
    """Estimate the radiance arriving along a ray.

    Args:
        ray: The ray to trace. Its direction need not be unit length.
        depth: Maximum number of surface interactions; 0 yields black.

    Returns:
        A one-sample estimate of the incoming radiance (RGB).
    """
    radiance = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    current = make_ray(ray.origin, ray.direction)

    # Active flag for path continuation (no break inside ti.func loops)
    active = 1

    for _bounce in range(depth):
        if active == 1:
            rec = intersect_scene(current.origin, current.direction, T_MIN, T_MAX)

            if rec.hit == 0:
                radiance += throughput * sample_environment(tm.normalize(current.direction))
                active = 0
            else:
                sample = shade(rec.material_id, current, rec.point, rec.normal, rec.uv)
                radiance += throughput * sample.emission
                throughput *= sample.weight
                current = sample.ray

    return radiance


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_pixels(width: ti.i32, height: ti.i32, samples: ti.i32, max_light_bounces: ti.i32):
    """Average `samples` jittered paths for every pixel of the active region."""
    for x, y in ti.ndrange(width, height):
        total = vec3(0.0, 0.0, 0.0)
        for _sample in range(samples):
            ray = get_ray_jittered(x, y, width, height)
            total += trace_radiance(ray, max_light_bounces)
        _radiance_buffer[y, x] = total / ti.cast(samples, ti.f32)


@ti.kernel
def _copy_radiance(out: ti.types.ndarray(), width: ti.i32, height: ti.i32):
    for y, x in ti.ndrange(height, width):
        color = _radiance_buffer[y, x]
        for c in ti.static(range(3)):
            out[y, x, c] = color[c]


@ti.kernel
def _trace_single_ray(
    ox: ti.f32,
    oy: ti.f32,
    oz: ti.f32,
    dx: ti.f32,
    dy: ti.f32,
    dz: ti.f32,
    depth: ti.i32,
) -> vec3:
    return trace_radiance(make_ray(vec3(ox, oy, oz), vec3(dx, dy, dz)), depth)


def trace_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    depth: int,
) -> tuple[float, float, float]:
    """Trace one path through the uploaded scene.

    This is a Python-callable function for testing and debugging. For
    rendering, use render() which processes all pixels in parallel.

    Args:
        origin: Ray origin.
        direction: Ray direction (need not be unit length).
        depth: Maximum number of surface interactions.

    Returns:
        Tuple of (R, G, B) radiance.
    """
    color = _trace_single_ray(
        origin[0], origin[1], origin[2], direction[0], direction[1], direction[2], depth
    )
    return (float(color[0]), float(color[1]), float(color[2]))


# =============================================================================
# Public Rendering API
# =============================================================================


def _check_render_args(resolution: tuple[int, int], samples: int, max_light_bounces: int) -> None:
    width, height = resolution
    if width <= 0 or height <= 0:
        raise ValueError(f"Resolution must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )
    if samples <= 0:
        raise ValueError(f"samples must be at least 1, got {samples}")
    if max_light_bounces < 0:
        raise ValueError(f"max_light_bounces must be non-negative, got {max_light_bounces}")


def render_radiance(
    scene: Scene,
    camera_params: CameraParams | None = None,
    resolution: tuple[int, int] = (640, 480),
    samples: int = 64,
    max_light_bounces: int = 5,
) -> npt.NDArray[np.float32]:
    """Render the mean radiance of every pixel.

    Uploads the scene (replacing whatever was uploaded before), sets up the
    camera with the aspect ratio of the resolution and runs the per-pixel
    kernel.

    Args:
        scene: The scene to render.
        camera_params: Camera placement; defaults to CameraParams().
        resolution: (width, height) in pixels.
        samples: Paths averaged per pixel.
        max_light_bounces: Maximum surface interactions per path.

    Returns:
        Array of shape (height, width, 3) with row 0 at the top of the image.

    Raises:
        ValueError: If the resolution is outside the supported range, samples
            is not positive or max_light_bounces is negative.
    """
    width, height = int(resolution[0]), int(resolution[1])
    _check_render_args((width, height), samples, max_light_bounces)
    if camera_params is None:
        camera_params = CameraParams()

    scene.upload()
    setup_camera(Camera.from_params(camera_params, width / height))

    logger.info(
        "Rendering %dx%d, %d samples per pixel, %d bounces, %d objects",
        width,
        height,
        samples,
        max_light_bounces,
        scene.get_object_count(),
    )
    start = time.perf_counter()
    _render_pixels(width, height, samples, max_light_bounces)

    radiance = np.zeros((height, width, 3), dtype=np.float32)
    _copy_radiance(radiance, width, height)
    logger.debug("Rendered in %.3fs", time.perf_counter() - start)
    return radiance


def tone_map(
    radiance: npt.ArrayLike,
    exposure: float = 1.0,
    gamma: float = 2.2,
) -> npt.NDArray[np.uint8]:
    """Map linear radiance to 8-bit display values.

    Applies exponential exposure (1 - exp(-c * exposure)), replaces NaN with
    0, clamps to [0, 1], applies 1 / gamma and scales by 255.99 with
    truncation.

    Args:
        radiance: Array of linear RGB radiance, any shape.
        exposure: Exposure multiplier.
        gamma: Display gamma.

    Returns:
        Array of the same shape with dtype uint8.
    """
    c = np.asarray(radiance, dtype=np.float64)
    with np.errstate(over="ignore", invalid="ignore"):
        mapped = 1.0 - np.exp(-c * exposure)
    mapped = np.nan_to_num(mapped, nan=0.0, posinf=1.0, neginf=0.0)
    mapped = np.clip(mapped, 0.0, 1.0)
    mapped = np.power(mapped, 1.0 / gamma)
    return (mapped * 255.99).astype(np.uint8)


def render_image(
    scene: Scene,
    camera_params: CameraParams | None = None,
    resolution: tuple[int, int] = (640, 480),
    samples: int = 64,
    max_light_bounces: int = 5,
    exposure: float = 1.0,
    gamma: float = 2.2,
) -> npt.NDArray[np.uint8]:
    """Render and tone map a scene.

    Returns:
        Array of shape (height, width, 3) with dtype uint8.
    """
    radiance = render_radiance(scene, camera_params, resolution, samples, max_light_bounces)
    return tone_map(radiance, exposure, gamma)


def render(
    scene: Scene,
    camera_params: CameraParams | None = None,
    resolution: tuple[int, int] = (640, 480),
    samples: int = 64,
    max_light_bounces: int = 5,
    exposure: float = 1.0,
    gamma: float = 2.2,
) -> bytes:
    """Render a scene to packed RGB8 pixels.

    Args:
        scene: The scene to render.
        camera_params: Camera placement; defaults to CameraParams().
        resolution: (width, height) in pixels.
        samples: Paths averaged per pixel.
        max_light_bounces: Maximum surface interactions per path.
        exposure: Exposure multiplier for tone mapping.
        gamma: Display gamma.

    Returns:
        Row-major RGB bytes of length 3 * width * height, top row first.

    Raises:
        ValueError: If the resolution is outside the supported range, samples
            is not positive or max_light_bounces is negative.
    """
    image = render_image(
        scene, camera_params, resolution, samples, max_light_bounces, exposure, gamma
    )
    return image.tobytes()
