"""Pinhole camera model for perspective projection ray generation.

The camera is built from look-at parameters (eye, target, up, vertical field
of view, aspect ratio) into a right-handed orthonormal basis:

    forward = normalize(target - eye)
    right   = normalize(cross(forward, up))
    up'     = cross(right, forward)

and the half extents of an image plane at unit distance along ``forward``:

    half_height = tan(vfov / 2)
    half_width  = aspect_ratio * half_height

Normalized image coordinates map onto that plane with u running left to
right and v running top to bottom, so (0.5, 0.5) looks straight along
``forward`` and pixel rows come out in the order they are stored.

``Camera.ray_at`` evaluates rays on the host with NumPy. ``setup_camera``
copies the basis into Taichi fields for ``get_ray`` / ``get_ray_jittered``
inside kernels.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prayer.camera.pinhole import CameraParams, Camera, setup_camera
    >>> params = CameraParams(eye=(0.0, 2.0, -5.0), target=(0.0, 0.0, 0.0))
    >>> camera = Camera.from_params(params, aspect_ratio=16.0 / 9.0)
    >>> setup_camera(camera)
"""

import math
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from prayer.core.ray import Ray, make_ray, vec3

Vec3Tuple = tuple[float, float, float]


# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass(frozen=True)
class CameraParams:
    """Look-at placement of the camera, independent of image size.

    The aspect ratio is taken from the render resolution, so it is not part
    of these parameters. Defaults frame the origin from behind and slightly above.

    Attributes:
        eye: Camera position in world space.
        target: Point the camera looks at.
        up: Up direction used to orient the image (need not be orthogonal
            to the view direction, but must not be parallel to it).
        vfov: Vertical field of view in degrees.
    """

    eye: Vec3Tuple = (0.0, 2.0, -5.0)
    target: Vec3Tuple = (0.0, 0.0, 0.0)
    up: Vec3Tuple = (0.0, 1.0, 0.0)
    vfov: float = 80.0


@dataclass(frozen=True)
class Camera:
    """An immutable pinhole camera with a precomputed basis.

    Attributes:
        eye: Camera position.
        forward: Unit view direction.
        right: Unit vector pointing right in the image plane.
        up: Unit vector pointing up in the image plane.
        half_width: Half the image-plane width at unit distance.
        half_height: Half the image-plane height at unit distance.
    """

    eye: npt.NDArray[np.float64]
    forward: npt.NDArray[np.float64]
    right: npt.NDArray[np.float64]
    up: npt.NDArray[np.float64]
    half_width: float
    half_height: float

    @classmethod
    def looking_at(
        cls,
        eye: Vec3Tuple,
        target: Vec3Tuple,
        up: Vec3Tuple,
        vfov: float,
        aspect_ratio: float,
    ) -> "Camera":
        """Build a camera at ``eye`` looking toward ``target``.

        Args:
            eye: Camera position in world space.
            target: Point the camera looks at.
            up: Approximate up direction.
            vfov: Vertical field of view in degrees.
            aspect_ratio: Image width divided by height.

        Returns:
            The constructed camera.

        Raises:
            ValueError: If eye equals target or up is parallel to the view
                direction.
        """
        eye_v = np.asarray(eye, dtype=np.float64)
        view = np.asarray(target, dtype=np.float64) - eye_v
        view_len = np.linalg.norm(view)
        if view_len < 1e-12:
            raise ValueError("Camera eye and target must be distinct points")
        forward = view / view_len

        side = np.cross(forward, np.asarray(up, dtype=np.float64))
        side_len = np.linalg.norm(side)
        if side_len < 1e-12:
            raise ValueError("Camera up vector must not be parallel to the view direction")
        right = side / side_len
        true_up = np.cross(right, forward)

        half_height = math.tan(math.radians(vfov) / 2.0)
        half_width = aspect_ratio * half_height

        return cls(
            eye=eye_v,
            forward=forward,
            right=right,
            up=true_up,
            half_width=half_width,
            half_height=half_height,
        )

    @classmethod
    def from_params(cls, params: CameraParams, aspect_ratio: float) -> "Camera":
        """Build a camera from look-at parameters and an aspect ratio."""
        return cls.looking_at(params.eye, params.target, params.up, params.vfov, aspect_ratio)

    def ray_at(self, u: float, v: float) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Generate the primary ray through normalized image coordinates.

        Args:
            u: Horizontal coordinate in [0, 1] (left to right).
            v: Vertical coordinate in [0, 1] (top to bottom).

        Returns:
            Tuple of (origin, unit direction).
        """
        direction = (
            self.forward
            + (2.0 * u - 1.0) * self.half_width * self.right
            + (1.0 - 2.0 * v) * self.half_height * self.up
        )
        return self.eye.copy(), direction / np.linalg.norm(direction)


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_eye = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_forward = ti.Vector.field(3, dtype=ti.f32, shape=())
# right and up are pre-scaled by the image-plane half extents
_camera_right = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_up = ti.Vector.field(3, dtype=ti.f32, shape=())


def setup_camera(camera: Camera) -> None:
    """Copy a camera into the Taichi fields read by get_ray().

    Args:
        camera: The camera to use for subsequent kernel launches.
    """
    _camera_eye[None] = camera.eye.tolist()
    _camera_forward[None] = camera.forward.tolist()
    _camera_right[None] = (camera.right * camera.half_width).tolist()
    _camera_up[None] = (camera.up * camera.half_height).tolist()


# =============================================================================
# Ray Generation (Taichi-compatible)
# =============================================================================


@ti.func
def get_ray(u: ti.f32, v: ti.f32) -> Ray:
    """Generate a ray through normalized image coordinates (u, v).

    Args:
        u: Horizontal coordinate in [0, 1] (left to right).
        v: Vertical coordinate in [0, 1] (top to bottom).

    Returns:
        A Ray from the camera position with a unit direction.
    """
    direction = (
        _camera_forward[None]
        + (2.0 * u - 1.0) * _camera_right[None]
        + (1.0 - 2.0 * v) * _camera_up[None]
    )
    return make_ray(_camera_eye[None], tm.normalize(direction))


@ti.func
def get_ray_jittered(pixel_x: ti.i32, pixel_y: ti.i32, width: ti.i32, height: ti.i32) -> Ray:
    """Generate a ray through a uniformly random point of a pixel.

    Args:
        pixel_x: Pixel column (0 = left).
        pixel_y: Pixel row (0 = top).
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        A Ray with a random sub-pixel offset in [0, 1)^2.
    """
    jitter_u = ti.random(ti.f32)
    jitter_v = ti.random(ti.f32)

    u = (ti.cast(pixel_x, ti.f32) + jitter_u) / ti.cast(width, ti.f32)
    v = (ti.cast(pixel_y, ti.f32) + jitter_v) / ti.cast(height, ti.f32)

    return get_ray(u, v)
