"""Camera module for view and ray generation.

Camera responsibilities:
    - Build a look-at basis from eye, target and up
    - Transform normalized (u, v) image coordinates to world-space rays
    - Apply sub-pixel jitter for anti-aliasing

Normalized image coordinates:
    u in [0, 1]: left to right across image
    v in [0, 1]: top to bottom across image
"""

from .pinhole import (
    Camera,
    CameraParams,
    get_ray,
    get_ray_jittered,
    setup_camera,
)

__all__ = [
    "Camera",
    "CameraParams",
    "setup_camera",
    "get_ray",
    "get_ray_jittered",
]
