"""Scene module: object storage, nearest-hit queries and scene building.

Components:
    intersection: Object table in Taichi fields and the nearest-hit scan
    manager: The Python-side Scene description and its upload to the fields
    presets: Built-in demo scenes

Scene data is organized for GPU access:
    - Structure-of-Arrays layout for geometric data
    - One insertion-ordered object table tagged by surface kind
    - Material and environment references as field ids
"""

from .intersection import (
    MAX_OBJECTS,
    T_MAX,
    T_MIN,
    SceneHitRecord,
    add_quad,
    add_sphere,
    clear_scene,
    get_object_count,
    intersect_scene,
    sample_environment,
    set_environment,
)
from .manager import (
    MaterialInfo,
    QuadInfo,
    Scene,
    SphereInfo,
)
from .presets import (
    CornellBoxParams,
    create_cornell_box_scene,
    create_spheres_scene,
    get_preset,
    preset_names,
)

__all__ = [
    # Intersection module
    "SceneHitRecord",
    "add_sphere",
    "add_quad",
    "clear_scene",
    "set_environment",
    "get_object_count",
    "intersect_scene",
    "sample_environment",
    "MAX_OBJECTS",
    "T_MIN",
    "T_MAX",
    # Manager module
    "Scene",
    "MaterialInfo",
    "SphereInfo",
    "QuadInfo",
    # Presets
    "CornellBoxParams",
    "create_cornell_box_scene",
    "create_spheres_scene",
    "get_preset",
    "preset_names",
]
