"""Prayer: a Monte Carlo path tracer built on Taichi.

Modules that declare Taichi fields are loaded on first attribute access, so
``ti.init()`` can be called after ``import prayer`` and before rendering:

    >>> import taichi as ti
    >>> import prayer
    >>> ti.init(arch=ti.cpu)
    >>> scene, camera_params = prayer.get_preset("spheres")()
    >>> pixels = prayer.render(scene, camera_params, (320, 240), samples=16)
"""

import importlib

from prayer.errors import ConfigError, TraceError

__version__ = "0.1.0"

_LAZY_ATTRIBUTES = {
    "render": "prayer.core.integrator",
    "render_image": "prayer.core.integrator",
    "render_radiance": "prayer.core.integrator",
    "tone_map": "prayer.core.integrator",
    "Scene": "prayer.scene.manager",
    "CameraParams": "prayer.camera.pinhole",
    "get_preset": "prayer.scene.presets",
    "load_config": "prayer.config",
    "UserConfig": "prayer.config",
    "save_png": "prayer.image",
}


def __getattr__(name: str):
    module_name = _LAZY_ATTRIBUTES.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(importlib.import_module(module_name), name)


__all__ = ["ConfigError", "TraceError", "__version__", *_LAZY_ATTRIBUTES]
