"""Built-in demo scenes.

Each preset is a factory returning a ``(Scene, CameraParams)`` pair, looked
up by name through ``get_preset``:

    spheres:     a row of spheres from rough dielectric to polished metal on a
                 large ground sphere under a gradient sky, seen from the
                 default camera
    cornell_box: the classic box with a red and a green wall, lit by an
                 emissive ceiling quad, holding a diffuse and a metal sphere

Example:
    >>> from prayer.scene.presets import get_preset, preset_names
    >>> preset_names()
    ['cornell_box', 'spheres']
    >>> scene, camera_params = get_preset("spheres")()
"""

from collections.abc import Callable
from dataclasses import dataclass

from prayer.camera.pinhole import CameraParams
from prayer.materials.field import Gradient
from prayer.scene.manager import Scene

PresetFactory = Callable[[], tuple[Scene, CameraParams]]


# =============================================================================
# Spheres
# =============================================================================

SKY_TOP = (0.5, 0.7, 1.0)
SKY_BOTTOM = (1.0, 1.0, 1.0)

GROUND_RADIUS = 1000.0


def create_spheres_scene() -> tuple[Scene, CameraParams]:
    """Spheres of increasing metalness and decreasing roughness under a sky.

    The camera is the default one, at (0, 2, -5) looking at the origin.
    """
    scene = Scene()
    scene.set_environment(Gradient(top=SKY_TOP, bottom=SKY_BOTTOM))

    scene.add_material("ground", albedo=(0.5, 0.5, 0.5), roughness=1.0)
    scene.add_sphere((0.0, -GROUND_RADIUS - 1.0, 0.0), GROUND_RADIUS, "ground")

    count = 5
    for i in range(count):
        t = i / (count - 1)
        name = f"sphere_{i}"
        scene.add_material(
            name,
            albedo=(0.9, 0.6 + 0.3 * t, 0.3 + 0.5 * t),
            metalness=t,
            roughness=1.0 - 0.9 * t,
        )
        scene.add_sphere((-3.0 + 1.5 * i, -0.4, 1.0), 0.6, name)

    return scene, CameraParams()


# =============================================================================
# Cornell Box
# =============================================================================


@dataclass
class CornellBoxParams:
    """Parameters for the Cornell box preset.

    Attributes:
        box_size: Edge length of the box.
        light_intensity: Radiance of the ceiling light per unit of light_color.
        light_color: RGB color of the light.
        left_wall_color: RGB albedo of the wall on the viewer's left.
        right_wall_color: RGB albedo of the wall on the viewer's right.
        white_color: RGB albedo of floor, ceiling and back wall.
    """

    box_size: float = 555.0
    light_intensity: float = 15.0
    light_color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    left_wall_color: tuple[float, float, float] = (0.65, 0.05, 0.05)
    right_wall_color: tuple[float, float, float] = (0.12, 0.45, 0.15)
    white_color: tuple[float, float, float] = (0.73, 0.73, 0.73)


def create_cornell_box_scene(params: CornellBoxParams | None = None) -> tuple[Scene, CameraParams]:
    """Create the Cornell box.

    The box spans [0, box_size] on every axis with its open side facing -Z,
    where the camera sits. Quads are two-sided, so edge orientation does not
    matter.

    Args:
        params: Optional overrides for sizes and colours.

    Returns:
        The scene and a camera looking into the box.
    """
    if params is None:
        params = CornellBoxParams()
    size = params.box_size

    scene = Scene()

    scene.add_material("left", albedo=params.left_wall_color, roughness=1.0)
    scene.add_material("right", albedo=params.right_wall_color, roughness=1.0)
    scene.add_material("white", albedo=params.white_color, roughness=1.0)
    scene.add_material(
        "light",
        albedo=0.0,
        emission=tuple(c * params.light_intensity for c in params.light_color),
    )
    scene.add_material("chalk", albedo=(0.73, 0.73, 0.73), roughness=0.8)
    scene.add_material("silver", albedo=(0.95, 0.93, 0.88), metalness=1.0, roughness=0.3)

    # Walls, seen from a camera at -Z looking toward +Z with +X to the left
    scene.add_quad((size, 0.0, 0.0), (0.0, size, 0.0), (0.0, 0.0, size), "left")
    scene.add_quad((0.0, 0.0, 0.0), (0.0, size, 0.0), (0.0, 0.0, size), "right")
    scene.add_quad((0.0, 0.0, size), (size, 0.0, 0.0), (0.0, size, 0.0), "white")
    scene.add_quad((0.0, 0.0, 0.0), (size, 0.0, 0.0), (0.0, 0.0, size), "white")
    scene.add_quad((0.0, size, 0.0), (size, 0.0, 0.0), (0.0, 0.0, size), "white")

    # Ceiling light, slightly below the ceiling
    light_width = 130.0
    light_depth = 105.0
    scene.add_quad(
        ((size - light_width) / 2.0, size - 1.0, (size - light_depth) / 2.0),
        (light_width, 0.0, 0.0),
        (0.0, 0.0, light_depth),
        "light",
    )

    radius = 80.0
    scene.add_sphere((size * 0.3, radius, size * 0.4), radius, "chalk")
    scene.add_sphere((size * 0.7, radius, size * 0.6), radius, "silver")

    camera = CameraParams(
        eye=(size / 2.0, size / 2.0, -800.0),
        target=(size / 2.0, size / 2.0, size / 2.0),
        up=(0.0, 1.0, 0.0),
        vfov=40.0,
    )
    return scene, camera


PRESETS: dict[str, PresetFactory] = {
    "cornell_box": create_cornell_box_scene,
    "spheres": create_spheres_scene,
}


def preset_names() -> list[str]:
    """Names of the built-in presets, sorted."""
    return sorted(PRESETS)


def get_preset(name: str) -> PresetFactory:
    """Look up a preset factory by name.

    Raises:
        KeyError: If there is no preset with that name.
    """
    try:
        return PRESETS[name]
    except KeyError:
        raise KeyError(
            f"Unknown preset {name!r}; available: {', '.join(preset_names())}"
        ) from None
