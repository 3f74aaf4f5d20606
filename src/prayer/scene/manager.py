"""Scene description and upload to the render-time storage.

A ``Scene`` is a plain Python description of what to render: named materials,
an insertion-ordered list of objects (each a surface plus a material id) and
an environment field. Nothing touches Taichi until ``upload()`` is called,
which clears the object table, the field table and the material registry and
then registers everything again in order. The render driver calls
``upload()`` at the start of every render, so any number of ``Scene``
objects can exist at once and the last one rendered is the one in the fields.

Scenes round-trip through plain dictionaries (``to_dict`` / ``from_dict``)
using the same layout as the ``[scene]`` table of a configuration file.

Example:
    >>> from prayer.materials.field import Gradient
    >>> from prayer.scene.manager import Scene
    >>> scene = Scene()
    >>> scene.add_material("ground", albedo=0.8, roughness=0.9)
    0
    >>> scene.add_material("lamp", albedo=0.0, emission=(4.0, 4.0, 4.0))
    1
    >>> scene.add_sphere((0.0, -1000.0, 0.0), 1000.0, "ground")
    0
    >>> scene.add_sphere((0.0, 1.0, 0.0), 1.0, "lamp")
    1
    >>> scene.set_environment(Gradient(top=(0.5, 0.7, 1.0), bottom=(1.0, 1.0, 1.0)))
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np

from prayer.geometry import SurfaceKind
from prayer.materials.field import (
    Color,
    FieldSpec,
    add_field,
    as_field,
    clear_fields,
    field_from_config,
    field_to_config,
)
from prayer.materials.pbr import MAX_MATERIALS, add_material, clear_materials
from prayer.scene.intersection import (
    MAX_OBJECTS,
    add_quad,
    add_sphere,
    clear_scene,
    set_environment,
)

logger = logging.getLogger(__name__)

Vec3Tuple = tuple[float, float, float]
MaterialRef = int | str


@dataclass
class MaterialInfo:
    """A registered material.

    Attributes:
        material_id: Position of the material in the scene.
        name: Optional name objects can refer to the material by.
        albedo: Base colour field.
        metalness: Metalness field (red channel used).
        roughness: Roughness field (red channel used).
        emission: Emitted radiance field.
    """

    material_id: int
    name: str | None
    albedo: FieldSpec
    metalness: FieldSpec
    roughness: FieldSpec
    emission: FieldSpec


@dataclass
class SphereInfo:
    """A sphere in the scene.

    Attributes:
        center: The center of the sphere.
        radius: The radius of the sphere.
        material_id: The material assigned to the sphere.
    """

    center: Vec3Tuple
    radius: float
    material_id: int
    kind: SurfaceKind = field(default=SurfaceKind.SPHERE, init=False)


@dataclass
class QuadInfo:
    """A quad (parallelogram) in the scene.

    Attributes:
        corner: The corner point (Q) of the quad.
        edge_u: The first edge vector.
        edge_v: The second edge vector.
        material_id: The material assigned to the quad.
    """

    corner: Vec3Tuple
    edge_u: Vec3Tuple
    edge_v: Vec3Tuple
    material_id: int
    kind: SurfaceKind = field(default=SurfaceKind.QUAD, init=False)


ObjectInfo = SphereInfo | QuadInfo


def _vec3(value: Any, name: str) -> Vec3Tuple:
    if not isinstance(value, (tuple, list, np.ndarray)) or len(value) != 3:
        raise ValueError(f"{name} must be a sequence of 3 numbers, got {value!r}")
    return (float(value[0]), float(value[1]), float(value[2]))


class Scene:
    """Insertion-ordered objects, their materials and an environment.

    Attributes:
        materials: Registered materials, indexed by material id.
        objects: Spheres and quads in the order they were added.
        environment: Field sampled for rays that escape, or None for black.
    """

    def __init__(self) -> None:
        """Initialize an empty scene with a black environment."""
        self.materials: list[MaterialInfo] = []
        self.objects: list[ObjectInfo] = []
        self.environment: FieldSpec | None = None

    def clear(self) -> None:
        """Remove all materials, objects and the environment."""
        self.materials.clear()
        self.objects.clear()
        self.environment = None

    # =========================================================================
    # Material Management
    # =========================================================================

    def add_material(
        self,
        name: str | None = None,
        albedo: float | Color | FieldSpec = 0.5,
        metalness: float | Color | FieldSpec = 0.0,
        roughness: float | Color | FieldSpec = 0.5,
        emission: float | Color | FieldSpec = 0.0,
    ) -> int:
        """Add a material to the scene.

        Each channel accepts a number, an (R, G, B) triple or a field
        description (Constant, Texture, Gradient).

        Args:
            name: Optional unique name for referring to the material.
            albedo: Base reflected colour.
            metalness: 0 for dielectrics, 1 for metals.
            roughness: Microfacet roughness, 0 (smooth) to 1 (rough).
            emission: Emitted radiance. Values above 1 are allowed.

        Returns:
            The material id.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If the name is taken or a channel value is negative.
            TypeError: If a channel value cannot be interpreted as a field.
        """
        if len(self.materials) >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")
        if name is not None and self.find_material(name) is not None:
            raise ValueError(f"Duplicate material name: {name!r}")

        material_id = len(self.materials)
        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                name=name,
                albedo=as_field(albedo),
                metalness=as_field(metalness),
                roughness=as_field(roughness),
                emission=as_field(emission),
            )
        )
        return material_id

    def find_material(self, name: str) -> int | None:
        """Look up a material id by name, or None if there is none."""
        for info in self.materials:
            if info.name == name:
                return info.material_id
        return None

    def resolve_material(self, material: MaterialRef) -> int:
        """Turn a material name or id into a valid material id.

        Raises:
            ValueError: If the name is unknown or the id is out of range.
        """
        if isinstance(material, str):
            material_id = self.find_material(material)
            if material_id is None:
                raise ValueError(f"Unknown material: {material!r}")
            return material_id
        if isinstance(material, bool) or not isinstance(material, (int, np.integer)):
            raise ValueError(f"Material reference must be a name or an index, got {material!r}")
        if not 0 <= material < len(self.materials):
            raise ValueError(f"Invalid material_id: {material}")
        return int(material)

    # =========================================================================
    # Object Management
    # =========================================================================

    def _check_capacity(self) -> None:
        if len(self.objects) >= MAX_OBJECTS:
            raise RuntimeError(f"Maximum number of objects ({MAX_OBJECTS}) exceeded")

    def add_sphere(self, center: Vec3Tuple, radius: float, material: MaterialRef) -> int:
        """Add a sphere to the scene.

        Args:
            center: The center point of the sphere as (x, y, z).
            radius: The radius of the sphere; must be positive.
            material: Material name or id.

        Returns:
            The object index of the sphere.

        Raises:
            RuntimeError: If the maximum number of objects is exceeded.
            ValueError: If the radius is not positive or the material is unknown.
        """
        self._check_capacity()
        if not radius > 0.0:
            raise ValueError(f"Sphere radius must be positive, got {radius}")
        material_id = self.resolve_material(material)

        self.objects.append(
            SphereInfo(center=_vec3(center, "center"), radius=float(radius), material_id=material_id)
        )
        return len(self.objects) - 1

    def add_quad(
        self,
        corner: Vec3Tuple,
        edge_u: Vec3Tuple,
        edge_v: Vec3Tuple,
        material: MaterialRef,
    ) -> int:
        """Add a quad (parallelogram) to the scene.

        The quad has vertices at corner, corner+edge_u, corner+edge_v and
        corner+edge_u+edge_v. It is visible from both sides.

        Args:
            corner: The corner point (Q) of the quad as (x, y, z).
            edge_u: The first edge vector.
            edge_v: The second edge vector.
            material: Material name or id.

        Returns:
            The object index of the quad.

        Raises:
            RuntimeError: If the maximum number of objects is exceeded.
            ValueError: If the edges are parallel or the material is unknown.
        """
        self._check_capacity()
        corner_t = _vec3(corner, "corner")
        u = _vec3(edge_u, "edge_u")
        v = _vec3(edge_v, "edge_v")
        if np.linalg.norm(np.cross(u, v)) < 1e-12:
            raise ValueError("Quad edges must not be parallel or zero")
        material_id = self.resolve_material(material)

        self.objects.append(QuadInfo(corner=corner_t, edge_u=u, edge_v=v, material_id=material_id))
        return len(self.objects) - 1

    def set_environment(self, environment: float | Color | FieldSpec | None) -> None:
        """Set the radiance seen by rays that escape the scene (None for black)."""
        self.environment = None if environment is None else as_field(environment)

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_material_count(self) -> int:
        """Get the number of materials in the scene."""
        return len(self.materials)

    def get_object_count(self) -> int:
        """Get the number of objects in the scene."""
        return len(self.objects)

    def is_empty(self) -> bool:
        """True if the scene has no objects."""
        return not self.objects

    # =========================================================================
    # Upload to Taichi storage
    # =========================================================================

    def upload(self) -> None:
        """Replace the render-time scene storage with this scene.

        Raises:
            RuntimeError: If the field table or texel pool overflows.
        """
        clear_scene()
        clear_fields()
        clear_materials()

        for info in self.materials:
            add_material(
                albedo=info.albedo,
                metalness=info.metalness,
                roughness=info.roughness,
                emission=info.emission,
            )

        for obj in self.objects:
            if isinstance(obj, SphereInfo):
                add_sphere(obj.center, obj.radius, obj.material_id)
            else:
                add_quad(obj.corner, obj.edge_u, obj.edge_v, obj.material_id)

        if self.environment is not None:
            set_environment(add_field(self.environment))

        logger.debug(
            "Uploaded scene: %d materials, %d objects, environment=%s",
            len(self.materials),
            len(self.objects),
            type(self.environment).__name__ if self.environment is not None else "black",
        )

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary in configuration-file layout.

        Raises:
            ValueError: If a field cannot be exported (in-memory texture).
        """
        materials = []
        for info in self.materials:
            mat: dict[str, Any] = {}
            if info.name is not None:
                mat["name"] = info.name
            mat["albedo"] = field_to_config(info.albedo)
            mat["metalness"] = field_to_config(info.metalness)
            mat["roughness"] = field_to_config(info.roughness)
            mat["emission"] = field_to_config(info.emission)
            materials.append(mat)

        objects = []
        for obj in self.objects:
            if isinstance(obj, SphereInfo):
                objects.append(
                    {
                        "type": "sphere",
                        "center": list(obj.center),
                        "radius": obj.radius,
                        "material": obj.material_id,
                    }
                )
            else:
                objects.append(
                    {
                        "type": "quad",
                        "corner": list(obj.corner),
                        "edge_u": list(obj.edge_u),
                        "edge_v": list(obj.edge_v),
                        "material": obj.material_id,
                    }
                )

        data: dict[str, Any] = {"materials": materials, "objects": objects}
        if self.environment is not None:
            data["environment"] = field_to_config(self.environment)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: str | Path | None = None) -> "Scene":
        """Build a scene from a dictionary in configuration-file layout.

        Args:
            data: Dictionary with optional 'environment', 'materials' and
                'objects' keys.
            base_dir: Directory relative texture paths are resolved against.

        Returns:
            The new scene.

        Raises:
            ValueError: If the data contains invalid entries.
            TypeError: If a field value has an unsupported type.
            OSError: If a texture file cannot be read.
        """
        scene = cls()

        for i, mat in enumerate(data.get("materials", [])):
            if not isinstance(mat, dict):
                raise ValueError(f"materials[{i}] must be a table")
            scene.add_material(
                name=mat.get("name"),
                albedo=field_from_config(mat.get("albedo", 0.5), base_dir),
                metalness=field_from_config(mat.get("metalness", 0.0), base_dir),
                roughness=field_from_config(mat.get("roughness", 0.5), base_dir),
                emission=field_from_config(mat.get("emission", 0.0), base_dir),
            )

        for i, obj in enumerate(data.get("objects", [])):
            if not isinstance(obj, dict):
                raise ValueError(f"objects[{i}] must be a table")
            kind = str(obj.get("type", "")).lower()
            material = obj.get("material", 0)
            if kind == "sphere":
                scene.add_sphere(
                    obj.get("center", (0.0, 0.0, 0.0)),
                    obj.get("radius", 1.0),
                    material,
                )
            elif kind == "quad":
                scene.add_quad(
                    obj.get("corner", (0.0, 0.0, 0.0)),
                    obj.get("edge_u", (1.0, 0.0, 0.0)),
                    obj.get("edge_v", (0.0, 1.0, 0.0)),
                    material,
                )
            else:
                raise ValueError(f"objects[{i}]: unknown object type {kind!r}")

        if "environment" in data:
            scene.set_environment(field_from_config(data["environment"], base_dir))

        return scene
