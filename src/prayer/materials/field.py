"""Sampled fields: the values shading reads by surface UV.

Every material channel (albedo, metalness, roughness, emission) and the scene
environment is a *field*: something that yields an RGB value for a UV
coordinate. Fields form a closed set of kinds:

    CONSTANT: the same value everywhere
    TEXTURE:  nearest-neighbour lookup into an RGB image
    GRADIENT: vertical blend from a top colour (v = 0) to a bottom colour (v = 1)

On the Python side a field is described by one of the ``Constant``,
``Texture`` or ``Gradient`` dataclasses. ``add_field`` registers a description
in the GPU-side field table (structure-of-arrays Taichi fields, with texture
pixels packed into one shared texel pool), and ``sample_field`` evaluates it
inside a kernel with a single branch on the kind tag.

Scalar channels use the first (red) component of the sampled value.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prayer.materials.field import Constant, Gradient, add_field
    >>> albedo_id = add_field(Constant((0.8, 0.3, 0.3)))
    >>> sky_id = add_field(Gradient(top=(0.5, 0.7, 1.0), bottom=(1.0, 1.0, 1.0)))
"""

from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any, Union

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm
from PIL import Image as PILImage

vec3 = tm.vec3
vec2 = tm.vec2

Color = tuple[float, float, float]


class FieldKind(IntEnum):
    """Tag identifying how a field is evaluated."""

    CONSTANT = 0
    TEXTURE = 1
    GRADIENT = 2


@dataclass(frozen=True)
class Constant:
    """A field with the same value at every UV.

    Attributes:
        value: The RGB value. Scalar channels read the first component.
    """

    value: Color

    def __post_init__(self) -> None:
        _check_color("value", self.value)


@dataclass(frozen=True, eq=False)
class Texture:
    """A field backed by an RGB image.

    Attributes:
        image: Float array of shape (height, width, 3). Row 0 is the top of
            the image and is sampled at v = 0.
        source: Where the image came from, kept for serialization.
    """

    image: npt.NDArray[np.float32]
    source: str | None = None

    def __post_init__(self) -> None:
        image = self.image
        if image.ndim != 3 or image.shape[2] != 3:
            raise ValueError(
                f"Texture image must have shape (height, width, 3), got {image.shape}"
            )
        if image.shape[0] == 0 or image.shape[1] == 0:
            raise ValueError("Texture image must not be empty")
        if np.any(image < 0.0):
            raise ValueError("Texture values must be non-negative")

    @classmethod
    def from_file(cls, path: str | Path) -> "Texture":
        """Load an image file as a texture.

        8-bit channel values are mapped linearly to [0, 1].

        Args:
            path: Path to any image format Pillow can read.

        Returns:
            A Texture holding the decoded RGB pixels.
        """
        with PILImage.open(path) as img:
            pixels = np.asarray(img.convert("RGB"), dtype=np.float32) / 255.0
        return cls(image=pixels, source=str(path))

    @property
    def width(self) -> int:
        """Width of the texture in pixels."""
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        """Height of the texture in pixels."""
        return int(self.image.shape[0])


@dataclass(frozen=True)
class Gradient:
    """A vertical colour ramp, typically used for sky environments.

    Attributes:
        top: Colour at v = 0 (straight up for environment lookups).
        bottom: Colour at v = 1 (straight down).
    """

    top: Color
    bottom: Color

    def __post_init__(self) -> None:
        _check_color("top", self.top)
        _check_color("bottom", self.bottom)


FieldSpec = Union[Constant, Texture, Gradient]


def _check_color(name: str, color: Color) -> None:
    if len(color) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(color)}")
    for i, component in enumerate(color):
        if component < 0.0:
            raise ValueError(f"{name} component {i} = {component} must be non-negative")


def as_field(value: float | Color | FieldSpec) -> FieldSpec:
    """Coerce a plain number, RGB triple or field description to a field.

    Args:
        value: A scalar (broadcast to all three channels), an (R, G, B)
            sequence, or an existing Constant/Texture/Gradient.

    Returns:
        The corresponding field description.

    Raises:
        TypeError: If the value cannot be interpreted as a field.
        ValueError: If any component is negative.
    """
    if isinstance(value, (Constant, Texture, Gradient)):
        return value
    if isinstance(value, (int, float)):
        v = float(value)
        return Constant((v, v, v))
    if isinstance(value, (tuple, list)) and len(value) == 3:
        return Constant((float(value[0]), float(value[1]), float(value[2])))
    raise TypeError(f"Cannot interpret {value!r} as a field")


def field_from_config(value: Any, base_dir: str | Path | None = None) -> FieldSpec:
    """Build a field from its configuration form.

    Accepted forms:

        0.5                                    -> Constant
        [r, g, b]                              -> Constant
        {texture = "wood.png"}                 -> Texture loaded with Pillow
        {type = "constant", value = ...}       -> Constant
        {type = "texture", path = "sky.png"}   -> Texture
        {type = "gradient", top = [...], bottom = [...]} -> Gradient

    Args:
        value: The parsed configuration value.
        base_dir: Directory relative texture paths are resolved against.

    Returns:
        The field description.

    Raises:
        ValueError: If the value is malformed or names an unknown type.
        TypeError: If the value has an unsupported type.
        OSError: If a texture file cannot be read.
    """
    if not isinstance(value, dict):
        return as_field(value)

    kind = str(value.get("type", "texture" if "texture" in value else "")).lower()
    if kind == "constant":
        if "value" not in value:
            raise ValueError("constant field requires a 'value'")
        return as_field(value["value"])
    if kind == "texture":
        path = value.get("path", value.get("texture"))
        if path is None:
            raise ValueError("texture field requires a 'path'")
        path = Path(path)
        if base_dir is not None and not path.is_absolute():
            path = Path(base_dir) / path
        # Exported as given, so the source must not depend on base_dir
        return Texture.from_file(path.resolve())
    if kind == "gradient":
        top = as_field(value.get("top", (1.0, 1.0, 1.0)))
        bottom = as_field(value.get("bottom", (1.0, 1.0, 1.0)))
        if not isinstance(top, Constant) or not isinstance(bottom, Constant):
            raise ValueError("gradient endpoints must be colours")
        return Gradient(top=top.value, bottom=bottom.value)
    raise ValueError(f"Unknown field type: {kind!r}")


def field_to_config(spec: FieldSpec) -> Any:
    """Export a field in the form accepted by :func:`field_from_config`.

    Raises:
        ValueError: If the field is a texture that was not loaded from a file.
    """
    if isinstance(spec, Constant):
        r, g, b = spec.value
        if r == g == b:
            return r
        return [r, g, b]
    if isinstance(spec, Gradient):
        return {"type": "gradient", "top": list(spec.top), "bottom": list(spec.bottom)}
    if spec.source is None:
        raise ValueError("Cannot export an in-memory texture")
    return {"type": "texture", "path": spec.source}


# =============================================================================
# Field Storage (GPU-side field table and texel pool)
# =============================================================================

# Four fields per material plus one for the environment
MAX_FIELDS = 4 * 1024 + 1

# Total texels shared by all textures (2048 x 1024 RGB)
MAX_TEXELS = 1 << 21

field_kinds = ti.field(dtype=ti.i32, shape=MAX_FIELDS)
# CONSTANT uses value_a; GRADIENT blends value_a (top) to value_b (bottom)
field_values_a = ti.Vector.field(3, dtype=ti.f32, shape=MAX_FIELDS)
field_values_b = ti.Vector.field(3, dtype=ti.f32, shape=MAX_FIELDS)
field_texel_offsets = ti.field(dtype=ti.i32, shape=MAX_FIELDS)
field_texture_widths = ti.field(dtype=ti.i32, shape=MAX_FIELDS)
field_texture_heights = ti.field(dtype=ti.i32, shape=MAX_FIELDS)
num_fields = ti.field(dtype=ti.i32, shape=())

texels = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXELS)
num_texels = ti.field(dtype=ti.i32, shape=())


def clear_fields() -> None:
    """Clear the field table and the texel pool."""
    num_fields[None] = 0
    num_texels[None] = 0


def get_field_count() -> int:
    """Get the number of registered fields."""
    return int(num_fields[None])


@ti.kernel
def _upload_texels(offset: ti.i32, data: ti.types.ndarray()):
    for i in range(data.shape[0]):
        texels[offset + i] = vec3(data[i, 0], data[i, 1], data[i, 2])


def add_field(spec: float | Color | FieldSpec) -> int:
    """Register a field in the field table.

    Args:
        spec: The field description (anything accepted by :func:`as_field`).

    Returns:
        The field id used by materials and the environment.

    Raises:
        RuntimeError: If the field table or the texel pool is full.
    """
    spec = as_field(spec)

    idx = num_fields[None]
    if idx >= MAX_FIELDS:
        raise RuntimeError(f"Maximum number of fields ({MAX_FIELDS}) exceeded")

    field_values_a[idx] = vec3(0.0, 0.0, 0.0)
    field_values_b[idx] = vec3(0.0, 0.0, 0.0)
    field_texel_offsets[idx] = 0
    field_texture_widths[idx] = 0
    field_texture_heights[idx] = 0

    if isinstance(spec, Constant):
        field_kinds[idx] = int(FieldKind.CONSTANT)
        field_values_a[idx] = vec3(*spec.value)
    elif isinstance(spec, Gradient):
        field_kinds[idx] = int(FieldKind.GRADIENT)
        field_values_a[idx] = vec3(*spec.top)
        field_values_b[idx] = vec3(*spec.bottom)
    else:
        count = spec.width * spec.height
        offset = num_texels[None]
        if offset + count > MAX_TEXELS:
            raise RuntimeError(
                f"Texture of {spec.width}x{spec.height} does not fit in the texel pool "
                f"({MAX_TEXELS - offset} of {MAX_TEXELS} texels free)"
            )
        data = np.ascontiguousarray(spec.image.reshape(-1, 3), dtype=np.float32)
        _upload_texels(offset, data)
        num_texels[None] = offset + count

        field_kinds[idx] = int(FieldKind.TEXTURE)
        field_texel_offsets[idx] = offset
        field_texture_widths[idx] = spec.width
        field_texture_heights[idx] = spec.height

    num_fields[None] = idx + 1
    return idx


# =============================================================================
# Field Sampling (Taichi-compatible)
# =============================================================================


@ti.func
def _sample_texture(field_id: ti.i32, uv: vec2) -> vec3:
    """Nearest-neighbour texture lookup; u wraps around, v is clamped."""
    width = field_texture_widths[field_id]
    height = field_texture_heights[field_id]

    u = uv.x - ti.floor(uv.x)
    v = tm.clamp(uv.y, 0.0, 1.0)

    x = ti.min(ti.cast(u * width, ti.i32), width - 1)
    y = ti.min(ti.cast(v * height, ti.i32), height - 1)

    return texels[field_texel_offsets[field_id] + y * width + x]


@ti.func
def sample_field(field_id: ti.i32, uv: vec2) -> vec3:
    """Evaluate a field at a UV coordinate.

    Args:
        field_id: The id returned by add_field().
        uv: Surface (or environment) coordinates.

    Returns:
        The RGB value of the field at uv.
    """
    kind = field_kinds[field_id]
    result = vec3(0.0, 0.0, 0.0)

    if kind == int(FieldKind.CONSTANT):
        result = field_values_a[field_id]
    elif kind == int(FieldKind.TEXTURE):
        result = _sample_texture(field_id, uv)
    elif kind == int(FieldKind.GRADIENT):
        t = tm.clamp(uv.y, 0.0, 1.0)
        result = (1.0 - t) * field_values_a[field_id] + t * field_values_b[field_id]

    return result


@ti.func
def sample_scalar(field_id: ti.i32, uv: vec2) -> ti.f32:
    """Evaluate a scalar field (the red channel of the field)."""
    return sample_field(field_id, uv).x
