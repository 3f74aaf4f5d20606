"""Materials module: sampled fields and the metal/roughness shading model.

Components:
    field: Constant, textured and gradient fields sampled by UV
    pbr: Material registry, BRDF evaluation, bounce sampling and shading

Each material provides:
    - bounce(): cosine-weighted hemisphere sample and its density
    - brdf(): Cook-Torrance specular lobe and Fresnel reflectance
    - shade(): the combined diffuse + specular estimate for one hit

All shading computations are implemented as Taichi functions.
"""

from .field import (
    MAX_FIELDS,
    MAX_TEXELS,
    Constant,
    FieldKind,
    FieldSpec,
    Gradient,
    Texture,
    add_field,
    as_field,
    clear_fields,
    field_from_config,
    field_to_config,
    get_field_count,
    sample_field,
    sample_scalar,
)
from .pbr import (
    MAX_MATERIALS,
    BounceSample,
    ShadeSample,
    add_material,
    bounce,
    brdf,
    clear_materials,
    get_material_count,
    shade,
)

__all__ = [
    # Fields
    "FieldKind",
    "FieldSpec",
    "Constant",
    "Texture",
    "Gradient",
    "as_field",
    "field_from_config",
    "field_to_config",
    "add_field",
    "clear_fields",
    "get_field_count",
    "sample_field",
    "sample_scalar",
    "MAX_FIELDS",
    "MAX_TEXELS",
    # Materials
    "BounceSample",
    "ShadeSample",
    "add_material",
    "clear_materials",
    "get_material_count",
    "bounce",
    "brdf",
    "shade",
    "MAX_MATERIALS",
]
