"""Metal/roughness material: BRDF evaluation, bounce sampling and shading.

A material is four sampled fields (see ``prayer.materials.field``):

    albedo:    base reflected colour
    metalness: 0 = dielectric, 1 = metal (red channel of its field)
    roughness: microfacet roughness (red channel of its field)
    emission:  self-emitted radiance

Shading at a hit combines two lobes with one cosine-weighted bounce sample:

    diffuse  = (1 - ks) * (1 - metalness) * albedo / pi / (1 / (2 pi))
    specular = brdf / pdf
    L        = (diffuse + specular) * L_incident * max(0, n . w_in) + emission

where ``brdf`` is the Cook-Torrance specular lobe (GGX distribution,
Smith-Schlick geometry, Schlick Fresnel) and ``ks`` is its Fresnel term. The
diffuse lobe is divided by the fixed density 1 / (2 pi) while the specular
lobe is divided by the density of the sample that was actually drawn. This is
an unweighted two-lobe estimator, not multiple importance sampling, and it is
kept exactly in this form.

Metalness and roughness are clamped to [0, 1] at shading time.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prayer.materials.pbr import add_material
    >>> gold = add_material(albedo=(1.0, 0.78, 0.34), metalness=1.0, roughness=0.3)
    >>> lamp = add_material(albedo=0.0, emission=(8.0, 8.0, 8.0))
"""

import math

import taichi as ti
import taichi.math as tm

from prayer.core.ray import Ray, make_ray, safe_normalize, sample_cosine_hemisphere
from prayer.materials.field import (
    MAX_FIELDS,
    Color,
    FieldSpec,
    add_field,
    sample_field,
    sample_scalar,
)

vec3 = tm.vec3
vec2 = tm.vec2

# Reflectance at normal incidence for dielectrics
DIELECTRIC_F0 = 0.04

# Lower bound for GGX alpha; alpha = 0 makes the distribution a delta
MIN_ALPHA = 1e-3

# Lower bound for sample densities and BRDF denominators
PDF_EPSILON = 1e-6

# Fixed density the diffuse lobe is divided by
DIFFUSE_PDF = 1.0 / (2.0 * math.pi)


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Leaves one field for the environment
MAX_MATERIALS = (MAX_FIELDS - 1) // 4

material_albedo_fields = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_metalness_fields = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_roughness_fields = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_emission_fields = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def clear_materials() -> None:
    """Clear all materials.

    Resets the material count to zero. The fields the materials referenced
    are cleared separately with ``clear_fields()``.
    """
    num_materials[None] = 0


def get_material_count() -> int:
    """Get the number of materials in the registry."""
    return int(num_materials[None])


def add_material(
    albedo: float | Color | FieldSpec = 0.5,
    metalness: float | Color | FieldSpec = 0.0,
    roughness: float | Color | FieldSpec = 0.5,
    emission: float | Color | FieldSpec = 0.0,
) -> int:
    """Add a material to the material registry.

    Each channel accepts a number, an (R, G, B) triple, or a field
    description (Constant, Texture, Gradient).

    Args:
        albedo: Base reflected colour.
        metalness: 0 for dielectrics, 1 for metals.
        roughness: Microfacet roughness, 0 (smooth) to 1 (rough).
        emission: Emitted radiance. Values above 1 are allowed.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any constant channel value is negative.
    """
    idx = num_materials[None]
    if idx >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

    material_albedo_fields[idx] = add_field(albedo)
    material_metalness_fields[idx] = add_field(metalness)
    material_roughness_fields[idx] = add_field(roughness)
    material_emission_fields[idx] = add_field(emission)
    num_materials[None] = idx + 1
    return idx


@ti.func
def get_albedo(material_id: ti.i32, uv: vec2) -> vec3:
    """Sample the albedo of a material at uv."""
    return sample_field(material_albedo_fields[material_id], uv)


@ti.func
def get_metalness(material_id: ti.i32, uv: vec2) -> ti.f32:
    """Sample the metalness of a material at uv, clamped to [0, 1]."""
    return tm.clamp(sample_scalar(material_metalness_fields[material_id], uv), 0.0, 1.0)


@ti.func
def get_roughness(material_id: ti.i32, uv: vec2) -> ti.f32:
    """Sample the roughness of a material at uv, clamped to [0, 1]."""
    return tm.clamp(sample_scalar(material_roughness_fields[material_id], uv), 0.0, 1.0)


@ti.func
def get_emission(material_id: ti.i32, uv: vec2) -> vec3:
    """Sample the emitted radiance of a material at uv."""
    return sample_field(material_emission_fields[material_id], uv)


# =============================================================================
# BRDF Building Blocks
# =============================================================================


@ti.func
def fresnel_schlick(cos_theta: ti.f32, f0: vec3) -> vec3:
    """Schlick's approximation of Fresnel reflectance.

    Args:
        cos_theta: Cosine between the half vector and the view direction.
        f0: Reflectance at normal incidence.

    Returns:
        F0 + (1 - F0) * (1 - cos_theta)^5 per channel.
    """
    c = tm.clamp(cos_theta, 0.0, 1.0)
    return f0 + (1.0 - f0) * ((1.0 - c) ** 5)


@ti.func
def distribution_ggx(n_dot_h: ti.f32, roughness: ti.f32) -> ti.f32:
    """GGX / Trowbridge-Reitz normal distribution with alpha = roughness^2."""
    alpha = ti.max(roughness * roughness, MIN_ALPHA)
    alpha2 = alpha * alpha
    d = n_dot_h * n_dot_h * (alpha2 - 1.0) + 1.0
    return alpha2 / (tm.pi * d * d)


@ti.func
def geometry_schlick_ggx(n_dot_x: ti.f32, roughness: ti.f32) -> ti.f32:
    """Schlick-GGX masking term for one direction, k = (roughness + 1)^2 / 8."""
    r = roughness + 1.0
    k = r * r / 8.0
    return n_dot_x / (n_dot_x * (1.0 - k) + k)


@ti.func
def geometry_smith(n_dot_v: ti.f32, n_dot_l: ti.f32, roughness: ti.f32) -> ti.f32:
    """Smith shadowing-masking: product of the two one-sided terms."""
    return geometry_schlick_ggx(n_dot_v, roughness) * geometry_schlick_ggx(n_dot_l, roughness)


# =============================================================================
# Material Operations
# =============================================================================


@ti.dataclass
class BounceSample:
    """A sampled bounce ray and the density it was drawn with.

    Attributes:
        ray: The bounce ray, starting at the hit point.
        pdf: Probability density of the ray's direction.
    """

    ray: Ray
    pdf: ti.f32


@ti.dataclass
class ShadeSample:
    """Result of shading one hit.

    Shading is linear in the radiance arriving along the bounce ray, so the
    outgoing radiance is weight * L_incident + emission.

    Attributes:
        ray: The bounce ray to trace next.
        weight: Factor applied to the radiance arriving along ``ray``.
        emission: Radiance emitted by the surface itself.
    """

    ray: Ray
    weight: vec3
    emission: vec3


@ti.func
def bounce(point: vec3, normal: vec3) -> BounceSample:
    """Sample the outgoing bounce ray at a hit point.

    The direction is drawn from the cosine-weighted hemisphere around the
    normal; the view direction does not influence the sample.

    Args:
        point: The hit point; the bounce ray starts here.
        normal: The unit surface normal at the hit point.

    Returns:
        A BounceSample whose pdf is cos(theta) / pi, floored at PDF_EPSILON.
    """
    direction, pdf = sample_cosine_hemisphere(normal)
    return BounceSample(ray=make_ray(point, direction), pdf=ti.max(pdf, PDF_EPSILON))


@ti.func
def brdf(material_id: ti.i32, w_out: vec3, w_in: vec3, normal: vec3, uv: vec2):
    """Evaluate the specular lobe and its Fresnel reflectance.

    Args:
        material_id: The material to evaluate.
        w_out: Unit direction toward the viewer (opposite the incoming ray).
        w_in: Unit direction toward the light (the bounce direction).
        normal: The unit surface normal.
        uv: Surface coordinates for sampling the material fields.

    Returns:
        A tuple of (specular, ks) where specular is D * G * F / (4 n.wo n.wi)
        and ks is the Fresnel term F used to split energy between lobes.
    """
    albedo = get_albedo(material_id, uv)
    metalness = get_metalness(material_id, uv)
    roughness = get_roughness(material_id, uv)

    half = safe_normalize(w_out + w_in, normal)
    n_dot_v = ti.max(tm.dot(normal, w_out), 0.0)
    n_dot_l = ti.max(tm.dot(normal, w_in), 0.0)
    n_dot_h = ti.max(tm.dot(normal, half), 0.0)
    h_dot_v = ti.max(tm.dot(half, w_out), 0.0)

    f0 = vec3(DIELECTRIC_F0, DIELECTRIC_F0, DIELECTRIC_F0) * (1.0 - metalness) + albedo * metalness
    ks = fresnel_schlick(h_dot_v, f0)

    d = distribution_ggx(n_dot_h, roughness)
    g = geometry_smith(n_dot_v, n_dot_l, roughness)
    specular = d * g * ks / ti.max(4.0 * n_dot_v * n_dot_l, PDF_EPSILON)

    return specular, ks


@ti.func
def shade(material_id: ti.i32, ray: Ray, point: vec3, normal: vec3, uv: vec2) -> ShadeSample:
    """Sample a bounce at a hit and weight the incident light.

    Args:
        material_id: The material of the hit surface.
        ray: The ray that produced the hit.
        point: The hit point.
        normal: The unit surface normal.
        uv: Surface coordinates of the hit.

    Returns:
        A ShadeSample with the bounce ray, its weight and the emission.
    """
    w_out = -tm.normalize(ray.direction)
    sample = bounce(point, normal)
    w_in = sample.ray.direction

    specular_brdf, ks = brdf(material_id, w_out, w_in, normal, uv)
    specular = specular_brdf / sample.pdf

    lambert = get_albedo(material_id, uv) / tm.pi
    kd = (vec3(1.0, 1.0, 1.0) - ks) * (1.0 - get_metalness(material_id, uv))
    diffuse = kd * lambert / DIFFUSE_PDF

    cos_theta = ti.max(tm.dot(normal, w_in), 0.0)

    return ShadeSample(
        ray=sample.ray,
        weight=(diffuse + specular) * cos_theta,
        emission=get_emission(material_id, uv),
    )
