"""Tests for sampled fields.

Tests cover:
- Field descriptions and their validation
- Coercion of numbers and triples with as_field
- Configuration forms (field_from_config / field_to_config)
- Sampling constant, texture and gradient fields inside kernels
- Field table and texel pool capacity
"""

import numpy as np
import pytest
import taichi as ti
from PIL import Image as PILImage


def _sample(field_id, uv):
    """Sample a registered field at one UV inside a kernel."""
    from prayer.materials.field import sample_field, vec2

    result = ti.field(dtype=ti.math.vec3, shape=())

    @ti.kernel
    def test_kernel():
        result[None] = sample_field(field_id, vec2(uv[0], uv[1]))

    test_kernel()
    r = result[None]
    return (r[0], r[1], r[2])


class TestFieldDescriptions:
    """Tests for the Python-side field dataclasses."""

    def test_as_field_scalar_broadcasts(self):
        """Test a number becomes a grey constant."""
        from prayer.materials.field import Constant, as_field

        assert as_field(0.25) == Constant((0.25, 0.25, 0.25))

    def test_as_field_triple(self):
        """Test a list of three numbers becomes a constant colour."""
        from prayer.materials.field import Constant, as_field

        assert as_field([1, 0.5, 0]) == Constant((1.0, 0.5, 0.0))

    def test_as_field_passes_specs_through(self):
        """Test existing descriptions are returned unchanged."""
        from prayer.materials.field import Gradient, as_field

        gradient = Gradient(top=(1.0, 1.0, 1.0), bottom=(0.0, 0.0, 0.0))
        assert as_field(gradient) is gradient

    def test_as_field_rejects_other_types(self):
        """Test unsupported values raise TypeError."""
        from prayer.materials.field import as_field

        with pytest.raises(TypeError):
            as_field("red")
        with pytest.raises(TypeError):
            as_field((1.0, 2.0))

    def test_negative_constant_rejected(self):
        """Test channel values must be non-negative."""
        from prayer.materials.field import Constant, Gradient, as_field

        with pytest.raises(ValueError):
            Constant((0.5, -0.1, 0.5))
        with pytest.raises(ValueError):
            Gradient(top=(1.0, 1.0, 1.0), bottom=(-1.0, 0.0, 0.0))
        with pytest.raises(ValueError):
            as_field(-2.0)

    def test_texture_shape_validated(self):
        """Test textures must be non-empty (h, w, 3) images."""
        from prayer.materials.field import Texture

        with pytest.raises(ValueError):
            Texture(image=np.zeros((4, 4), dtype=np.float32))
        with pytest.raises(ValueError):
            Texture(image=np.zeros((0, 4, 3), dtype=np.float32))

    def test_texture_from_file(self, tmp_path):
        """Test loading an image maps 8-bit values to [0, 1]."""
        from prayer.materials.field import Texture

        pixels = np.zeros((2, 3, 3), dtype=np.uint8)
        pixels[0, 0] = (255, 0, 0)
        pixels[1, 2] = (0, 0, 255)
        path = tmp_path / "tex.png"
        PILImage.fromarray(pixels).save(path)

        texture = Texture.from_file(path)

        assert (texture.width, texture.height) == (3, 2)
        assert texture.source == str(path)
        np.testing.assert_allclose(texture.image[0, 0], (1.0, 0.0, 0.0))
        np.testing.assert_allclose(texture.image[1, 2], (0.0, 0.0, 1.0))


class TestFieldConfig:
    """Tests for the configuration forms of fields."""

    def test_plain_values(self):
        """Test numbers and lists load as constants."""
        from prayer.materials.field import Constant, field_from_config

        assert field_from_config(0.5) == Constant((0.5, 0.5, 0.5))
        assert field_from_config([0.1, 0.2, 0.3]) == Constant((0.1, 0.2, 0.3))

    def test_gradient_table(self):
        """Test a gradient table loads its endpoints."""
        from prayer.materials.field import Gradient, field_from_config

        spec = field_from_config(
            {"type": "gradient", "top": [0.5, 0.7, 1.0], "bottom": [1.0, 1.0, 1.0]}
        )
        assert spec == Gradient(top=(0.5, 0.7, 1.0), bottom=(1.0, 1.0, 1.0))

    def test_texture_shorthand_relative_to_base_dir(self, tmp_path):
        """Test {texture = path} is resolved against base_dir."""
        from prayer.materials.field import Texture, field_from_config

        PILImage.fromarray(np.full((2, 2, 3), 128, dtype=np.uint8)).save(tmp_path / "grey.png")

        spec = field_from_config({"texture": "grey.png"}, base_dir=tmp_path)

        assert isinstance(spec, Texture)
        assert spec.image.shape == (2, 2, 3)

    def test_unknown_type_rejected(self):
        """Test unknown field types raise ValueError."""
        from prayer.materials.field import field_from_config

        with pytest.raises(ValueError):
            field_from_config({"type": "noise"})

    def test_missing_texture_file(self, tmp_path):
        """Test a missing texture surfaces as OSError."""
        from prayer.materials.field import field_from_config

        with pytest.raises(OSError):
            field_from_config({"texture": "missing.png"}, base_dir=tmp_path)

    def test_to_config_round_trip(self):
        """Test exported forms load back to equal descriptions."""
        from prayer.materials.field import (
            Constant,
            Gradient,
            field_from_config,
            field_to_config,
        )

        for spec in (
            Constant((0.3, 0.3, 0.3)),
            Constant((0.1, 0.2, 0.3)),
            Gradient(top=(0.0, 0.0, 1.0), bottom=(1.0, 1.0, 1.0)),
        ):
            assert field_from_config(field_to_config(spec)) == spec

    def test_in_memory_texture_cannot_be_exported(self):
        """Test exporting a texture without a source file fails."""
        from prayer.materials.field import Texture, field_to_config

        with pytest.raises(ValueError):
            field_to_config(Texture(image=np.ones((1, 1, 3), dtype=np.float32)))


class TestFieldSampling:
    """Tests for sample_field inside kernels."""

    def test_constant_everywhere(self):
        """Test a constant field returns its value at any UV."""
        from prayer.materials.field import Constant, add_field

        fid = add_field(Constant((0.2, 0.4, 0.6)))

        for uv in [(0.0, 0.0), (0.3, 0.9), (1.0, 1.0)]:
            assert _sample(fid, uv) == pytest.approx((0.2, 0.4, 0.6), abs=1e-6)

    def test_gradient_blends_top_to_bottom(self):
        """Test gradient returns top at v = 0, bottom at v = 1, mix between."""
        from prayer.materials.field import Gradient, add_field

        fid = add_field(Gradient(top=(0.0, 0.0, 1.0), bottom=(1.0, 1.0, 1.0)))

        assert _sample(fid, (0.5, 0.0)) == pytest.approx((0.0, 0.0, 1.0), abs=1e-6)
        assert _sample(fid, (0.5, 1.0)) == pytest.approx((1.0, 1.0, 1.0), abs=1e-6)
        assert _sample(fid, (0.1, 0.25)) == pytest.approx((0.25, 0.25, 1.0), abs=1e-6)

    def test_texture_nearest_neighbour(self):
        """Test texel lookup: row 0 at v = 0, column by u."""
        from prayer.materials.field import Texture, add_field

        image = np.zeros((2, 2, 3), dtype=np.float32)
        image[0, 0] = (1.0, 0.0, 0.0)
        image[0, 1] = (0.0, 1.0, 0.0)
        image[1, 0] = (0.0, 0.0, 1.0)
        image[1, 1] = (1.0, 1.0, 1.0)
        fid = add_field(Texture(image=image))

        assert _sample(fid, (0.25, 0.25)) == pytest.approx((1.0, 0.0, 0.0))
        assert _sample(fid, (0.75, 0.25)) == pytest.approx((0.0, 1.0, 0.0))
        assert _sample(fid, (0.25, 0.75)) == pytest.approx((0.0, 0.0, 1.0))
        assert _sample(fid, (0.75, 0.75)) == pytest.approx((1.0, 1.0, 1.0))

    def test_texture_u_wraps_and_v_clamps(self):
        """Test u outside [0, 1) wraps and v outside [0, 1] clamps."""
        from prayer.materials.field import Texture, add_field

        image = np.zeros((2, 2, 3), dtype=np.float32)
        image[0, 0] = (1.0, 0.0, 0.0)
        image[1, 1] = (0.0, 0.0, 1.0)
        fid = add_field(Texture(image=image))

        assert _sample(fid, (1.25, 0.25)) == pytest.approx((1.0, 0.0, 0.0))
        assert _sample(fid, (0.75, 1.0)) == pytest.approx((0.0, 0.0, 1.0))
        assert _sample(fid, (0.25, -3.0)) == pytest.approx((1.0, 0.0, 0.0))

    def test_two_textures_share_the_pool(self):
        """Test textures registered in sequence keep their own texels."""
        from prayer.materials.field import Texture, add_field

        first = add_field(Texture(image=np.full((3, 3, 3), 0.25, dtype=np.float32)))
        second = add_field(Texture(image=np.full((1, 2, 3), 0.75, dtype=np.float32)))

        assert _sample(first, (0.5, 0.5)) == pytest.approx((0.25, 0.25, 0.25))
        assert _sample(second, (0.5, 0.5)) == pytest.approx((0.75, 0.75, 0.75))

    def test_scalar_reads_red_channel(self):
        """Test sample_scalar returns the first component."""
        from prayer.materials.field import Constant, add_field, sample_scalar, vec2

        fid = add_field(Constant((0.7, 0.1, 0.2)))
        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = sample_scalar(fid, vec2(0.5, 0.5))

        test_kernel()
        assert result[None] == pytest.approx(0.7)


class TestFieldStorage:
    """Tests for the field table bookkeeping."""

    def test_ids_are_sequential_and_clear_resets(self):
        """Test add_field hands out consecutive ids and clear_fields resets them."""
        from prayer.materials.field import add_field, clear_fields, get_field_count

        assert add_field(0.1) == 0
        assert add_field((0.1, 0.2, 0.3)) == 1
        assert get_field_count() == 2

        clear_fields()
        assert get_field_count() == 0
        assert add_field(0.5) == 0

    def test_texel_pool_overflow(self, monkeypatch):
        """Test a texture larger than the free pool raises RuntimeError."""
        from prayer.materials import field as field_module

        monkeypatch.setattr(field_module, "MAX_TEXELS", 8)
        with pytest.raises(RuntimeError):
            field_module.add_field(
                field_module.Texture(image=np.zeros((3, 3, 3), dtype=np.float32))
            )
