"""Unit tests for the path tracing integrator.

Tests cover:
- Depth limit and environment lookup for escaped rays
- Emission and nearest-hit selection along a path
- Render argument validation
- Pixel layout and averaging of the render driver
- Tone mapping to 8-bit values
"""

import math

import numpy as np
import pytest


def _emissive_scene(emission, environment=None):
    """A scene whose only object is a large black emitter around the origin."""
    from prayer.scene.manager import Scene

    scene = Scene()
    scene.add_material("lamp", albedo=0.0, emission=emission)
    scene.add_sphere((0.0, 0.0, 0.0), 100.0, "lamp")
    scene.set_environment(environment)
    return scene


class TestTraceRadiance:
    """Tests for trace_radiance via trace_ray."""

    def test_depth_zero_is_black(self):
        """Test no light is gathered without any bounces."""
        from prayer.core.integrator import trace_ray

        _emissive_scene((5.0, 5.0, 5.0), environment=1.0).upload()

        assert trace_ray((0.0, 0.0, 0.0), (0.0, 0.0, 1.0), 0) == (0.0, 0.0, 0.0)

    @pytest.mark.parametrize(
        "direction, expected",
        [
            ((0.0, 3.0, 0.0), (0.5, 0.7, 1.0)),
            ((0.0, -0.5, 0.0), (1.0, 1.0, 1.0)),
            ((2.0, 0.0, 0.0), (0.75, 0.85, 1.0)),
        ],
    )
    def test_miss_returns_environment(self, direction, expected):
        """Test escaped rays read the environment along their unit direction."""
        from prayer.core.integrator import trace_ray
        from prayer.materials.field import Gradient
        from prayer.scene.manager import Scene

        scene = Scene()
        scene.set_environment(Gradient(top=(0.5, 0.7, 1.0), bottom=(1.0, 1.0, 1.0)))
        scene.upload()

        assert trace_ray((0.0, 0.0, 0.0), direction, 3) == pytest.approx(expected, abs=1e-5)

    def test_miss_without_environment_is_black(self):
        """Test a scene without an environment is black outside its objects."""
        from prayer.core.integrator import trace_ray
        from prayer.scene.manager import Scene

        Scene().upload()

        assert trace_ray((0.0, 0.0, 0.0), (0.0, 0.0, 1.0), 5) == (0.0, 0.0, 0.0)

    def test_single_bounce_returns_emission(self):
        """Test depth 1 on an emitter yields exactly its emission."""
        from prayer.core.integrator import trace_ray

        _emissive_scene((0.5, 1.0, 2.0), environment=3.0).upload()

        for direction in [(0.0, 0.0, 1.0), (1.0, -1.0, 0.0), (0.2, 0.9, -0.4)]:
            assert trace_ray((0.0, 0.0, 0.0), direction, 1) == pytest.approx((0.5, 1.0, 2.0))

    def test_nearest_object_contributes(self):
        """Test only the first surface along the ray is shaded."""
        from prayer.core.integrator import trace_ray
        from prayer.scene.manager import Scene

        scene = Scene()
        scene.add_material("far", albedo=0.0, emission=(0.0, 9.0, 0.0))
        scene.add_material("near", albedo=0.0, emission=(2.0, 0.0, 0.0))
        scene.add_sphere((0.0, 0.0, 10.0), 1.0, "far")
        scene.add_sphere((0.0, 0.0, 4.0), 1.0, "near")
        scene.upload()

        assert trace_ray((0.0, 0.0, 0.0), (0.0, 0.0, 1.0), 1) == pytest.approx((2.0, 0.0, 0.0))

    def test_radiance_is_finite_and_non_negative(self):
        """Test deep paths between a glossy metal and a rough ground stay finite."""
        from prayer.core.integrator import trace_ray
        from prayer.scene.manager import Scene

        scene = Scene()
        scene.add_material("ground", albedo=0.9, roughness=1.0)
        scene.add_material("mirror", albedo=(0.9, 0.9, 0.9), metalness=1.0, roughness=0.2)
        scene.add_sphere((0.0, -101.0, 0.0), 100.0, "ground")
        scene.add_sphere((0.0, 0.0, 3.0), 1.0, "mirror")
        scene.set_environment(2.0)
        scene.upload()

        for _ in range(20):
            color = trace_ray((0.0, 0.0, 0.0), (0.0, -0.1, 1.0), 8)
            assert all(math.isfinite(c) and c >= 0.0 for c in color)


class TestRenderValidation:
    """Tests for argument checking in the render driver."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"resolution": (0, 10)},
            {"resolution": (10, -1)},
            {"resolution": (4096, 10)},
            {"samples": 0},
            {"max_light_bounces": -1},
        ],
    )
    def test_invalid_arguments(self, kwargs):
        """Test invalid sizes, sample counts and bounce limits raise ValueError."""
        from prayer.core.integrator import render_radiance

        args = {"resolution": (4, 4), "samples": 1, "max_light_bounces": 1}
        args.update(kwargs)
        with pytest.raises(ValueError):
            render_radiance(_emissive_scene(1.0), **args)


class TestRenderDriver:
    """Tests for render_radiance, render_image and render."""

    def test_uniform_emitter_fills_every_pixel(self):
        """Test every pixel sees the emitter when the camera sits inside it."""
        from prayer.camera.pinhole import CameraParams
        from prayer.core.integrator import render, tone_map

        emission = (0.5, 1.0, 2.0)
        camera = CameraParams(eye=(0.0, 0.0, 0.0), target=(0.0, 0.0, 1.0))

        pixels = render(_emissive_scene(emission), camera, (2, 2), samples=4, max_light_bounces=1)

        expected = tone_map(np.array(emission, dtype=np.float32)).tobytes()
        assert len(pixels) == 2 * 2 * 3
        assert pixels == expected * 4

    def test_radiance_shape_and_top_row_first(self):
        """Test rows are stored top to bottom."""
        from prayer.camera.pinhole import CameraParams
        from prayer.core.integrator import render_radiance
        from prayer.materials.field import Gradient
        from prayer.scene.manager import Scene

        scene = Scene()
        scene.set_environment(Gradient(top=(1.0, 0.0, 0.0), bottom=(0.0, 0.0, 1.0)))
        camera = CameraParams(eye=(0.0, 0.0, 0.0), target=(0.0, 0.0, 1.0), vfov=90.0)

        radiance = render_radiance(scene, camera, (6, 4), samples=4, max_light_bounces=1)

        assert radiance.shape == (4, 6, 3)
        assert radiance.dtype == np.float32
        assert np.all(radiance[0, :, 0] > radiance[-1, :, 0])
        assert np.all(radiance[0, :, 2] < radiance[-1, :, 2])

    def test_render_image_matches_tone_map(self):
        """Test render_image is the tone-mapped radiance."""
        from prayer.camera.pinhole import CameraParams
        from prayer.core.integrator import render_image

        camera = CameraParams(eye=(0.0, 0.0, 0.0), target=(1.0, 0.0, 0.0))
        image = render_image(
            _emissive_scene(0.25), camera, (3, 5), samples=2, max_light_bounces=1, gamma=1.0
        )

        assert image.shape == (5, 3, 3)
        assert image.dtype == np.uint8
        expected = int((1.0 - math.exp(-0.25)) * 255.99)
        assert np.all(image == expected)

    def test_more_samples_reduce_noise(self):
        """Test repeated image means spread less at 4096 samples than at 16."""
        from prayer.camera.pinhole import CameraParams
        from prayer.core.integrator import render_radiance
        from prayer.scene.manager import Scene

        scene = Scene()
        scene.add_material("white", albedo=1.0, metalness=0.0, roughness=1.0)
        scene.add_material("lamp", albedo=0.0, emission=4.0)
        scene.add_sphere((0.0, 0.0, 0.0), 1.0, "white")
        # Above the frame, lighting the side of the white sphere facing the camera
        scene.add_sphere((0.0, 4.0, 0.0), 2.5, "lamp")
        camera = CameraParams(eye=(0.0, 2.0, -3.0), target=(0.0, 0.0, 0.0), vfov=20.0)

        def means(samples):
            return np.array(
                [
                    render_radiance(scene, camera, (4, 4), samples=samples, max_light_bounces=4).mean()
                    for _ in range(6)
                ]
            )

        coarse = means(16)
        fine = means(4096)

        assert fine.std() < coarse.std()
        assert fine.mean() > 0.0
        assert abs(fine.mean() - coarse.mean()) < 0.2 * fine.mean()


class TestToneMap:
    """Tests for tone_map."""

    def test_black_and_saturated(self):
        """Test zero maps to 0 and very bright values to 255."""
        from prayer.core.integrator import tone_map

        result = tone_map(np.array([[0.0, 1e6, 50.0]]))

        assert result.dtype == np.uint8
        assert result.tolist() == [[0, 255, 255]]

    def test_unit_exposure_and_gamma(self):
        """Test 0 maps to 0 and 1e6 to 255 with exposure and gamma of 1."""
        from prayer.core.integrator import tone_map

        assert tone_map(np.array([0.0, 1e6]), exposure=1.0, gamma=1.0).tolist() == [0, 255]

    def test_invalid_values(self):
        """Test NaN and negative radiance map to 0 and infinity to 255."""
        from prayer.core.integrator import tone_map

        result = tone_map(np.array([np.nan, -3.0, np.inf]))

        assert result.tolist() == [0, 0, 255]

    def test_exposure_and_gamma(self):
        """Test the exponential curve with gamma 1 and with gamma 2."""
        from prayer.core.integrator import tone_map

        # 1 - exp(-ln 2) = 0.5
        assert tone_map(np.array([math.log(2.0)]), gamma=1.0).tolist() == [127]
        assert tone_map(np.array([math.log(2.0) / 2.0]), exposure=2.0, gamma=1.0).tolist() == [127]
        # sqrt(0.25) = 0.5
        assert tone_map(np.array([-math.log(0.75)]), gamma=2.0).tolist() == [127]

    def test_shape_preserved(self):
        """Test tone_map works on whole images."""
        from prayer.core.integrator import tone_map

        assert tone_map(np.zeros((4, 5, 3))).shape == (4, 5, 3)
