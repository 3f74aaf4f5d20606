"""Pytest configuration for prayer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear the object table, field table and materials around each test.

    This ensures tests are isolated from each other.
    """
    # Import here so Taichi is initialized before any field is declared
    from prayer.materials.field import clear_fields
    from prayer.materials.pbr import clear_materials
    from prayer.scene.intersection import clear_scene

    def _clear_all():
        clear_scene()
        clear_fields()
        clear_materials()

    _clear_all()
    yield
    _clear_all()


@pytest.fixture
def grey_material():
    """Register a grey dielectric material directly and return its id."""
    from prayer.materials.pbr import add_material

    return add_material(albedo=0.5, metalness=0.0, roughness=0.5)
