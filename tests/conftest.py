"""Pytest configuration for path tracer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls, which would
    discard every field declared by the package modules.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Reset scene, faults, accumulation buffer and random streams.

    This ensures tests are isolated from each other.
    """
    # Import here so the package's fields are declared after ti.init()
    from pathtracer.core.faults import clear_faults
    from pathtracer.core.integrator import clear_render_target
    from pathtracer.core.rng import seed_rng_store
    from pathtracer.scene.repository import clear_scene

    def _clear_all():
        clear_scene()
        clear_faults()
        clear_render_target()

    _clear_all()
    seed_rng_store(0)

    yield

    _clear_all()
