"""Unit tests for the ray module.

Tests cover:
- Ray construction and evaluation
- Vector helpers (reflect, near_zero)
- Sky gradient on the device and its host mirror
"""

import pytest
import taichi as ti


class TestRay:
    """Tests for the Ray dataclass."""

    def test_ray_at(self):
        """Test evaluating a point along a ray."""
        from pathtracer.core.ray import make_ray, ray_at

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            ray = make_ray(ti.math.vec3(1.0, 2.0, 3.0), ti.math.vec3(0.0, 0.0, -2.0))
            result[None] = ray_at(ray, 2.5)

        test_kernel()
        p = result[None]
        assert p[0] == pytest.approx(1.0)
        assert p[1] == pytest.approx(2.0)
        assert p[2] == pytest.approx(-2.0)


class TestVectorHelpers:
    """Tests for vector utility functions."""

    def test_reflect(self):
        """Test reflection about a normal."""
        from pathtracer.core.ray import reflect

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = reflect(ti.math.vec3(1.0, -1.0, 0.0), ti.math.vec3(0.0, 1.0, 0.0))

        test_kernel()
        r = result[None]
        assert r[0] == pytest.approx(1.0)
        assert r[1] == pytest.approx(1.0)
        assert r[2] == pytest.approx(0.0)

    def test_near_zero(self):
        """Test the component-wise near-zero check."""
        from pathtracer.core.ray import near_zero

        results = ti.field(dtype=ti.i32, shape=3)

        @ti.kernel
        def test_kernel():
            results[0] = near_zero(ti.math.vec3(0.0, 0.0, 0.0))
            results[1] = near_zero(ti.math.vec3(1e-9, -1e-9, 0.0))
            results[2] = near_zero(ti.math.vec3(0.0, 1e-3, 0.0))

        test_kernel()
        assert results[0] == 1
        assert results[1] == 1
        assert results[2] == 0


class TestSkyColor:
    """Tests for the sky gradient."""

    def _device_sky(self, direction):
        from pathtracer.core.ray import sky_color

        result = ti.Vector.field(3, dtype=ti.f32, shape=())
        x, y, z = direction

        @ti.kernel
        def test_kernel():
            result[None] = sky_color(ti.math.vec3(x, y, z))

        test_kernel()
        c = result[None]
        return (float(c[0]), float(c[1]), float(c[2]))

    def test_sky_straight_up_is_blue(self):
        """Test the zenith color."""
        assert self._device_sky((0.0, 1.0, 0.0)) == pytest.approx((0.5, 0.7, 1.0), abs=1e-6)

    def test_sky_straight_down_is_white(self):
        """Test the nadir color."""
        assert self._device_sky((0.0, -1.0, 0.0)) == pytest.approx((1.0, 1.0, 1.0), abs=1e-6)

    def test_sky_horizon_is_midpoint(self):
        """Test the horizon color for a horizontal ray."""
        assert self._device_sky((0.0, 0.0, -1.0)) == pytest.approx((0.75, 0.85, 1.0), abs=1e-6)

    def test_sky_ignores_direction_length(self):
        """Test that the gradient uses the normalized direction."""
        assert self._device_sky((0.0, 5.0, 0.0)) == pytest.approx((0.5, 0.7, 1.0), abs=1e-6)

    def test_host_mirror_matches_device(self):
        """Test that sky_color_host agrees with the device function."""
        from pathtracer.core.ray import sky_color_host

        for direction in [(0.3, 0.4, -1.0), (1.0, -0.2, 0.0), (0.0, 0.9, 0.1)]:
            assert sky_color_host(direction) == pytest.approx(
                self._device_sky(direction), abs=1e-5
            )
