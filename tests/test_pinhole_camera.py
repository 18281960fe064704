"""Unit tests for the pinhole camera.

Tests cover:
- Camera basis and viewport geometry
- Aspect ratio resolution
- Primary ray generation
- Jittered rays and random state consumption
- Configuration validation
"""

import math

import numpy as np
import pytest
import taichi as ti


class TestCameraSetup:
    """Tests for setup_camera() and get_camera_info()."""

    def test_default_camera_viewport(self):
        """Test the 2:1 viewport of the default camera."""
        from pathtracer.camera.pinhole import default_camera, get_camera_info, setup_camera

        setup_camera(default_camera(), aspect_ratio=2.0)
        info = get_camera_info()

        assert info["origin"] == pytest.approx((0.0, 0.0, 0.0))
        assert info["u"] == pytest.approx((1.0, 0.0, 0.0), abs=1e-6)
        assert info["v"] == pytest.approx((0.0, 1.0, 0.0), abs=1e-6)
        assert info["w"] == pytest.approx((0.0, 0.0, 1.0), abs=1e-6)
        assert info["horizontal"] == pytest.approx((4.0, 0.0, 0.0), abs=1e-6)
        assert info["vertical"] == pytest.approx((0.0, 2.0, 0.0), abs=1e-6)
        assert info["lower_left"] == pytest.approx((-2.0, -1.0, -1.0), abs=1e-6)

    def test_camera_aspect_ratio_wins(self):
        from pathtracer.camera.pinhole import PinholeCamera, get_camera_info, setup_camera

        setup_camera(PinholeCamera(aspect_ratio=1.0), aspect_ratio=2.0)
        assert get_camera_info()["horizontal"] == pytest.approx((2.0, 0.0, 0.0), abs=1e-6)

    def test_square_when_no_aspect_given(self):
        from pathtracer.camera.pinhole import default_camera, get_camera_info, setup_camera

        setup_camera(default_camera())
        assert get_camera_info()["horizontal"] == pytest.approx((2.0, 0.0, 0.0), abs=1e-6)

    def test_vfov(self):
        from pathtracer.camera.pinhole import PinholeCamera, get_camera_info, setup_camera

        setup_camera(PinholeCamera(vfov=60.0), aspect_ratio=1.0)
        height = 2.0 * math.tan(math.radians(30.0))
        assert get_camera_info()["vertical"] == pytest.approx((0.0, height, 0.0), abs=1e-5)

    def test_look_at_basis_is_orthonormal(self):
        from pathtracer.camera.pinhole import PinholeCamera, get_camera_info, setup_camera

        setup_camera(
            PinholeCamera(lookfrom=(3.0, 3.0, 2.0), lookat=(0.0, 0.0, -1.0), vfov=20.0),
            aspect_ratio=16.0 / 9.0,
        )
        info = get_camera_info()
        u, v, w = (np.array(info[k]) for k in ("u", "v", "w"))

        for axis in (u, v, w):
            assert np.linalg.norm(axis) == pytest.approx(1.0, abs=1e-5)
        assert np.dot(u, v) == pytest.approx(0.0, abs=1e-5)
        assert np.dot(u, w) == pytest.approx(0.0, abs=1e-5)
        assert np.dot(v, w) == pytest.approx(0.0, abs=1e-5)
        # w points back towards the camera position
        assert np.dot(w, np.array([3.0, 3.0, 3.0])) > 0.0


class TestComputeCameraFrame:
    """Tests for the host-side frame computation."""

    def test_matches_device_frame(self):
        from pathtracer.camera.pinhole import (
            PinholeCamera,
            compute_camera_frame,
            get_camera_info,
            setup_camera,
        )

        camera = PinholeCamera(lookfrom=(-2.0, 2.0, 1.0), lookat=(0.0, 0.0, -1.0), vfov=40.0)
        frame = compute_camera_frame(camera, 1.5)
        setup_camera(camera, 1.5)

        for name, value in get_camera_info().items():
            assert value == pytest.approx(tuple(frame[name]), abs=1e-5)

    def test_image_center_on_view_axis(self):
        """Test that the plane centre lies one unit along the view direction."""
        from pathtracer.camera.pinhole import PinholeCamera, compute_camera_frame

        frame = compute_camera_frame(PinholeCamera(lookfrom=(1.0, 2.0, 3.0), lookat=(1.0, 2.0, 0.0)))
        center = frame["lower_left"] + 0.5 * frame["horizontal"] + 0.5 * frame["vertical"]
        np.testing.assert_allclose(center, [1.0, 2.0, 2.0], atol=1e-12)

    def test_invalid_camera_keeps_previous_frame(self):
        from pathtracer.camera.pinhole import (
            PinholeCamera,
            default_camera,
            get_camera_info,
            setup_camera,
        )

        setup_camera(default_camera(), aspect_ratio=2.0)
        with pytest.raises(ValueError):
            setup_camera(PinholeCamera(vfov=200.0))
        assert get_camera_info()["horizontal"] == pytest.approx((4.0, 0.0, 0.0), abs=1e-6)


class TestCameraValidation:
    """Tests for PinholeCamera.validate()."""

    @pytest.mark.parametrize("vfov", [0.0, 180.0, -10.0])
    def test_vfov_range(self, vfov):
        from pathtracer.camera.pinhole import PinholeCamera

        with pytest.raises(ValueError, match="vfov"):
            PinholeCamera(vfov=vfov).validate()

    def test_aspect_ratio_positive(self):
        from pathtracer.camera.pinhole import PinholeCamera

        with pytest.raises(ValueError, match="aspect_ratio"):
            PinholeCamera(aspect_ratio=0.0).validate()

    def test_degenerate_view(self):
        from pathtracer.camera.pinhole import PinholeCamera

        with pytest.raises(ValueError, match="differ"):
            PinholeCamera(lookfrom=(1.0, 1.0, 1.0), lookat=(1.0, 1.0, 1.0)).validate()

    def test_vup_parallel_to_view(self):
        from pathtracer.camera.pinhole import PinholeCamera, setup_camera

        with pytest.raises(ValueError, match="parallel"):
            setup_camera(PinholeCamera(lookat=(0.0, -1.0, 0.0)))


class TestRayGeneration:
    """Tests for get_ray() and get_ray_jittered()."""

    def _get_ray(self, u, v):
        from pathtracer.camera.pinhole import get_ray

        origin = ti.Vector.field(3, dtype=ti.f32, shape=())
        direction = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            ray = get_ray(u, v)
            origin[None] = ray.origin
            direction[None] = ray.direction

        test_kernel()
        o, d = origin[None], direction[None]
        return (o[0], o[1], o[2]), (d[0], d[1], d[2])

    def test_center_ray(self):
        from pathtracer.camera.pinhole import default_camera, setup_camera

        setup_camera(default_camera(), aspect_ratio=2.0)
        origin, direction = self._get_ray(0.5, 0.5)

        assert origin == pytest.approx((0.0, 0.0, 0.0))
        assert direction == pytest.approx((0.0, 0.0, -1.0), abs=1e-6)

    def test_corner_ray_normalized(self):
        from pathtracer.camera.pinhole import default_camera, setup_camera

        setup_camera(default_camera(), aspect_ratio=2.0)
        _, direction = self._get_ray(0.0, 0.0)

        expected = np.array([-2.0, -1.0, -1.0]) / math.sqrt(6.0)
        assert direction == pytest.approx(tuple(expected), abs=1e-5)

    def test_ray_from_camera_position(self):
        from pathtracer.camera.pinhole import PinholeCamera, setup_camera

        setup_camera(PinholeCamera(lookfrom=(0.0, 0.0, 5.0), lookat=(0.0, 0.0, 0.0)))
        origin, direction = self._get_ray(0.5, 0.5)

        assert origin == pytest.approx((0.0, 0.0, 5.0))
        assert direction == pytest.approx((0.0, 0.0, -1.0), abs=1e-6)

    def test_jittered_rays_stay_in_pixel(self):
        """Test that jittered rays pass through their own pixel footprint."""
        from pathtracer.camera.pinhole import default_camera, get_ray_jittered, setup_camera

        setup_camera(default_camera(), aspect_ratio=2.0)
        n = 256
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)
        state = ti.Vector.field(4, dtype=ti.u32, shape=())
        state[None] = [9, 8, 7, 6]

        @ti.kernel
        def test_kernel():
            ti.loop_config(serialize=True)
            for k in range(1):
                rng = state[None]
                for i in range(n):
                    ray, rng = get_ray_jittered(3, 1, 8, 4, rng)
                    directions[i] = ray.direction

        test_kernel()
        d = directions.to_numpy()
        # Intersect with the image plane z = -1
        points = d / -d[:, 2:3]

        # Pixel (3, 1) of 8x4 covers x in [-0.5, 0), y in [-0.5, 0)
        assert np.all(points[:, 0] >= -0.5 - 1e-5)
        assert np.all(points[:, 0] <= 0.0 + 1e-5)
        assert np.all(points[:, 1] >= -0.5 - 1e-5)
        assert np.all(points[:, 1] <= 0.0 + 1e-5)
        assert np.ptp(points[:, 0]) > 0.25

    def test_jitter_consumes_two_draws(self):
        """Test that one jittered ray advances the state by exactly two steps."""
        from pathtracer.camera.pinhole import default_camera, get_ray_jittered, setup_camera
        from pathtracer.core.rng import Xoshiro128Plus

        setup_camera(default_camera(), aspect_ratio=1.0)
        state = ti.Vector.field(4, dtype=ti.u32, shape=())
        state[None] = [1, 2, 3, 4]

        @ti.kernel
        def test_kernel():
            ray, rng = get_ray_jittered(0, 0, 4, 4, state[None])
            state[None] = rng

        test_kernel()

        expected = Xoshiro128Plus(state=(1, 2, 3, 4))
        expected.next_u32()
        expected.next_u32()
        s = state[None]
        assert (int(s[0]), int(s[1]), int(s[2]), int(s[3])) == expected.state
