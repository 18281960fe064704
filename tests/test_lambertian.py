"""Unit tests for Lambertian material scattering.

Tests cover:
- Scattered directions stay in the hemisphere of the normal
- Attenuation equals the albedo
- Random state evolution and determinism
- Fallback directions for degenerate samples
"""

import numpy as np
import pytest
import taichi as ti


class TestLambertianScatter:
    """Tests for scatter_lambertian()."""

    def _scatter_many(self, normal, albedo, count=256):
        from pathtracer.core.rng import seed_words
        from pathtracer.materials.lambertian import scatter_lambertian

        nx, ny, nz = normal
        ar, ag, ab = albedo
        seed_state = ti.Vector.field(4, dtype=ti.u32, shape=())
        seed_state[None] = list(seed_words(7))

        directions = ti.Vector.field(3, dtype=ti.f32, shape=count)
        attenuations = ti.Vector.field(3, dtype=ti.f32, shape=count)

        @ti.kernel
        def test_kernel():
            ti.loop_config(serialize=True)
            for k in range(1):
                rng = seed_state[None]
                n = ti.math.vec3(nx, ny, nz)
                a = ti.math.vec3(ar, ag, ab)
                for i in range(count):
                    d, att, rng = scatter_lambertian(a, n, rng)
                    directions[i] = d
                    attenuations[i] = att

        test_kernel()
        return directions.to_numpy(), attenuations.to_numpy()

    @pytest.mark.parametrize(
        "normal",
        [(0.0, 1.0, 0.0), (0.0, 0.0, -1.0), (0.6, 0.0, 0.8)],
    )
    def test_direction_in_normal_hemisphere(self, normal):
        """Test that d = N + p never points below the surface."""
        directions, _ = self._scatter_many(normal, (0.5, 0.5, 0.5))
        dots = directions @ np.asarray(normal, dtype=np.float32)
        assert np.all(dots >= -1e-6)

    def test_direction_within_unit_ball_of_normal(self):
        """Test that d - N lies in the unit ball."""
        normal = (0.0, 1.0, 0.0)
        directions, _ = self._scatter_many(normal, (0.5, 0.5, 0.5))
        offsets = directions - np.asarray(normal, dtype=np.float32)
        assert np.all(np.linalg.norm(offsets, axis=1) <= 1.0 + 1e-5)

    def test_directions_average_toward_normal(self):
        """Test that the mean scattered direction is aligned with the normal."""
        directions, _ = self._scatter_many((0.0, 0.0, 1.0), (0.5, 0.5, 0.5), count=1024)
        mean = directions.mean(axis=0)
        assert mean[2] == pytest.approx(1.0, abs=0.1)
        assert abs(mean[0]) < 0.1
        assert abs(mean[1]) < 0.1

    def test_attenuation_is_albedo(self):
        _, attenuations = self._scatter_many((0.0, 1.0, 0.0), (0.7, 0.3, 0.1), count=16)
        np.testing.assert_allclose(attenuations, np.tile([0.7, 0.3, 0.1], (16, 1)), atol=1e-6)

    def test_state_evolves_and_is_deterministic(self):
        """Test that the same state gives the same sample and the state advances."""
        from pathtracer.materials.lambertian import scatter_lambertian

        state = ti.Vector.field(4, dtype=ti.u32, shape=())
        directions = ti.Vector.field(3, dtype=ti.f32, shape=2)

        @ti.kernel
        def test_kernel():
            n = ti.math.vec3(0.0, 1.0, 0.0)
            a = ti.math.vec3(0.5, 0.5, 0.5)
            start = state[None]
            d1, att1, rng1 = scatter_lambertian(a, n, start)
            d2, att2, rng2 = scatter_lambertian(a, n, start)
            directions[0] = d1
            directions[1] = d2
            state[None] = rng1

        state[None] = [1, 2, 3, 4]
        test_kernel()

        d = directions.to_numpy()
        np.testing.assert_array_equal(d[0], d[1])
        s = state[None]
        assert (int(s[0]), int(s[1]), int(s[2]), int(s[3])) != (1, 2, 3, 4)


class TestLambertianDegenerateSamples:
    """Tests for the fallback paths of scatter_lambertian()."""

    def test_cancelling_sample_falls_back_to_normal(self):
        """Test that N + p == 0 scatters along the normal itself.

        The normal is chosen as the negation of the ball sample the state
        is about to produce, so the two cancel exactly.
        """
        from pathtracer.core.rng import next_unit_ball
        from pathtracer.materials.lambertian import scatter_lambertian

        state = ti.Vector.field(4, dtype=ti.u32, shape=())
        offset = ti.Vector.field(3, dtype=ti.f32, shape=())
        direction = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            start = state[None]
            p, ball_rng = next_unit_ball(start)
            d, att, scatter_rng = scatter_lambertian(ti.math.vec3(0.5, 0.5, 0.5), -p, start)
            offset[None] = p
            direction[None] = d

        state[None] = [1, 2, 3, 4]
        test_kernel()

        p = offset.to_numpy()
        assert np.linalg.norm(p) > 0.0
        np.testing.assert_array_equal(direction.to_numpy(), -p)

    def test_exhausted_sampler_scatters_along_normal(self):
        """Test that a zero ball sample leaves the normal as the direction."""
        from pathtracer.core.faults import Fault, current_fault
        from pathtracer.materials.lambertian import scatter_lambertian

        zero_state = ti.Vector.field(4, dtype=ti.u32, shape=())
        direction = ti.Vector.field(3, dtype=ti.f32, shape=())
        attenuation = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            d, att, rng = scatter_lambertian(
                ti.math.vec3(0.7, 0.3, 0.1), ti.math.vec3(0.0, 1.0, 0.0), zero_state[None]
            )
            direction[None] = d
            attenuation[None] = att

        test_kernel()

        np.testing.assert_array_equal(direction.to_numpy(), [0.0, 1.0, 0.0])
        np.testing.assert_allclose(attenuation.to_numpy(), [0.7, 0.3, 0.1], atol=1e-6)
        assert current_fault() == Fault.RNG_EXHAUSTED
