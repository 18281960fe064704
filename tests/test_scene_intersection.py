"""Unit tests for scene-level ray intersection.

Tests cover:
- Nearest-hit selection across multiple spheres
- Independence from insertion order
- Material reference propagation into the hit record
- Empty scenes and the exclusive far bound
"""

import pytest
import taichi as ti


def _world_hit(origin, direction, t_min=0.001, t_sup=1.0e4):
    """Run world_hit in a kernel and return the hit record as a dict."""
    from pathtracer.core.ray import make_ray
    from pathtracer.scene.intersection import world_hit

    ox, oy, oz = origin
    dx, dy, dz = direction

    hit = ti.field(dtype=ti.i32, shape=())
    t = ti.field(dtype=ti.f32, shape=())
    normal = ti.Vector.field(3, dtype=ti.f32, shape=())
    material = ti.Vector.field(2, dtype=ti.i32, shape=())

    @ti.kernel
    def test_kernel():
        ray = make_ray(ti.math.vec3(ox, oy, oz), ti.math.vec3(dx, dy, dz))
        rec = world_hit(ray, t_min, t_sup)
        hit[None] = rec.hit
        t[None] = rec.t
        normal[None] = rec.normal
        material[None] = ti.Vector([rec.material_kind, rec.material_index])

    test_kernel()
    n = normal[None]
    m = material[None]
    return {
        "hit": hit[None],
        "t": t[None],
        "normal": (n[0], n[1], n[2]),
        "material": (m[0], m[1]),
    }


class TestWorldHit:
    """Tests for world_hit()."""

    def test_empty_scene_misses(self):
        """Test that nothing is hit before any scene is uploaded."""
        rec = _world_hit((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 0

    def test_single_sphere_hit(self):
        """Test hitting the one sphere of a scene."""
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_lambertian_sphere((0.0, 0.0, -2.0), 0.5, albedo=(0.5, 0.5, 0.5))
        scene.upload()

        rec = _world_hit((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(1.5, abs=1e-5)
        assert rec["normal"] == pytest.approx((0.0, 0.0, 1.0), abs=1e-5)

    @pytest.mark.parametrize("near_first", [True, False])
    def test_nearest_sphere_wins(self, near_first):
        """Test that the closest sphere is reported whatever the order."""
        from pathtracer.scene.manager import SceneManager
        from pathtracer.scene.repository import MaterialKind

        scene = SceneManager()
        near = scene.add_lambertian_material(albedo=(0.9, 0.1, 0.1))
        far = scene.add_metal_material(albedo=(0.1, 0.1, 0.9), fuzz=0.0)
        spheres = [((0.0, 0.0, -2.0), 0.5, near), ((0.0, 0.0, -5.0), 1.0, far)]
        if not near_first:
            spheres.reverse()
        for center, radius, material in spheres:
            scene.add_sphere(center, radius, material)
        scene.upload()

        rec = _world_hit((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(1.5, abs=1e-5)
        assert rec["material"] == (int(MaterialKind.LAMBERTIAN), 0)

    def test_overlapping_spheres(self):
        """Test that the smaller valid t wins when spheres overlap."""
        from pathtracer.scene.manager import SceneManager
        from pathtracer.scene.repository import MaterialKind

        scene = SceneManager()
        far = scene.add_metal_material(albedo=(0.5, 0.5, 0.5))
        near = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        scene.add_sphere((0.0, 0.0, -3.0), 1.0, far)
        scene.add_sphere((0.0, 0.0, -2.5), 1.0, near)
        scene.upload()

        rec = _world_hit((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert rec["t"] == pytest.approx(1.5, abs=1e-5)
        assert rec["material"] == (int(MaterialKind.LAMBERTIAN), 0)

    def test_material_reference_copied(self):
        """Test that the hit sphere's (kind, index) reaches the record."""
        from pathtracer.scene.manager import SceneManager
        from pathtracer.scene.repository import MaterialKind

        scene = SceneManager()
        scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        scene.add_metal_material(albedo=(0.8, 0.8, 0.8), fuzz=0.1)
        gold = scene.add_metal_material(albedo=(0.8, 0.6, 0.2), fuzz=0.5)
        scene.add_sphere((0.0, 3.0, 0.0), 1.0, gold)
        scene.upload()

        rec = _world_hit((0.0, 0.0, 0.0), (0.0, 1.0, 0.0))
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(2.0, abs=1e-5)
        assert rec["material"] == (int(MaterialKind.METAL), 1)

    def test_ray_missing_all_spheres(self):
        """Test a ray that passes beside every sphere."""
        from pathtracer.scene.presets import create_default_scene

        create_default_scene().upload()
        rec = _world_hit((0.0, 0.0, 0.0), (0.0, 1.0, 0.0))
        assert rec["hit"] == 0

    def test_far_bound_excludes_hits(self):
        """Test that hits at or beyond t_sup are ignored."""
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_lambertian_sphere((0.0, 0.0, -2.0), 0.5, albedo=(0.5, 0.5, 0.5))
        scene.upload()

        assert _world_hit((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), t_sup=1.5)["hit"] == 0
        assert _world_hit((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), t_sup=1.6)["hit"] == 1

    def test_min_bound_skips_near_hits(self):
        """Test that t_min moves the reported hit to the far side."""
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_lambertian_sphere((0.0, 0.0, -2.0), 0.5, albedo=(0.5, 0.5, 0.5))
        scene.upload()

        rec = _world_hit((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), t_min=2.0)
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(2.5, abs=1e-5)

    def test_default_scene_ground_hit(self):
        """Test that a downward ray hits the ground sphere."""
        from pathtracer.scene.presets import create_default_scene

        create_default_scene().upload()
        rec = _world_hit((0.0, 0.0, 0.0), (0.0, -1.0, 0.0))
        assert rec["hit"] == 1
        # Ground top is at y = -0.5 directly below (0, 0, -1), so the hit is slightly past it
        assert rec["t"] == pytest.approx(0.505, abs=5e-3)
        assert rec["normal"][1] > 0.99
