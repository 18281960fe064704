"""Scene-level ray intersection.

world_hit() scans every sphere in the scene repository and returns the
closest hit, carrying the hit sphere's material reference. After each hit the
search interval shrinks to [t_min, t), so later spheres can only replace the
current hit with a strictly nearer one; on an exact tie the earlier sphere
wins.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.scene.intersection import world_hit
    >>> # Use world_hit within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray
from pathtracer.geometry.sphere import HitRecord, Sphere, make_miss_record, sphere_hit
from pathtracer.scene.repository import (
    load_center,
    load_material,
    load_radius,
    sphere_count,
)

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.func
def world_hit(ray: Ray, t_min: ti.f32, t_sup: ti.f32) -> HitRecord:
    """Find the nearest sphere hit by the ray within [t_min, t_sup).

    Args:
        ray: The ray to trace.
        t_min: Smallest accepted t (inclusive).
        t_sup: Upper bound on t (exclusive).

    Returns:
        A HitRecord for the closest intersection with material_kind and
        material_index filled in, or a miss record (hit == 0).
    """
    closest = t_sup
    result = make_miss_record()

    for i in range(sphere_count()):
        sphere = Sphere(center=load_center(i), radius=load_radius(i))
        rec = sphere_hit(sphere, ray, t_min, closest)
        if rec.hit == 1:
            closest = rec.t
            kind, index = load_material(i)
            result = HitRecord(
                hit=1,
                t=rec.t,
                position=rec.position,
                normal=rec.normal,
                front_face=rec.front_face,
                material_kind=kind,
                material_index=index,
            )

    return result

