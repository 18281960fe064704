"""Sphere primitive with ray-sphere intersection.

This module provides a Sphere dataclass, the HitRecord produced by
intersection queries, and the intersection routine itself.

The intersection solves a*t^2 + 2*b*t + c = 0 with the half-b formulation,
tries the near root first and falls back to the far root, so a ray starting
inside a sphere still hits its back face.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.geometry.sphere import Sphere, HitRecord, sphere_hit
    >>> sphere = Sphere(center=ti.math.vec3(0, 0, -1), radius=0.5)
    >>> # Use sphere_hit within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray, ray_at

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class Sphere:
    """A sphere defined by center point and radius.

    Attributes:
        center: The center point of the sphere (vec3).
        radius: The radius of the sphere (positive float).
    """

    center: vec3
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Record of a ray-surface intersection.

    Attributes:
        hit: Whether the ray intersected a surface (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
        position: The 3D point where the ray intersected the surface.
        normal: The unit surface normal, always oriented against the
            incoming ray.
        front_face: 1 if the ray hit the outward-facing side, 0 if it hit the
            surface from inside.
        material_kind: MaterialKind tag of the hit surface's material.
        material_index: Index into the parameter set of that kind.

    All fields other than hit are only valid if hit == 1.
    """

    hit: ti.i32
    t: ti.f32
    position: vec3
    normal: vec3
    front_face: ti.i32
    material_kind: ti.i32
    material_index: ti.i32


@ti.func
def make_miss_record() -> HitRecord:
    """Create a HitRecord indicating no intersection."""
    return HitRecord(
        hit=0,
        t=0.0,
        position=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        material_kind=0,
        material_index=0,
    )


@ti.func
def sphere_hit(sphere: Sphere, ray: Ray, t_min: ti.f32, t_sup: ti.f32) -> HitRecord:
    """Test for ray-sphere intersection within [t_min, t_sup).

    With oc = origin - center the intersection satisfies
        a*t^2 + 2*b*t + c = 0
    where
        a = dot(direction, direction)
        b = dot(oc, direction)
        c = dot(oc, oc) - radius^2

    The near root (-b - sqrt(d)) / a is tried first, then the far root
    (-b + sqrt(d)) / a, with d = b^2 - a*c.

    Args:
        sphere: The sphere to test intersection against.
        ray: The ray (direction need not be normalized).
        t_min: Smallest accepted t (inclusive).
        t_sup: Upper bound on t (exclusive).

    Returns:
        A HitRecord whose material fields are left at zero; check the hit
        field to determine if intersection occurred.
    """
    oc = ray.origin - sphere.center
    a = tm.dot(ray.direction, ray.direction)
    b = tm.dot(oc, ray.direction)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius
    d = b * b - a * c

    # Initialize result fields (Taichi requires outer-scope declaration)
    did_hit = 0
    hit_t = 0.0
    hit_position = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0

    if d >= 0.0:
        sqrt_d = ti.sqrt(d)

        t = (-b - sqrt_d) / a
        valid = t_min <= t < t_sup
        if not valid:
            t = (-b + sqrt_d) / a
            valid = t_min <= t < t_sup

        if valid:
            did_hit = 1
            hit_t = t
            hit_position = ray_at(ray, t)
            outward_normal = (hit_position - sphere.center) / sphere.radius

            # Front face: ray direction and outward normal point in opposite directions
            if tm.dot(outward_normal, ray.direction) > 0.0:
                is_front_face = 0
                hit_normal = -outward_normal
            else:
                is_front_face = 1
                hit_normal = outward_normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        position=hit_position,
        normal=hit_normal,
        front_face=is_front_face,
        material_kind=0,
        material_index=0,
    )

