"""Geometry module for shape primitives.

Components:
    sphere: Sphere primitive, hit records and ray-sphere intersection

Intersection routines are Taichi functions (@ti.func) so that every pixel's
paths can be intersected in parallel. Spheres are the only primitive; scenes
are scanned linearly without an acceleration structure.
"""

from .sphere import HitRecord, Sphere, make_miss_record, sphere_hit

__all__ = [
    "Sphere",
    "HitRecord",
    "sphere_hit",
    "make_miss_record",
]
