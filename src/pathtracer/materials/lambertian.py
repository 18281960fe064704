"""Lambertian (ideal diffuse) material implementation.

A Lambertian surface scatters every incoming ray, independent of the
incoming direction, towards

    d = N + p

where N is the unit surface normal and p a point drawn uniformly inside the
unit ball. The resulting distribution favours directions near the normal
(cosine-like lobe) and never points below the surface.

If p almost cancels N, d is numerically zero and cannot be normalized; the
normal itself is used instead.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.materials.lambertian import scatter_lambertian
    >>> # Use within a Taichi kernel:
    >>> # direction, attenuation, state = scatter_lambertian(albedo, normal, state)
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import near_zero
from pathtracer.core.rng import next_unit_ball, uvec4

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def scatter_lambertian(albedo: vec3, normal: vec3, state: uvec4):
    """Sample a scattered direction for a Lambertian surface.

    Args:
        albedo: The diffuse reflectance color (RGB).
        normal: The surface normal at the hit point, facing the incoming ray.
        state: The pixel's random state.

    Returns:
        A tuple of (direction, attenuation, new_state) where:
        - direction: The scattered direction (not normalized).
        - attenuation: The color attenuation (equals albedo).
        - new_state: The evolved random state.
    """
    offset, rng = next_unit_ball(state)
    direction = normal + offset

    # Degenerate sample: fall back to the normal
    if near_zero(direction):
        direction = normal

    return direction, albedo, rng
