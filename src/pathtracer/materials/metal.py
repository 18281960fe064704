"""Metal (specular reflective) material implementation.

This module implements the metal BSDF, which models specular reflection with
an optional fuzz. Perfect metals (fuzz=0) produce mirror-like reflections,
while fuzzier metals scatter reflected rays within a cone.

The reflection formula is:
    R = I - 2(I . N)N

where I is the incident direction and N is the surface normal. The fuzzed
direction is R + fuzz * p with p drawn uniformly inside the unit ball. A
fuzzed direction pointing into the surface (dot with N <= 0) is absorbed.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.materials.metal import scatter_metal
    >>> # Use within a Taichi kernel:
    >>> # did_scatter, direction, attenuation, state = scatter_metal(
    >>> #     albedo, fuzz, incident_dir, normal, state
    >>> # )
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import reflect
from pathtracer.core.rng import next_unit_ball, uvec4

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def scatter_metal(
    albedo: vec3,
    fuzz: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    state: uvec4,
):
    """Compute the scattered ray direction for a metal surface.

    The unit-ball sample is always drawn, even for fuzz = 0, so the number
    of random draws per bounce does not depend on the material parameters.

    Args:
        albedo: The reflective color (RGB, each component in [0, 1]).
        fuzz: Perturbation radius in [0, 1].
        incident_direction: The incoming ray direction (need not be normalized).
        normal: The surface normal, facing the incoming ray.
        state: The pixel's random state.

    Returns:
        A tuple of (did_scatter, direction, attenuation, new_state) where:
        - did_scatter: 1 if the ray scattered above the surface, 0 if absorbed.
        - direction: The fuzzed reflection (zero vector when absorbed).
        - attenuation: The color attenuation (albedo, or black when absorbed).
        - new_state: The evolved random state.
    """
    reflected = reflect(incident_direction, normal)
    offset, rng = next_unit_ball(state)
    direction = reflected + fuzz * offset

    did_scatter = 1
    attenuation = albedo
    if tm.dot(direction, normal) <= 0.0:
        did_scatter = 0
        direction = vec3(0.0, 0.0, 0.0)
        attenuation = vec3(0.0, 0.0, 0.0)

    return did_scatter, direction, attenuation, rng
