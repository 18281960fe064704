"""Material dispatch by (kind, index) tag.

scatter() is the single entry point the integrator uses to turn a surface hit
into either a scattered ray or an absorption. It loads the parameters of the
hit sphere's material from the scene repository and calls the matching
scattering function.

    MaterialKind.NONE        absorbs, no fault
    MaterialKind.LAMBERTIAN  scatter_lambertian, always scatters
    MaterialKind.METAL       scatter_metal, absorbs below the surface
    anything else            records Fault.UNKNOWN_MATERIAL, absorbs

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.materials.dispatch import scatter
    >>> # Use within a Taichi kernel:
    >>> # did_scatter, attenuation, origin, direction, state = scatter(
    >>> #     hit.material_kind, hit.material_index, state, ray, hit
    >>> # )
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.faults import Fault, record_fault
from pathtracer.core.ray import Ray
from pathtracer.core.rng import uvec4
from pathtracer.geometry.sphere import HitRecord
from pathtracer.materials.lambertian import scatter_lambertian
from pathtracer.materials.metal import scatter_metal
from pathtracer.scene.repository import MaterialKind, load_albedo, load_fuzz

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def scatter(kind: ti.i32, index: ti.i32, state: uvec4, ray: Ray, hit: HitRecord):
    """Scatter a ray at a surface hit according to its material.

    Args:
        kind: MaterialKind of the hit surface.
        index: Index into the parameter set of that kind.
        state: The pixel's random state.
        ray: The incoming ray.
        hit: The hit record (hit == 1).

    Returns:
        A tuple of (did_scatter, attenuation, origin, direction, new_state).
        The outgoing ray starts at hit.position. When did_scatter is 0 the
        attenuation and direction are zero.
    """
    did_scatter = 0
    attenuation = vec3(0.0, 0.0, 0.0)
    direction = vec3(0.0, 0.0, 0.0)
    rng = state

    if kind == int(MaterialKind.LAMBERTIAN):
        albedo = load_albedo(kind, index)
        direction, attenuation, rng = scatter_lambertian(albedo, hit.normal, rng)
        did_scatter = 1
    elif kind == int(MaterialKind.METAL):
        albedo = load_albedo(kind, index)
        fuzz = load_fuzz(index)
        did_scatter, direction, attenuation, rng = scatter_metal(
            albedo, fuzz, ray.direction, hit.normal, rng
        )
    elif kind != int(MaterialKind.NONE):
        record_fault(int(Fault.UNKNOWN_MATERIAL))

    return did_scatter, attenuation, hit.position, direction, rng
