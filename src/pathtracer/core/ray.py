"""Rays, small vector helpers and the sky gradient.

Everything here is a Taichi function used inside kernels, except
sky_color_host(), which evaluates the same gradient on the host.

Rays escaping the scene see a vertical gradient

    sky(d) = mix(SKY_WHITE, SKY_BLUE, 0.5 * normalize(d).y + 0.5)

so the straight-down direction is white, the horizon is halfway between and
the zenith is (0.5, 0.7, 1.0).

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> @ti.kernel
    ... def probe() -> ti.f32:
    ...     ray = make_ray(ti.math.vec3(0.0), ti.math.vec3(0.0, 0.0, -2.0))
    ...     return ray_at(ray, 0.5).z  # -1.0
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

SKY_WHITE = (1.0, 1.0, 1.0)
SKY_BLUE = (0.5, 0.7, 1.0)

# Componentwise threshold for a degenerate scatter direction
NEAR_ZERO_EPS = 1e-8


@ti.dataclass
class Ray:
    """Half-line origin + t * direction, t >= 0.

    Attributes:
        origin: Start point.
        direction: Non-zero direction; unit length is not required.
    """

    origin: vec3
    direction: vec3


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    return Ray(origin=origin, direction=direction)


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Point at parameter t along the ray."""
    return ray.origin + t * ray.direction


@ti.func
def length_squared(v: vec3) -> ti.f32:
    return tm.dot(v, v)


@ti.func
def normalize(v: vec3) -> vec3:
    return tm.normalize(v)


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Mirror `incident` about the plane with unit normal `normal`.

    Returns incident - 2 * dot(incident, normal) * normal. The length of
    `incident` is preserved.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """1 if every component of v is within NEAR_ZERO_EPS of zero, else 0."""
    return (
        ti.abs(v.x) < NEAR_ZERO_EPS and ti.abs(v.y) < NEAR_ZERO_EPS and ti.abs(v.z) < NEAR_ZERO_EPS
    )


@ti.func
def sky_color(direction: vec3) -> vec3:
    """Radiance seen by a ray that leaves the scene along `direction`.

    Args:
        direction: Any non-zero direction.
    """
    t = 0.5 * tm.normalize(direction).y + 0.5
    return tm.mix(vec3(1.0, 1.0, 1.0), vec3(0.5, 0.7, 1.0), t)


def sky_color_host(direction: tuple[float, float, float]) -> tuple[float, float, float]:
    """Host-side sky_color() for expected values in tests and tools.

    Raises:
        ZeroDivisionError: If direction is the zero vector.
    """
    x, y, z = direction
    t = 0.5 * y / (x * x + y * y + z * z) ** 0.5 + 0.5
    return tuple(lo + (hi - lo) * t for lo, hi in zip(SKY_WHITE, SKY_BLUE))
