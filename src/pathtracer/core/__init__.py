"""Core rendering module.

This module contains the fundamental building blocks for path tracing:

Components:
    ray: Ray data structure, vector helpers and the sky gradient
    rng: Per-pixel xoshiro128+ generator, host mirror and state store
    params: Per-frame parameter block
    faults: Device-side fault recording and host-side FrameFaultError
    integrator: Depth-bounded light transport and per-frame kernels
    progressive: Blend policies and the progressive render session

All compute-intensive operations use Taichi kernels for GPU acceleration.
"""

from .faults import Fault, FrameFaultError, check_faults, clear_faults, record_fault
from .params import DEFAULT_MAX_DEPTH, MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH, FrameParameters
from .ray import (
    Ray,
    length_squared,
    make_ray,
    near_zero,
    normalize,
    ray_at,
    reflect,
    sky_color,
    sky_color_host,
    vec3,
)
from .rng import (
    Xoshiro128Plus,
    get_rng_state,
    next_f32,
    next_u32,
    next_unit_ball,
    next_unit_sphere,
    seed_rng_store,
    set_rng_state,
    uvec4,
)

# Note: integrator and progressive are NOT imported here to avoid circular imports.
# Import directly from pathtracer.core.integrator or pathtracer.core.progressive when needed.
#
# For progressive rendering, use:
#   from pathtracer.core.progressive import ProgressiveRenderer

__all__ = [
    # Ray
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length_squared",
    "normalize",
    "reflect",
    "near_zero",
    "sky_color",
    "sky_color_host",
    # RNG
    "uvec4",
    "next_u32",
    "next_f32",
    "next_unit_ball",
    "next_unit_sphere",
    "Xoshiro128Plus",
    "seed_rng_store",
    "set_rng_state",
    "get_rng_state",
    # Frame parameters
    "FrameParameters",
    "MAX_IMAGE_WIDTH",
    "MAX_IMAGE_HEIGHT",
    "DEFAULT_MAX_DEPTH",
    # Faults
    "Fault",
    "FrameFaultError",
    "record_fault",
    "clear_faults",
    "check_faults",
]
