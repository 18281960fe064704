"""Path tracing integrator and per-frame render kernels.

This module implements the depth-bounded light-transport loop and the two
kernels that render one frame into the persistent accumulation buffer.

The integrator is iterative. Each bounce intersects the current ray with the
scene over [T_MIN, T_FAR):
    - miss: the path returns attenuation * sky_color(direction)
    - hit, absorbed: the path returns black
    - hit, scattered: attenuation is multiplied by the material's
      attenuation and the loop continues with the scattered ray
A path still bouncing after max_depth intersections returns black.

A frame runs in two passes with a host-side fault check in between:
    1. _trace_frame: every pixel loads its random state, traces
       sample_count jittered paths and writes the averaged estimate and the
       evolved state to staging fields.
    2. _commit_frame: staged states are written back to the random state
       store and estimates are blended into the accumulation buffer with
       buffer = mix(buffer, estimate, weight).
If the trace pass recorded a fault, the staged results are dropped and
FrameFaultError is raised; neither the store nor the buffer changes.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.core.integrator import render_frame, setup_render_target
    >>> from pathtracer.core.params import FrameParameters
    >>> from pathtracer.camera.pinhole import default_camera, setup_camera
    >>> from pathtracer.scene.presets import create_default_scene
    >>>
    >>> create_default_scene().upload()
    >>> setup_camera(default_camera(), aspect_ratio=2.0)
    >>> setup_render_target(400, 200)
    >>> render_frame(FrameParameters(image_shape=(400, 200), sample_count=4), weight=1.0)
"""

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.camera.pinhole import get_ray_jittered
from pathtracer.core.faults import check_faults, clear_faults
from pathtracer.core.params import MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH, FrameParameters
from pathtracer.core.ray import Ray, normalize, sky_color
from pathtracer.core.rng import (
    load_rng_state,
    perturb_state,
    store_rng_state,
    uvec4,
)
from pathtracer.materials.dispatch import scatter
from pathtracer.scene.intersection import world_hit

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Closest accepted hit distance; excludes self-intersection at the origin
T_MIN = 0.001

# Far bound of the hit search interval
T_FAR = 1.0e4


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def trace(ray: Ray, state: uvec4, max_depth: ti.i32):
    """Estimate the radiance carried back along a ray.

    Args:
        ray: The primary ray (direction need not be normalized).
        state: The pixel's random state.
        max_depth: Maximum number of scene intersections along the path.

    Returns:
        A tuple (color, new_state).
    """
    rng = state
    color = vec3(0.0, 0.0, 0.0)
    attenuation = vec3(1.0, 1.0, 1.0)
    current = Ray(origin=ray.origin, direction=normalize(ray.direction))

    # Active flag for path continuation (Taichi doesn't support break in ti.func loops)
    active = 1

    for _ in range(max_depth):
        if active == 1:
            hit = world_hit(current, T_MIN, T_FAR)

            if hit.hit == 0:
                color = attenuation * sky_color(current.direction)
                active = 0
            else:
                did_scatter, albedo, origin, direction, rng = scatter(
                    hit.material_kind, hit.material_index, rng, current, hit
                )
                if did_scatter == 0:
                    active = 0
                else:
                    attenuation *= albedo
                    current = Ray(origin=origin, direction=normalize(direction))

    return color, rng


# =============================================================================
# Render Target
# =============================================================================

# Image dimensions (actual active size)
_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Persistent accumulation buffer (preallocated to max size)
_accum_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Staging written by the trace pass, consumed by the commit pass
_frame_estimate = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))
_pending_rng = ti.Vector.field(4, dtype=ti.u32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Flag to track if render target is initialized
_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Set the active image dimensions and clear the accumulation buffer.

    The buffers are preallocated to MAX_IMAGE_WIDTH x MAX_IMAGE_HEIGHT
    to avoid Taichi kernel recompilation issues.

    Args:
        width: Image width in pixels (max MAX_IMAGE_WIDTH).
        height: Image height in pixels (max MAX_IMAGE_HEIGHT).

    Raises:
        ValueError: If dimensions are not positive or exceed the maximum.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1

    clear_render_target()


def clear_render_target() -> None:
    """Clear the accumulation buffer to zero."""
    _accum_buffer.fill(0.0)


def release_render_target() -> None:
    """Mark the render target as not set up."""
    _render_target_initialized[None] = 0


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions.

    Returns:
        Tuple of (width, height).
    """
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    """Check if render target is initialized and raise if not."""
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


def get_accumulation_buffer() -> "ti.MatrixField":
    """Get the accumulation buffer.

    Note: This returns the full preallocated buffer. Use get_image_dimensions()
    to determine the active region.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    return _accum_buffer


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _trace_frame(
    width: ti.i32,
    height: ti.i32,
    sample_count: ti.i32,
    max_depth: ti.i32,
    apply_reseed: ti.i32,
    reseed0: ti.u32,
    reseed1: ti.u32,
    reseed2: ti.u32,
    reseed3: ti.u32,
):
    """Trace sample_count paths per pixel into the staging fields."""
    for i, j in ti.ndrange(width, height):
        rng = load_rng_state(i, j)
        if apply_reseed == 1:
            rng = perturb_state(rng, uvec4(reseed0, reseed1, reseed2, reseed3))

        total = vec3(0.0, 0.0, 0.0)
        for _ in range(sample_count):
            ray, rng = get_ray_jittered(i, j, width, height, rng)
            color, rng = trace(ray, rng, max_depth)
            total += color

        _frame_estimate[i, j] = total / ti.cast(sample_count, ti.f32)
        _pending_rng[i, j] = rng


@ti.kernel
def _commit_frame(width: ti.i32, height: ti.i32, weight: ti.f32):
    """Persist staged random states and blend staged estimates."""
    for i, j in ti.ndrange(width, height):
        store_rng_state(i, j, _pending_rng[i, j])
        _accum_buffer[i, j] = tm.mix(_accum_buffer[i, j], _frame_estimate[i, j], weight)


# =============================================================================
# Public Rendering API
# =============================================================================


def render_frame(params: FrameParameters, weight: float) -> None:
    """Render one frame and blend it into the accumulation buffer.

    Args:
        params: The frame parameters. image_shape must match the render
            target.
        weight: Blend weight in (0, 1] for this frame.

    Raises:
        RuntimeError: If render target has not been set up.
        ValueError: If params are invalid, the image shape does not match
            the render target, or weight is outside (0, 1].
        FrameFaultError: If a kernel recorded a fault. Nothing is committed.
    """
    _check_render_target_initialized()
    params.validate()

    width, height = get_image_dimensions()
    if (params.width, params.height) != (width, height):
        raise ValueError(
            f"Frame shape {params.width}x{params.height} does not match "
            f"render target {width}x{height}"
        )
    if not 0.0 < weight <= 1.0:
        raise ValueError(f"Blend weight must be in (0, 1], got {weight}")

    reseed = params.rng_reseed
    apply_reseed = 0 if reseed is None else 1
    if reseed is None:
        reseed = (0, 0, 0, 0)

    clear_faults()
    _trace_frame(
        width,
        height,
        params.sample_count,
        params.max_depth,
        apply_reseed,
        reseed[0],
        reseed[1],
        reseed[2],
        reseed[3],
    )
    check_faults()

    _commit_frame(width, height, weight)
    ti.sync()


# =============================================================================
# Host Probes
# =============================================================================

_probe_origin = ti.Vector.field(3, dtype=ti.f32, shape=())
_probe_direction = ti.Vector.field(3, dtype=ti.f32, shape=())
_probe_state = ti.Vector.field(4, dtype=ti.u32, shape=())
_probe_color = ti.Vector.field(3, dtype=ti.f32, shape=())


@ti.kernel
def _trace_probe(max_depth: ti.i32):
    ray = Ray(origin=_probe_origin[None], direction=_probe_direction[None])
    color, rng = trace(ray, _probe_state[None], max_depth)
    _probe_color[None] = color
    _probe_state[None] = rng


def trace_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    max_depth: int,
    rng_words: tuple[int, int, int, int],
) -> tuple[tuple[float, float, float], tuple[int, int, int, int]]:
    """Trace a single ray on the device and return its radiance.

    Python-callable wrapper around trace() for testing and debugging.

    Args:
        origin: Ray origin.
        direction: Ray direction (non-zero).
        max_depth: Maximum number of scene intersections.
        rng_words: Random state to trace with; not all zero.

    Returns:
        Tuple of (color, evolved random state).

    Raises:
        ValueError: If max_depth is negative or rng_words is all zero.
        FrameFaultError: If the trace recorded a fault.
    """
    if max_depth < 0:
        raise ValueError(f"max_depth must be >= 0, got {max_depth}")
    if len(rng_words) != 4 or not any(rng_words):
        raise ValueError("xoshiro128+ state must be 4 words, not all zero")

    _probe_origin[None] = list(origin)
    _probe_direction[None] = list(direction)
    _probe_state[None] = [int(w) for w in rng_words]

    clear_faults()
    _trace_probe(max_depth)
    check_faults()

    c = _probe_color[None]
    s = _probe_state[None]
    return (float(c[0]), float(c[1]), float(c[2])), (int(s[0]), int(s[1]), int(s[2]), int(s[3]))


@ti.kernel
def _render_single_pixel(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    sample_count: ti.i32,
    max_depth: ti.i32,
):
    rng = load_rng_state(pixel_i, pixel_j)
    total = vec3(0.0, 0.0, 0.0)
    for _ in range(sample_count):
        ray, rng = get_ray_jittered(pixel_i, pixel_j, width, height, rng)
        color, rng = trace(ray, rng, max_depth)
        total += color
    _probe_color[None] = total / ti.cast(sample_count, ti.f32)


def render_pixel(
    pixel_i: int,
    pixel_j: int,
    sample_count: int = 1,
    max_depth: int = 50,
) -> tuple[float, float, float]:
    """Estimate one pixel's color without touching any persistent state.

    Reads the pixel's random state but does not write it back, so repeated
    calls return the same value.

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).
        sample_count: Number of samples to average.
        max_depth: Maximum number of scene intersections per path.

    Returns:
        Tuple of (R, G, B) color values.

    Raises:
        RuntimeError: If render target has not been set up.
        ValueError: If the pixel lies outside the render target.
        FrameFaultError: If the trace recorded a fault.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    if not (0 <= pixel_i < width and 0 <= pixel_j < height):
        raise ValueError(f"Pixel ({pixel_i}, {pixel_j}) outside {width}x{height} image")
    if sample_count < 1:
        raise ValueError(f"sample_count must be >= 1, got {sample_count}")

    clear_faults()
    _render_single_pixel(pixel_i, pixel_j, width, height, sample_count, max_depth)
    check_faults()

    color = _probe_color[None]
    return (float(color[0]), float(color[1]), float(color[2]))


def get_image_numpy() -> npt.NDArray[np.float32]:
    """Get the accumulation buffer as a NumPy image.

    The array shape is (height, width, 3) with dtype float32, row 0 at the
    top. Values are linear radiance clamped to [0, 1].

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    image = _accum_buffer.to_numpy()[:width, :height, :]

    # Transpose from (width, height, 3) to (height, width, 3) for standard image format
    image = np.transpose(image, (1, 0, 2))

    # Flip vertically (pixel row 0 is the bottom, images use top-left)
    image = np.flipud(image)

    return np.clip(image, 0.0, 1.0).astype(np.float32)


def get_raw_buffer_numpy() -> npt.NDArray[np.float32]:
    """Copy the active region of the accumulation buffer, unclamped.

    Returns:
        Array of shape (width, height, 3) indexed by pixel (i, j).
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    return _accum_buffer.to_numpy()[:width, :height, :].astype(np.float32)
