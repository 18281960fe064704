"""Pinhole camera and primary ray generation.

A PinholeCamera is a host-side description (eye position, target, up vector,
vertical field of view and an optional fixed aspect ratio). setup_camera()
turns it into a CameraFrame, the image plane at unit distance in front of the
eye, and stores that frame in a single device struct read by the kernels:

    point(u, v) = lower_left + u * horizontal + v * vertical
    ray(u, v)   = Ray(origin, normalize(point(u, v) - origin))

with (u, v) in [0, 1]^2, u growing to the right and v growing upwards. The
frame basis is right-handed: w points back from the target to the eye,
u = normalize(vup x w) and v = w x u.

The default camera sits at the origin looking down -z with a 90 degree
vertical field of view, so its image plane is 2 units high and
2 * aspect_ratio units wide.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.camera.pinhole import PinholeCamera, setup_camera, get_ray
    >>>
    >>> setup_camera(PinholeCamera(lookfrom=(0.0, 1.0, 2.0), vfov=60.0), aspect_ratio=2.0)
    >>>
    >>> @ti.kernel
    ... def render():
    ...     ray = get_ray(0.5, 0.5)
"""

import math
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray, make_ray
from pathtracer.core.rng import next_f32, uvec4

vec3 = tm.vec3

Vector3 = tuple[float, float, float]


@dataclass
class PinholeCamera:
    """View parameters of a pinhole camera.

    Attributes:
        lookfrom: Eye position.
        lookat: Point at the centre of the image.
        vup: World up direction; must not be parallel to the view direction.
        vfov: Vertical field of view in degrees, in (0, 180).
        aspect_ratio: Width divided by height. None takes the image's.
    """

    lookfrom: Vector3 = (0.0, 0.0, 0.0)
    lookat: Vector3 = (0.0, 0.0, -1.0)
    vup: Vector3 = (0.0, 1.0, 0.0)
    vfov: float = 90.0
    aspect_ratio: float | None = None

    def validate(self) -> None:
        """Check the view parameters.

        Raises:
            ValueError: If vfov or aspect_ratio is out of range, lookfrom
                equals lookat, or vup is parallel to the view direction.
        """
        if not 0.0 < self.vfov < 180.0:
            raise ValueError(f"vfov must be in (0, 180) degrees, got {self.vfov}")
        if self.aspect_ratio is not None and not self.aspect_ratio > 0.0:
            raise ValueError(f"aspect_ratio must be positive, got {self.aspect_ratio}")
        back = np.subtract(self.lookfrom, self.lookat)
        if not np.any(back):
            raise ValueError("lookfrom and lookat must differ")
        if not np.any(np.cross(self.vup, back)):
            raise ValueError("vup must not be parallel to the view direction")


def default_camera() -> PinholeCamera:
    """Camera at the origin looking down -z with a 90 degree vertical FOV."""
    return PinholeCamera()


def compute_camera_frame(
    camera: PinholeCamera, aspect_ratio: float | None = None
) -> dict[str, npt.NDArray[np.float64]]:
    """Compute the image plane of a camera on the host.

    Args:
        camera: The view parameters.
        aspect_ratio: Image width / height, used when camera.aspect_ratio is
            None. Defaults to 1.0 if neither is given.

    Returns:
        Dictionary with origin, u, v, w, horizontal, vertical and
        lower_left, each a float64 array of shape (3,).

    Raises:
        ValueError: If the camera is invalid.
    """
    camera.validate()
    if camera.aspect_ratio is not None:
        aspect_ratio = camera.aspect_ratio
    elif aspect_ratio is None:
        aspect_ratio = 1.0

    plane_height = 2.0 * math.tan(math.radians(camera.vfov) / 2.0)
    plane_width = aspect_ratio * plane_height

    origin = np.asarray(camera.lookfrom, dtype=np.float64)
    w = origin - np.asarray(camera.lookat, dtype=np.float64)
    w /= np.linalg.norm(w)
    u = np.cross(np.asarray(camera.vup, dtype=np.float64), w)
    u /= np.linalg.norm(u)
    v = np.cross(w, u)

    horizontal = plane_width * u
    vertical = plane_height * v
    return {
        "origin": origin,
        "u": u,
        "v": v,
        "w": w,
        "horizontal": horizontal,
        "vertical": vertical,
        "lower_left": origin - w - 0.5 * horizontal - 0.5 * vertical,
    }


@ti.dataclass
class CameraFrame:
    """Device copy of the camera's image plane."""

    origin: vec3
    u: vec3
    v: vec3
    w: vec3
    horizontal: vec3
    vertical: vec3
    lower_left: vec3


_FRAME_MEMBERS = ("origin", "u", "v", "w", "horizontal", "vertical", "lower_left")

_camera_frame = CameraFrame.field(shape=())


def setup_camera(camera: PinholeCamera, aspect_ratio: float | None = None) -> None:
    """Make `camera` the camera used by get_ray() and get_ray_jittered().

    Args:
        camera: The view parameters.
        aspect_ratio: Image width / height, used when camera.aspect_ratio is
            None. Defaults to 1.0 if neither is given.

    Raises:
        ValueError: If the camera is invalid. The current camera is kept.
    """
    frame = compute_camera_frame(camera, aspect_ratio)
    for name in _FRAME_MEMBERS:
        getattr(_camera_frame, name)[None] = frame[name].tolist()


@ti.func
def get_ray(u: ti.f32, v: ti.f32) -> Ray:
    """Ray from the eye through image plane coordinates (u, v).

    Args:
        u: 0 at the left edge, 1 at the right edge.
        v: 0 at the bottom edge, 1 at the top edge.

    Returns:
        A Ray with a unit direction.
    """
    frame = _camera_frame[None]
    target = frame.lower_left + u * frame.horizontal + v * frame.vertical
    return make_ray(frame.origin, tm.normalize(target - frame.origin))


@ti.func
def get_ray_jittered(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    state: uvec4,
):
    """Primary ray through a random point of pixel (pixel_i, pixel_j).

    Draws two floats (du, dv) in [0, 1) and aims through
    ((pixel_i + du) / width, (pixel_j + dv) / height). Pixel (0, 0) is the
    bottom-left corner.

    Returns:
        A tuple (ray, new_state).
    """
    du, rng = next_f32(state)
    dv, rng = next_f32(rng)
    u = (ti.cast(pixel_i, ti.f32) + du) / ti.cast(width, ti.f32)
    v = (ti.cast(pixel_j, ti.f32) + dv) / ti.cast(height, ti.f32)
    return get_ray(u, v), rng


def get_camera_info() -> dict[str, tuple[float, float, float]]:
    """Read the current device camera frame back, for debugging and tests."""
    info = {}
    for name in _FRAME_MEMBERS:
        value = getattr(_camera_frame, name)[None]
        info[name] = (float(value[0]), float(value[1]), float(value[2]))
    return info
