"""Camera module for primary ray generation.

Components:
    pinhole: Look-at pinhole camera with jittered sub-pixel sampling
"""

from .pinhole import (
    CameraFrame,
    PinholeCamera,
    compute_camera_frame,
    default_camera,
    get_camera_info,
    get_ray,
    get_ray_jittered,
    setup_camera,
)

__all__ = [
    "PinholeCamera",
    "CameraFrame",
    "default_camera",
    "compute_camera_frame",
    "setup_camera",
    "get_ray",
    "get_ray_jittered",
    "get_camera_info",
]
