"""Scene module: scene repository, world intersection and scene building.

Components:
    repository: Packed, range-addressed sphere and material parameters
    intersection: Nearest-hit search over every sphere in the repository
    manager: Host-side scene builder with JSON serialization
    presets: Ready-made sphere scenes

Scene data is organized for efficient GPU access:
    - Structure-of-Arrays layout for geometric data
    - Lambertian and metal parameters packed into one array
    - Range descriptors locating each logical set
"""

from .intersection import world_hit
from .manager import SceneManager, SphereInfo
from .presets import create_default_scene, create_material_showcase_scene
from .repository import (
    MAX_MATERIAL_PARAMS,
    MAX_SPHERES,
    LambertianSet,
    MaterialKind,
    MaterialRef,
    MetalSet,
    RangeDescriptor,
    SceneData,
    SceneValidationError,
    SphereSet,
    clear_scene,
    get_sphere_count,
    upload_scene,
)

__all__ = [
    # Repository module
    "MaterialKind",
    "MaterialRef",
    "RangeDescriptor",
    "SphereSet",
    "LambertianSet",
    "MetalSet",
    "SceneData",
    "SceneValidationError",
    "upload_scene",
    "clear_scene",
    "get_sphere_count",
    "MAX_SPHERES",
    "MAX_MATERIAL_PARAMS",
    # Intersection module
    "world_hit",
    # Manager module
    "SceneManager",
    "SphereInfo",
    # Presets
    "create_default_scene",
    "create_material_showcase_scene",
]
