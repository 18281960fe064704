"""Host-side scene builder with JSON serialization.

SceneManager collects spheres and material parameters on the host, checks
each entry as it is added and produces a SceneData that the scene repository
uploads between frames. Materials are addressed by MaterialRef (kind, index),
where index counts entries of that kind only.

Example:
    >>> from pathtracer.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> ground = scene.add_lambertian_material(albedo=(0.8, 0.8, 0.0))
    >>> scene.add_sphere(center=(0, -100.5, -1), radius=100.0, material=ground)
    >>> scene.add_metal_sphere((1, 0, -1), 0.5, albedo=(0.8, 0.6, 0.2), fuzz=0.3)
    >>> scene.upload()
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pathtracer.scene.repository import (
    MAX_MATERIAL_PARAMS,
    MAX_SPHERES,
    LambertianSet,
    MaterialKind,
    MaterialRef,
    MetalSet,
    SceneData,
    SphereSet,
    upload_scene,
)

logger = logging.getLogger(__name__)

Color = tuple[float, float, float]
Point = tuple[float, float, float]


@dataclass
class SphereInfo:
    """Information about a sphere in the scene.

    Attributes:
        sphere_index: Position of the sphere in the sphere set.
        center: The center of the sphere.
        radius: The radius of the sphere.
        material: The material assigned to the sphere.
    """

    sphere_index: int
    center: Point
    radius: float
    material: MaterialRef


def _validate_albedo(albedo: Color) -> Color:
    if len(albedo) != 3:
        raise ValueError(f"Albedo needs 3 components, got {len(albedo)}")
    for i, component in enumerate(albedo):
        if component < 0.0 or component > 1.0:
            raise ValueError(
                f"Albedo component {i} = {component} is outside [0, 1]. "
                "This would violate energy conservation."
            )
    return (float(albedo[0]), float(albedo[1]), float(albedo[2]))


def _as_point(values: Any, name: str) -> Point:
    if len(values) != 3:
        raise ValueError(f"{name} needs 3 components, got {len(values)}")
    return (float(values[0]), float(values[1]), float(values[2]))


class SceneManager:
    """Builder for sphere scenes with Lambertian and metal materials.

    Attributes:
        lambertians: Albedo of every Lambertian material, by index.
        metals: (albedo, fuzz) of every metal material, by index.
        spheres: SphereInfo for every sphere, in insertion order.

    Example:
        >>> scene = SceneManager()
        >>> red = scene.add_lambertian_material(albedo=(0.8, 0.1, 0.1))
        >>> mirror = scene.add_metal_material(albedo=(0.9, 0.9, 0.9), fuzz=0.0)
        >>> scene.add_sphere((0, 0, -1), 0.5, red)
        >>> scene.add_sphere((1, 0, -1), 0.5, mirror)
        >>> data = scene.build()
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.lambertians: list[Color] = []
        self.metals: list[tuple[Color, float]] = []
        self.spheres: list[SphereInfo] = []

    def clear(self) -> None:
        """Remove all spheres and materials."""
        self.lambertians.clear()
        self.metals.clear()
        self.spheres.clear()

    # =========================================================================
    # Material Management
    # =========================================================================

    def _check_material_capacity(self) -> None:
        if self.get_material_count() >= MAX_MATERIAL_PARAMS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIAL_PARAMS}) exceeded")

    def add_lambertian_material(self, albedo: Color) -> MaterialRef:
        """Add a Lambertian (diffuse) material.

        Args:
            albedo: The diffuse reflectance color as (R, G, B), each in [0, 1].

        Returns:
            Reference to the new material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If any albedo component is outside [0, 1].
        """
        albedo = _validate_albedo(albedo)
        self._check_material_capacity()
        self.lambertians.append(albedo)
        return MaterialRef(MaterialKind.LAMBERTIAN, len(self.lambertians) - 1)

    def add_metal_material(self, albedo: Color, fuzz: float = 0.0) -> MaterialRef:
        """Add a metal (specular reflective) material.

        Args:
            albedo: The reflective color as (R, G, B), each in [0, 1].
            fuzz: Perturbation radius in [0, 1]. 0 is a perfect mirror.

        Returns:
            Reference to the new material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If albedo or fuzz is outside [0, 1].
        """
        albedo = _validate_albedo(albedo)
        if fuzz < 0.0 or fuzz > 1.0:
            raise ValueError(
                f"Fuzz = {fuzz} is outside [0, 1]. "
                "Fuzz must be between 0 (perfect mirror) and 1 (maximum fuzz)."
            )
        self._check_material_capacity()
        self.metals.append((albedo, float(fuzz)))
        return MaterialRef(MaterialKind.METAL, len(self.metals) - 1)

    def get_material_count(self) -> int:
        """Get the total number of materials of all kinds."""
        return len(self.lambertians) + len(self.metals)

    def get_lambertian_count(self) -> int:
        return len(self.lambertians)

    def get_metal_count(self) -> int:
        return len(self.metals)

    def has_material(self, material: MaterialRef) -> bool:
        """Check whether a reference points at an existing material.

        MaterialKind.NONE is always valid and makes a sphere absorb every ray.
        """
        kind, index = material
        if kind == MaterialKind.NONE:
            return True
        if kind == MaterialKind.LAMBERTIAN:
            return 0 <= index < len(self.lambertians)
        if kind == MaterialKind.METAL:
            return 0 <= index < len(self.metals)
        return False

    # =========================================================================
    # Sphere Management
    # =========================================================================

    def add_sphere(self, center: Point, radius: float, material: MaterialRef) -> int:
        """Add a sphere.

        Args:
            center: The center point of the sphere as (x, y, z).
            radius: The radius of the sphere (must be positive).
            material: Reference returned by add_*_material().

        Returns:
            The index of the added sphere.

        Raises:
            RuntimeError: If the maximum number of spheres is exceeded.
            ValueError: If radius is not positive or material is invalid.
        """
        if not radius > 0.0:
            raise ValueError(f"Sphere radius must be positive, got {radius}")
        material = MaterialRef(MaterialKind(int(material[0])), int(material[1]))
        if not self.has_material(material):
            raise ValueError(f"Invalid material: {material.kind.name} {material.index}")
        if len(self.spheres) >= MAX_SPHERES:
            raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")

        sphere_index = len(self.spheres)
        self.spheres.append(
            SphereInfo(
                sphere_index=sphere_index,
                center=_as_point(center, "Center"),
                radius=float(radius),
                material=material,
            )
        )
        return sphere_index

    def add_lambertian_sphere(
        self,
        center: Point,
        radius: float,
        albedo: Color,
    ) -> tuple[int, MaterialRef]:
        """Add a sphere with a new Lambertian material.

        Returns:
            Tuple of (sphere_index, material).
        """
        material = self.add_lambertian_material(albedo)
        return self.add_sphere(center, radius, material), material

    def add_metal_sphere(
        self,
        center: Point,
        radius: float,
        albedo: Color,
        fuzz: float = 0.0,
    ) -> tuple[int, MaterialRef]:
        """Add a sphere with a new metal material.

        Returns:
            Tuple of (sphere_index, material).
        """
        material = self.add_metal_material(albedo, fuzz)
        return self.add_sphere(center, radius, material), material

    def get_sphere_count(self) -> int:
        """Get the number of spheres in the scene."""
        return len(self.spheres)

    # =========================================================================
    # Building and Uploading
    # =========================================================================

    def build(self) -> SceneData:
        """Pack the scene into a validated SceneData.

        Raises:
            SceneValidationError: If the packed scene is inconsistent.
        """
        scene = SceneData(
            spheres=SphereSet.from_records(
                [(s.center, s.radius, s.material) for s in self.spheres]
            ),
            lambertians=LambertianSet.from_albedos(self.lambertians),
            metals=MetalSet.from_params(self.metals),
        )
        scene.validate()
        return scene

    def upload(self) -> SceneData:
        """Build the scene and write it into the scene repository."""
        scene = self.build()
        upload_scene(scene)
        logger.info(
            "Uploaded scene: %d spheres, %d Lambertian, %d metal materials",
            len(self.spheres),
            len(self.lambertians),
            len(self.metals),
        )
        return scene

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary (for JSON serialization).

        Returns:
            A dictionary with 'lambertian', 'metal' and 'spheres' keys.
        """
        return {
            "lambertian": [{"albedo": list(albedo)} for albedo in self.lambertians],
            "metal": [{"albedo": list(albedo), "fuzz": fuzz} for albedo, fuzz in self.metals],
            "spheres": [
                {
                    "center": list(s.center),
                    "radius": s.radius,
                    "material": {"kind": s.material.kind.name.lower(), "index": s.material.index},
                }
                for s in self.spheres
            ],
        }

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene from a dictionary.

        Clears the current scene first. Materials are loaded before spheres
        so that sphere material references resolve.

        Args:
            data: Dictionary in the format produced by to_dict().

        Raises:
            ValueError: If the dictionary contains invalid data.
        """
        self.clear()

        for mat_config in data.get("lambertian", []):
            self.add_lambertian_material(
                _as_point(mat_config.get("albedo", [0.5, 0.5, 0.5]), "Albedo")
            )
        for mat_config in data.get("metal", []):
            self.add_metal_material(
                _as_point(mat_config.get("albedo", [0.8, 0.8, 0.8]), "Albedo"),
                mat_config.get("fuzz", 0.0),
            )

        for sphere_config in data.get("spheres", []):
            mat = sphere_config.get("material", {})
            kind_name = str(mat.get("kind", "none")).upper()
            if kind_name not in MaterialKind.__members__:
                raise ValueError(f"Unknown material kind: {kind_name.lower()}")
            self.add_sphere(
                _as_point(sphere_config.get("center", [0, 0, 0]), "Center"),
                sphere_config.get("radius", 1.0),
                MaterialRef(MaterialKind[kind_name], int(mat.get("index", 0))),
            )

    def save_json(self, path: str | Path) -> None:
        """Write the scene to a JSON file."""
        Path(path).write_text(json.dumps(self.to_dict(), indent=2))
        logger.info("Saved scene to %s", path)

    @classmethod
    def load_json(cls, path: str | Path) -> "SceneManager":
        """Create a SceneManager from a JSON file written by save_json()."""
        scene = cls()
        scene.from_dict(json.loads(Path(path).read_text()))
        logger.info("Loaded scene from %s (%d spheres)", path, scene.get_sphere_count())
        return scene

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_spheres() -> int:
        """Get the maximum number of spheres supported."""
        return MAX_SPHERES

    @staticmethod
    def get_max_materials() -> int:
        """Get the maximum number of materials supported."""
        return MAX_MATERIAL_PARAMS
