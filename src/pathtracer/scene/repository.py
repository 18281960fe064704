"""Scene repository: packed, range-addressed sphere and material parameters.

Scene data is held in flat Taichi fields. Each logical set (spheres,
Lambertian materials, metal materials) is located by a range descriptor
(base_index, length) rather than by its own field, so the Lambertian and
metal parameter records share one packed array and are looked up by
(kind, index):

    material_params: [ lambertian 0 .. nL-1 | metal 0 .. nM-1 | unused ... ]
                       ^ LAMBERTIAN range      ^ METAL range

On the host, a scene is a SceneData made of typed parallel-array sets. All
invariants (positive radii, albedo and fuzz in [0, 1], known material kinds,
in-range material indices, capacity) are checked once by
SceneData.validate() when the scene is uploaded; the device loaders still
bounds-check every read and record Fault.INDEX_OUT_OF_RANGE on a bad index.

The repository is read-only while a frame renders. Uploading a new scene
between frames is the only way to change it.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.scene.repository import (
    ...     LambertianSet, MaterialKind, MaterialRef, SceneData, SphereSet, upload_scene
    ... )
    >>> scene = SceneData(
    ...     spheres=SphereSet.from_records(
    ...         [((0.0, 0.0, -1.0), 0.5, MaterialRef(MaterialKind.LAMBERTIAN, 0))]
    ...     ),
    ...     lambertians=LambertianSet.from_albedos([(0.7, 0.3, 0.3)]),
    ... )
    >>> upload_scene(scene)
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import NamedTuple

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.core.faults import Fault, record_fault

# Type alias for 3D vectors
vec3 = tm.vec3

# Capacity of the packed arrays (preallocated to avoid kernel recompilation)
MAX_SPHERES = 1024
MAX_MATERIAL_PARAMS = 1024


class MaterialKind(IntEnum):
    """Material tag stored with every sphere.

    Used for material dispatch in the path tracer to determine which
    scattering function to call.
    """

    NONE = 0
    LAMBERTIAN = 1
    METAL = 2


class MaterialRef(NamedTuple):
    """Tagged reference to a material parameter record.

    Attributes:
        kind: The material kind.
        index: Index into the parameter set of that kind.
    """

    kind: MaterialKind
    index: int


class RangeDescriptor(NamedTuple):
    """Location of a logical set inside a packed array."""

    base_index: int
    length: int


class SceneValidationError(ValueError):
    """Scene data violates a repository invariant."""


# Slots in the range descriptor field
SPHERE_RANGE = 0
LAMBERTIAN_RANGE = 1
METAL_RANGE = 2


# =============================================================================
# Host-side Scene Data
# =============================================================================


def _vec3_array(values, name: str) -> npt.NDArray[np.float32]:
    array = np.asarray(values, dtype=np.float32).reshape(-1, 3)
    if not np.all(np.isfinite(array)):
        raise SceneValidationError(f"{name} contains non-finite values")
    return array


@dataclass
class SphereSet:
    """Sphere geometry and material references as parallel arrays.

    Attributes:
        centers: Float array of shape (N, 3).
        radii: Float array of shape (N,).
        material_kinds: Int array of shape (N,) holding MaterialKind values.
        material_indices: Int array of shape (N,).
    """

    centers: npt.NDArray[np.float32] = field(
        default_factory=lambda: np.zeros((0, 3), dtype=np.float32)
    )
    radii: npt.NDArray[np.float32] = field(
        default_factory=lambda: np.zeros(0, dtype=np.float32)
    )
    material_kinds: npt.NDArray[np.int32] = field(
        default_factory=lambda: np.zeros(0, dtype=np.int32)
    )
    material_indices: npt.NDArray[np.int32] = field(
        default_factory=lambda: np.zeros(0, dtype=np.int32)
    )

    @classmethod
    def from_records(
        cls,
        records: list[tuple[tuple[float, float, float], float, MaterialRef]],
    ) -> "SphereSet":
        """Build a set from (center, radius, material) records."""
        return cls(
            centers=_vec3_array([r[0] for r in records], "sphere centers"),
            radii=np.asarray([r[1] for r in records], dtype=np.float32),
            material_kinds=np.asarray([int(r[2].kind) for r in records], dtype=np.int32),
            material_indices=np.asarray([r[2].index for r in records], dtype=np.int32),
        )

    def __len__(self) -> int:
        return int(self.radii.shape[0])

    def material(self, index: int) -> MaterialRef:
        """Get the material reference of sphere `index`."""
        return MaterialRef(
            MaterialKind(int(self.material_kinds[index])), int(self.material_indices[index])
        )


@dataclass
class LambertianSet:
    """Lambertian material parameters (albedo per entry)."""

    albedos: npt.NDArray[np.float32] = field(
        default_factory=lambda: np.zeros((0, 3), dtype=np.float32)
    )

    @classmethod
    def from_albedos(cls, albedos: list[tuple[float, float, float]]) -> "LambertianSet":
        return cls(albedos=_vec3_array(albedos, "Lambertian albedos"))

    def __len__(self) -> int:
        return int(self.albedos.shape[0])


@dataclass
class MetalSet:
    """Metal material parameters (albedo and fuzz per entry)."""

    albedos: npt.NDArray[np.float32] = field(
        default_factory=lambda: np.zeros((0, 3), dtype=np.float32)
    )
    fuzz: npt.NDArray[np.float32] = field(
        default_factory=lambda: np.zeros(0, dtype=np.float32)
    )

    @classmethod
    def from_params(cls, params: list[tuple[tuple[float, float, float], float]]) -> "MetalSet":
        return cls(
            albedos=_vec3_array([p[0] for p in params], "metal albedos"),
            fuzz=np.asarray([p[1] for p in params], dtype=np.float32),
        )

    def __len__(self) -> int:
        return int(self.albedos.shape[0])


@dataclass
class SceneData:
    """The complete scene parameter block uploaded between frames."""

    spheres: SphereSet = field(default_factory=SphereSet)
    lambertians: LambertianSet = field(default_factory=LambertianSet)
    metals: MetalSet = field(default_factory=MetalSet)

    def ranges(self) -> dict[int, RangeDescriptor]:
        """Range descriptors of the three sets in their packed arrays."""
        n_lambertian = len(self.lambertians)
        return {
            SPHERE_RANGE: RangeDescriptor(0, len(self.spheres)),
            LAMBERTIAN_RANGE: RangeDescriptor(0, n_lambertian),
            METAL_RANGE: RangeDescriptor(n_lambertian, len(self.metals)),
        }

    def validate(self) -> None:
        """Check every repository invariant.

        Raises:
            SceneValidationError: If the scene is malformed or too large.
        """
        spheres, lambertians, metals = self.spheres, self.lambertians, self.metals
        n = len(spheres)

        for name, count in (
            ("centers", spheres.centers.shape[0]),
            ("material_kinds", spheres.material_kinds.shape[0]),
            ("material_indices", spheres.material_indices.shape[0]),
        ):
            if count != n:
                raise SceneValidationError(
                    f"Sphere {name} has {count} entries, expected {n}"
                )
        if metals.fuzz.shape[0] != len(metals):
            raise SceneValidationError(
                f"Metal fuzz has {metals.fuzz.shape[0]} entries, expected {len(metals)}"
            )

        if n > MAX_SPHERES:
            raise SceneValidationError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
        if len(lambertians) + len(metals) > MAX_MATERIAL_PARAMS:
            raise SceneValidationError(
                f"Maximum number of materials ({MAX_MATERIAL_PARAMS}) exceeded"
            )

        if n and not np.all(spheres.radii > 0.0):
            bad = int(np.argmin(spheres.radii))
            raise SceneValidationError(
                f"Sphere {bad} has non-positive radius {float(spheres.radii[bad])}"
            )

        for name, albedos in (("Lambertian", lambertians.albedos), ("Metal", metals.albedos)):
            if albedos.size and (albedos.min() < 0.0 or albedos.max() > 1.0):
                raise SceneValidationError(
                    f"{name} albedo outside [0, 1]. This would violate energy conservation."
                )
        if metals.fuzz.size and (metals.fuzz.min() < 0.0 or metals.fuzz.max() > 1.0):
            raise SceneValidationError("Metal fuzz outside [0, 1]")

        set_lengths = {
            int(MaterialKind.LAMBERTIAN): len(lambertians),
            int(MaterialKind.METAL): len(metals),
        }
        known_kinds = {int(kind) for kind in MaterialKind}
        for i in range(n):
            kind = int(spheres.material_kinds[i])
            index = int(spheres.material_indices[i])
            if kind not in known_kinds:
                raise SceneValidationError(f"Sphere {i} has unknown material kind {kind}")
            if kind == MaterialKind.NONE:
                continue
            if not 0 <= index < set_lengths[kind]:
                raise SceneValidationError(
                    f"Sphere {i} references {MaterialKind(kind).name} material {index}, "
                    f"but only {set_lengths[kind]} exist"
                )


# =============================================================================
# Device-side Packed Storage
# =============================================================================

# Sphere storage: center.xyz and radius packed into one vec4
sphere_geometry = ti.Vector.field(4, dtype=ti.f32, shape=MAX_SPHERES)
# (kind, index) per sphere
sphere_materials = ti.Vector.field(2, dtype=ti.i32, shape=MAX_SPHERES)
# Albedo.rgb and fuzz; Lambertian records leave fuzz at zero
material_params = ti.Vector.field(4, dtype=ti.f32, shape=MAX_MATERIAL_PARAMS)
# (base_index, length) for SPHERE_RANGE, LAMBERTIAN_RANGE, METAL_RANGE
range_descriptors = ti.Vector.field(2, dtype=ti.i32, shape=3)


def upload_scene(scene: SceneData) -> None:
    """Validate a scene and write it into the packed device arrays.

    Args:
        scene: The scene to upload.

    Raises:
        SceneValidationError: If the scene violates a repository invariant.
    """
    scene.validate()
    ranges = scene.ranges()

    geometry = np.zeros((MAX_SPHERES, 4), dtype=np.float32)
    materials = np.zeros((MAX_SPHERES, 2), dtype=np.int32)
    n = len(scene.spheres)
    geometry[:n, :3] = scene.spheres.centers
    geometry[:n, 3] = scene.spheres.radii
    materials[:n, 0] = scene.spheres.material_kinds
    materials[:n, 1] = scene.spheres.material_indices

    params = np.zeros((MAX_MATERIAL_PARAMS, 4), dtype=np.float32)
    lam = ranges[LAMBERTIAN_RANGE]
    met = ranges[METAL_RANGE]
    params[lam.base_index : lam.base_index + lam.length, :3] = scene.lambertians.albedos
    params[met.base_index : met.base_index + met.length, :3] = scene.metals.albedos
    params[met.base_index : met.base_index + met.length, 3] = scene.metals.fuzz

    descriptors = np.zeros((3, 2), dtype=np.int32)
    for slot, descriptor in ranges.items():
        descriptors[slot] = descriptor

    sphere_geometry.from_numpy(geometry)
    sphere_materials.from_numpy(materials)
    material_params.from_numpy(params)
    range_descriptors.from_numpy(descriptors)


def clear_scene() -> None:
    """Empty every set. Packed data is left in place and ignored."""
    range_descriptors.fill(0)


def get_range(slot: int) -> RangeDescriptor:
    """Read a range descriptor back from the device."""
    descriptor = range_descriptors[slot]
    return RangeDescriptor(int(descriptor[0]), int(descriptor[1]))


def get_sphere_count() -> int:
    """Get the number of spheres currently uploaded."""
    return get_range(SPHERE_RANGE).length


# =============================================================================
# Device-side Loaders
# =============================================================================


@ti.func
def _checked_slot(range_slot: ti.i32, index: ti.i32) -> ti.i32:
    """Map a set-relative index to a packed-array slot.

    Returns -1 and records Fault.INDEX_OUT_OF_RANGE if index lies outside
    the set's range descriptor.
    """
    slot = -1
    if 0 <= index < range_descriptors[range_slot][1]:
        slot = range_descriptors[range_slot][0] + index
    else:
        record_fault(int(Fault.INDEX_OUT_OF_RANGE))
    return slot


@ti.func
def sphere_count() -> ti.i32:
    """Number of spheres in the scene."""
    return range_descriptors[SPHERE_RANGE][1]


@ti.func
def load_center(sphere_index: ti.i32) -> vec3:
    """Load the center of a sphere."""
    center = vec3(0.0, 0.0, 0.0)
    slot = _checked_slot(SPHERE_RANGE, sphere_index)
    if slot >= 0:
        g = sphere_geometry[slot]
        center = vec3(g[0], g[1], g[2])
    return center


@ti.func
def load_radius(sphere_index: ti.i32) -> ti.f32:
    """Load the radius of a sphere."""
    radius = 0.0
    slot = _checked_slot(SPHERE_RANGE, sphere_index)
    if slot >= 0:
        radius = sphere_geometry[slot][3]
    return radius


@ti.func
def load_material(sphere_index: ti.i32):
    """Load the material reference of a sphere.

    Returns:
        A tuple (kind, index). An out-of-range sphere yields (NONE, 0).
    """
    kind = int(MaterialKind.NONE)
    index = 0
    slot = _checked_slot(SPHERE_RANGE, sphere_index)
    if slot >= 0:
        kind = sphere_materials[slot][0]
        index = sphere_materials[slot][1]
    return kind, index


@ti.func
def load_albedo(kind: ti.i32, index: ti.i32) -> vec3:
    """Load the albedo of a Lambertian or metal material.

    Any other kind records Fault.UNKNOWN_MATERIAL and returns black.
    """
    slot = -1
    if kind == int(MaterialKind.LAMBERTIAN):
        slot = _checked_slot(LAMBERTIAN_RANGE, index)
    elif kind == int(MaterialKind.METAL):
        slot = _checked_slot(METAL_RANGE, index)
    else:
        record_fault(int(Fault.UNKNOWN_MATERIAL))

    albedo = vec3(0.0, 0.0, 0.0)
    if slot >= 0:
        p = material_params[slot]
        albedo = vec3(p[0], p[1], p[2])
    return albedo


@ti.func
def load_fuzz(index: ti.i32) -> ti.f32:
    """Load the fuzz of a metal material."""
    fuzz = 0.0
    slot = _checked_slot(METAL_RANGE, index)
    if slot >= 0:
        fuzz = material_params[slot][3]
    return fuzz
