"""Progressive Monte Carlo path tracer built on Taichi.

This package renders scenes made of spheres with Lambertian and metal
materials, accumulating samples across frames into a converging image:
- Per-pixel xoshiro128+ random streams persisted between frames
- Brute-force nearest-hit sphere intersection
- Tag-and-index material dispatch
- Iterative, depth-bounded light transport
- Progressive accumulation with configurable blend policy

Subpackages:
    core: Ray utilities, RNG engine, integrator, progressive renderer
    geometry: Sphere primitive and hit records
    materials: Lambertian and metal scattering, material dispatch
    scene: Scene repository, nearest-hit queries, scene builder
    camera: Pinhole camera with jittered primary rays
    preview: Image export utilities
"""

__version__ = "0.1.0"
