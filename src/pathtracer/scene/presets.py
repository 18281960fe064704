"""Ready-made sphere scenes.

Both scenes sit in front of the default camera (origin, looking down -z) and
rest on a large ground sphere of radius 100 whose top touches y = -0.5.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.scene.presets import create_material_showcase_scene
    >>> scene = create_material_showcase_scene()
    >>> scene.upload()
"""

from pathtracer.scene.manager import SceneManager

GROUND_CENTER = (0.0, -100.5, -1.0)
GROUND_RADIUS = 100.0


def create_default_scene() -> SceneManager:
    """Create the two-sphere scene: a small diffuse sphere on diffuse ground.

    Returns:
        A SceneManager with a sphere of radius 0.5 at (0, 0, -1) and the
        ground sphere, both mid-grey Lambertian.
    """
    scene = SceneManager()
    grey = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
    scene.add_sphere(center=(0.0, 0.0, -1.0), radius=0.5, material=grey)
    scene.add_sphere(center=GROUND_CENTER, radius=GROUND_RADIUS, material=grey)
    return scene


def create_material_showcase_scene() -> SceneManager:
    """Create a scene with a diffuse centre sphere flanked by two metals.

    The left metal is a soft silver (fuzz 0.3), the right a rough gold
    (fuzz 1.0).
    """
    scene = SceneManager()
    scene.add_lambertian_sphere(GROUND_CENTER, GROUND_RADIUS, albedo=(0.8, 0.8, 0.0))
    scene.add_lambertian_sphere((0.0, 0.0, -1.0), 0.5, albedo=(0.7, 0.3, 0.3))
    scene.add_metal_sphere((-1.0, 0.0, -1.0), 0.5, albedo=(0.8, 0.8, 0.8), fuzz=0.3)
    scene.add_metal_sphere((1.0, 0.0, -1.0), 0.5, albedo=(0.8, 0.6, 0.2), fuzz=1.0)
    return scene
