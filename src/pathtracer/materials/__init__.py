"""Materials module implementing surface scattering.

Components:
    lambertian: Ideal diffuse scattering around the surface normal
    metal: Specular reflection with optional fuzz
    dispatch: Selects the scattering function from a material tag

Each scattering function takes the pixel's random state by value and returns
the evolved state alongside the scattered direction and attenuation.
"""

from .dispatch import scatter
from .lambertian import scatter_lambertian
from .metal import scatter_metal

__all__ = [
    "scatter_lambertian",
    "scatter_metal",
    "scatter",
]
