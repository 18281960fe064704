"""Preview module for image output.

Components:
    export: Display encoding and PNG export via Pillow

Example:
    >>> from pathtracer.preview import save_png
    >>> save_png(renderer, "output.png")
"""

from pathtracer.preview.export import (
    TransferFunction,
    compute_rmse,
    encode_image,
    image_to_uint8,
    linear_to_srgb,
    save_png,
    save_png_from_array,
)

__all__ = [
    "TransferFunction",
    "linear_to_srgb",
    "encode_image",
    "image_to_uint8",
    "save_png",
    "save_png_from_array",
    "compute_rmse",
]
