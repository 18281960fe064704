"""Image export utilities for rendered images.

This module converts the linear accumulation buffer into display-encoded
8-bit images and writes them to disk with Pillow.

Transfer functions:
    - "srgb": piecewise sRGB encoding (linear segment below 0.0031308)
    - "gamma": plain power-law encoding with a configurable gamma
    - "linear": no encoding

Example:
    >>> from pathtracer.preview.export import save_png
    >>> from pathtracer.core.progressive import ProgressiveRenderer
    >>>
    >>> renderer = ProgressiveRenderer(FrameParameters(image_shape=(400, 200)))
    >>> renderer.render(100)
    >>> save_png(renderer, "output.png")
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

if TYPE_CHECKING:
    from pathtracer.core.progressive import ProgressiveRenderer

TransferFunction = Literal["srgb", "gamma", "linear"]


def linear_to_srgb(image: npt.NDArray[np.floating]) -> npt.NDArray[np.float32]:
    """Apply the sRGB transfer function to linear values in [0, 1].

        c <= 0.0031308: 12.92 * c
        otherwise:      1.055 * c^(1/2.4) - 0.055

    Args:
        image: Linear values; clamped to [0, 1] first.

    Returns:
        Encoded values in [0, 1] with dtype float32.
    """
    c = np.clip(np.asarray(image, dtype=np.float64), 0.0, 1.0)
    encoded = np.where(c <= 0.0031308, 12.92 * c, 1.055 * np.power(c, 1.0 / 2.4) - 0.055)
    return encoded.astype(np.float32)


def encode_image(
    image: npt.NDArray[np.floating],
    *,
    transfer: TransferFunction = "srgb",
    gamma: float = 2.2,
) -> npt.NDArray[np.float32]:
    """Clamp a linear image to [0, 1] and apply a transfer function.

    Raises:
        ValueError: If the transfer function is unknown or gamma <= 0.
    """
    clamped = np.clip(np.asarray(image, dtype=np.float32), 0.0, 1.0)
    if transfer == "srgb":
        return linear_to_srgb(clamped)
    if transfer == "gamma":
        if gamma <= 0.0:
            raise ValueError(f"Gamma must be positive, got {gamma}")
        return np.power(clamped, 1.0 / gamma).astype(np.float32)
    if transfer == "linear":
        return clamped
    raise ValueError(f"Unknown transfer function: {transfer}")


def image_to_uint8(
    image: npt.NDArray[np.floating],
    *,
    transfer: TransferFunction = "srgb",
    gamma: float = 2.2,
) -> npt.NDArray[np.uint8]:
    """Convert a linear float image to uint8 for display/export.

    Args:
        image: Linear image array of shape (H, W, 3).
        transfer: Transfer function applied before quantization.
        gamma: Gamma for the "gamma" transfer function.

    Returns:
        8-bit image array of shape (H, W, 3) with dtype uint8.
    """
    encoded = encode_image(image, transfer=transfer, gamma=gamma)
    return np.round(encoded * 255.0).astype(np.uint8)


def save_png_from_array(
    image: npt.NDArray[np.floating],
    filepath: str,
    *,
    transfer: TransferFunction = "srgb",
    gamma: float = 2.2,
) -> None:
    """Save a linear NumPy image as an 8-bit PNG file.

    Args:
        image: Linear image array of shape (H, W, 3), row 0 at the top.
        filepath: Output file path (should end in .png).
        transfer: Transfer function applied before quantization.
        gamma: Gamma for the "gamma" transfer function.
    """
    pil_image = PILImage.fromarray(
        image_to_uint8(image, transfer=transfer, gamma=gamma), mode="RGB"
    )
    pil_image.save(filepath)


def save_png(
    renderer: ProgressiveRenderer,
    filepath: str,
    *,
    transfer: TransferFunction = "srgb",
    gamma: float = 2.2,
) -> None:
    """Save a renderer's accumulated image as a PNG file."""
    save_png_from_array(
        renderer.get_image_numpy(), filepath, transfer=transfer, gamma=gamma
    )


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Compute root mean squared error between two images.

    Args:
        image_a: First image array.
        image_b: Second image array (must have same shape as image_a).

    Returns:
        RMSE value (lower is more similar).

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
