"""Frame parameter block consumed once per rendered frame.

FrameParameters is an immutable snapshot of everything a single frame needs
from the driving layer: the image shape, how many samples to draw per pixel,
the bounce limit, an optional perturbation of the per-pixel random streams and
an optional explicit accumulation weight.

Example:
    >>> params = FrameParameters(image_shape=(320, 180), sample_count=4)
    >>> params.validate()
    >>> params.pixel_count
    57600
"""

from dataclasses import dataclass, replace

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = 1024
MAX_IMAGE_HEIGHT = 1024

# Default bounce limit for the path integrator
DEFAULT_MAX_DEPTH = 50

_U32_MAX = 0xFFFFFFFF


@dataclass(frozen=True)
class FrameParameters:
    """Per-frame rendering parameters.

    Attributes:
        image_shape: (width, height) of the image in pixels.
        sample_count: Primary samples traced per pixel this frame (>= 1).
        max_depth: Maximum number of bounces per path (>= 0). A path that
            does not terminate within max_depth bounces contributes black.
        rng_reseed: Optional four 32-bit words XOR-ed into every pixel's
            random state before tracing this frame. None leaves the
            persisted states untouched.
        accumulation_weight: Optional blend weight in (0, 1] for this frame.
            None lets the renderer's blend policy decide.
    """

    image_shape: tuple[int, int]
    sample_count: int = 1
    max_depth: int = DEFAULT_MAX_DEPTH
    rng_reseed: tuple[int, int, int, int] | None = None
    accumulation_weight: float | None = None

    @property
    def width(self) -> int:
        """Image width in pixels."""
        return int(self.image_shape[0])

    @property
    def height(self) -> int:
        """Image height in pixels."""
        return int(self.image_shape[1])

    @property
    def pixel_count(self) -> int:
        """Total number of pixels."""
        return self.width * self.height

    def validate(self) -> None:
        """Check every field against its allowed range.

        Raises:
            ValueError: If any field is out of range.
        """
        if len(self.image_shape) != 2:
            raise ValueError(
                f"image_shape must be (width, height), got {self.image_shape!r}"
            )
        width, height = self.width, self.height
        if width <= 0 or height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
        if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
            raise ValueError(
                f"Image dimensions ({width}x{height}) exceed maximum supported "
                f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
            )
        if self.sample_count < 1:
            raise ValueError(f"sample_count must be >= 1, got {self.sample_count}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {self.max_depth}")
        if self.rng_reseed is not None:
            if len(self.rng_reseed) != 4:
                raise ValueError(
                    f"rng_reseed must have 4 words, got {len(self.rng_reseed)}"
                )
            for word in self.rng_reseed:
                if not 0 <= word <= _U32_MAX:
                    raise ValueError(f"rng_reseed word {word} is not a 32-bit unsigned value")
        if self.accumulation_weight is not None and not 0.0 < self.accumulation_weight <= 1.0:
            raise ValueError(
                f"accumulation_weight must be in (0, 1], got {self.accumulation_weight}"
            )

    def with_updates(self, **changes) -> "FrameParameters":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)
