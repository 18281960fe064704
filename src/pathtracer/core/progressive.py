"""Progressive rendering session with configurable frame blending.

This module wraps the per-frame kernels of the integrator in a session object
that supports:
- Rendering frame after frame into a converging image
- A configurable blend policy deciding each frame's weight
- Progress callbacks and a generator interface for UI loops
- Reset on scene, camera and resolution changes

Every frame is blended into the accumulation buffer with

    buffer = mix(buffer, frame_estimate, weight)

where weight comes from FrameParameters.accumulation_weight if set, and from
the session's BlendPolicy otherwise. CumulativeMean uses 1 / frame_index and
yields the exact mean of all frames; ExponentialDecay keeps a sliding window
that forgets old frames at rate alpha.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.core.params import FrameParameters
    >>> from pathtracer.core.progressive import ProgressiveRenderer
    >>> from pathtracer.scene.presets import create_default_scene
    >>>
    >>> renderer = ProgressiveRenderer(FrameParameters(image_shape=(400, 200)))
    >>> renderer.load_scene(create_default_scene())
    >>> renderer.render(100)  # Render 100 frames
    >>> image = renderer.get_image_numpy()
"""

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Generator
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from pathtracer.camera.pinhole import PinholeCamera, default_camera, setup_camera
from pathtracer.core.integrator import (
    clear_render_target,
    get_image_numpy,
    get_raw_buffer_numpy,
    render_frame,
    setup_render_target,
)
from pathtracer.core.params import FrameParameters
from pathtracer.core.rng import Xoshiro128Plus, seed_rng_store
from pathtracer.preview.export import TransferFunction, image_to_uint8, save_png_from_array
from pathtracer.scene.manager import SceneManager
from pathtracer.scene.repository import SceneData, upload_scene

logger = logging.getLogger(__name__)

# Type alias for progress callback
# Callback receives (current_frame_index, target_frame_index)
ProgressCallback = Callable[[int, int], None]


# =============================================================================
# Blend Policies
# =============================================================================


class BlendPolicy(ABC):
    """Chooses the blend weight of each frame."""

    @abstractmethod
    def weight(self, frame_index: int) -> float:
        """Blend weight in (0, 1] for the frame_index-th frame (1-based)."""


class CumulativeMean(BlendPolicy):
    """Weight 1 / frame_index: the buffer is the mean of all frames so far."""

    def weight(self, frame_index: int) -> float:
        if frame_index < 1:
            raise ValueError(f"frame_index must be >= 1, got {frame_index}")
        return 1.0 / frame_index

    def __repr__(self) -> str:
        return "CumulativeMean()"


@dataclass(frozen=True)
class ExponentialDecay(BlendPolicy):
    """Fixed weight alpha, an exponential moving average over frames.

    For the first frames the weight is raised to 1 / frame_index, so the
    cleared buffer does not darken the image while the window fills.

    Attributes:
        alpha: Steady-state weight of the newest frame, in (0, 1].
    """

    alpha: float = 0.1

    def __post_init__(self) -> None:
        if not 0.0 < self.alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {self.alpha}")

    def weight(self, frame_index: int) -> float:
        if frame_index < 1:
            raise ValueError(f"frame_index must be >= 1, got {frame_index}")
        return max(self.alpha, 1.0 / frame_index)


# =============================================================================
# Progressive Renderer
# =============================================================================


class ProgressiveRenderer:
    """A render session that accumulates frames into one image.

    The renderer owns the global render target, random state store and
    camera state for the lifetime of the session. Only one session should
    be active at a time.

    Attributes:
        params: The default FrameParameters for each frame.
        policy: The blend policy used when a frame sets no explicit weight.
        camera: The current camera configuration.
    """

    def __init__(
        self,
        params: FrameParameters,
        camera: PinholeCamera | None = None,
        policy: BlendPolicy | None = None,
        seed: int = 0,
        perturb_rng: bool = False,
    ) -> None:
        """Initialize the session.

        Args:
            params: Default frame parameters; image_shape sets the resolution.
            camera: Camera configuration. Defaults to default_camera().
            policy: Blend policy. Defaults to CumulativeMean().
            seed: Session seed for the per-pixel random streams.
            perturb_rng: If True, frames without an explicit rng_reseed get
                one drawn from a host xoshiro128+ generator.

        Raises:
            ValueError: If params or camera are invalid.
        """
        params.validate()
        self.params = params
        self.policy = policy if policy is not None else CumulativeMean()
        self.camera = camera if camera is not None else default_camera()
        self.perturb_rng = perturb_rng
        self._seed = seed
        self._host_rng = Xoshiro128Plus(seed=seed)
        self._frame_index = 0

        setup_render_target(params.width, params.height)
        setup_camera(self.camera, params.width / params.height)
        seed_rng_store(seed)
        logger.info(
            "Render session %dx%d, policy=%r, seed=%d",
            params.width,
            params.height,
            self.policy,
            seed,
        )

    @property
    def width(self) -> int:
        """Get the image width."""
        return self.params.width

    @property
    def height(self) -> int:
        """Get the image height."""
        return self.params.height

    @property
    def frame_index(self) -> int:
        """Number of frames blended since the last reset."""
        return self._frame_index

    @property
    def seed(self) -> int:
        return self._seed

    # =========================================================================
    # Session Changes (each discards accumulated history)
    # =========================================================================

    def reset(self) -> None:
        """Clear the accumulation buffer and restart frame counting."""
        clear_render_target()
        self._frame_index = 0
        logger.info("Accumulation reset")

    def load_scene(self, scene: SceneManager | SceneData) -> None:
        """Upload a new scene and reset accumulation.

        Raises:
            SceneValidationError: If the scene is malformed.
        """
        if isinstance(scene, SceneManager):
            scene.upload()
        else:
            upload_scene(scene)
            logger.info("Uploaded scene: %d spheres", len(scene.spheres))
        self.reset()

    def set_camera(self, camera: PinholeCamera) -> None:
        """Replace the camera and reset accumulation.

        Raises:
            ValueError: If the camera configuration is invalid.
        """
        setup_camera(camera, self.width / self.height)
        self.camera = camera
        self.reset()

    def resize(self, width: int, height: int) -> None:
        """Change the resolution and reset accumulation.

        Raises:
            ValueError: If dimensions are not positive or exceed the maximum.
        """
        params = self.params.with_updates(image_shape=(width, height))
        params.validate()
        setup_render_target(width, height)
        setup_camera(self.camera, width / height)
        self.params = params
        self._frame_index = 0
        logger.info("Resized to %dx%d", width, height)

    def reseed(self, seed: int) -> None:
        """Reseed every pixel's random stream and reset accumulation."""
        seed_rng_store(seed)
        self._seed = seed
        self._host_rng = Xoshiro128Plus(seed=seed)
        logger.info("Reseeded random streams with seed %d", seed)
        self.reset()

    # =========================================================================
    # Rendering
    # =========================================================================

    def render_frame(self, params: FrameParameters | None = None) -> int:
        """Render one frame and blend it into the image.

        Args:
            params: Parameters for this frame only. Defaults to self.params.
                A different image_shape resizes the session first.

        Returns:
            The frame index after blending (1 for the first frame).

        Raises:
            ValueError: If params are invalid.
            FrameFaultError: If a kernel recorded a fault. The frame is
                discarded and frame_index does not advance.
        """
        if params is None:
            params = self.params
        params.validate()
        if (params.width, params.height) != (self.width, self.height):
            self.resize(params.width, params.height)

        if self.perturb_rng and params.rng_reseed is None:
            params = params.with_updates(rng_reseed=self._host_rng.next_reseed())

        next_index = self._frame_index + 1
        if params.accumulation_weight is not None:
            weight = params.accumulation_weight
        else:
            weight = self.policy.weight(next_index)

        start = time.perf_counter()
        render_frame(params, weight)
        self._frame_index = next_index

        logger.debug(
            "Frame %d: weight=%.4f, spp=%d, %.1f ms",
            next_index,
            weight,
            params.sample_count,
            (time.perf_counter() - start) * 1000.0,
        )
        return next_index

    def render(
        self,
        num_frames: int = 1,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Render several frames with an optional progress callback.

        Args:
            num_frames: Number of frames to add.
            callback: Optional callback called after each frame.
                Receives (current_frame_index, target_frame_index).

        Example:
            >>> def progress(current, target):
            ...     print(f"Progress: {current}/{target} frames")
            >>> renderer.render(100, callback=progress)
        """
        for current, target in self.render_progressive(num_frames):
            if callback is not None:
                callback(current, target)

    def render_progressive(
        self,
        num_frames: int = 1,
    ) -> Generator[tuple[int, int], None, None]:
        """Render frames, yielding progress after each one.

        Yields:
            Tuple of (current_frame_index, target_frame_index).

        Example:
            >>> for current, target in renderer.render_progressive(100):
            ...     print(f"Progress: {current}/{target} frames")
        """
        if num_frames <= 0:
            return

        target = self._frame_index + num_frames
        for _ in range(num_frames):
            yield self.render_frame(), target

    # =========================================================================
    # Output
    # =========================================================================

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Get the accumulated image, linear and clamped to [0, 1].

        Returns:
            NumPy array of shape (height, width, 3) with dtype float32.
        """
        return get_image_numpy()

    def get_buffer_numpy(self) -> npt.NDArray[np.float32]:
        """Get the unclamped accumulation buffer, shape (width, height, 3)."""
        return get_raw_buffer_numpy()

    def get_image_uint8(
        self, transfer: TransferFunction = "srgb", gamma: float = 2.2
    ) -> npt.NDArray[np.uint8]:
        """Get the rendered image as an 8-bit NumPy array.

        Returns:
            NumPy array of shape (height, width, 3) with dtype uint8.
        """
        return image_to_uint8(self.get_image_numpy(), transfer=transfer, gamma=gamma)

    def save_image(
        self, filepath: str, transfer: TransferFunction = "srgb", gamma: float = 2.2
    ) -> None:
        """Save the rendered image to a PNG file."""
        save_png_from_array(self.get_image_numpy(), filepath, transfer=transfer, gamma=gamma)
        logger.info("Saved %dx%d image to %s", self.width, self.height, filepath)

    def __repr__(self) -> str:
        """Return a string representation of the renderer state."""
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"frames={self.frame_index}, policy={self.policy!r})"
        )
