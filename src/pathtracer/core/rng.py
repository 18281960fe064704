"""Per-pixel xoshiro128+ random number generation.

Every pixel owns a 4 x 32-bit xoshiro128+ state that lives in a persistent
store and evolves across frames, so no two frames replay the same random
sequence for a pixel. Device functions take the state by value and return the
evolved state next to the drawn value:

    value, state = next_f32(state)

This keeps each draw a pure function and makes the exclusive ownership of a
pixel's state explicit in the kernels.

The module also provides a bit-exact host mirror (Xoshiro128Plus) used to
produce per-frame reseed vectors and to verify the device generator, and
host helpers to seed, read and write the per-pixel store.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.rng import Xoshiro128Plus, seed_rng_store
    >>> seed_rng_store(1234)
    >>> host = Xoshiro128Plus(seed=7)
    >>> host.next_u32()
"""

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.core.faults import Fault, record_fault
from pathtracer.core.params import MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH
from pathtracer.core.ray import length_squared

# Type aliases
vec3 = tm.vec3
uvec4 = ti.types.vector(4, ti.u32)

# Upper bound on unit-ball rejection attempts; each succeeds with p ~ 0.52
MAX_REJECTION_ATTEMPTS = 64

# 2^-24: next_f32 maps the top 24 bits of a draw onto [0, 1)
F32_SCALE = 1.0 / 16777216.0

MASK32 = 0xFFFFFFFF
MASK64 = 0xFFFFFFFFFFFFFFFF


# =============================================================================
# Device Generator (Taichi functions)
# =============================================================================


@ti.func
def next_u32(state: uvec4):
    """Draw a raw 32-bit value and advance the state.

    Implements xoshiro128+: the result is s0 + s3 (mod 2^32), computed before
    the xor-shift-rotate update of the four words.

    Args:
        state: The current generator state.

    Returns:
        A tuple (value, new_state).
    """
    s0 = state[0]
    s1 = state[1]
    s2 = state[2]
    s3 = state[3]

    result = s0 + s3
    t = s1 << 9

    s2 = s2 ^ s0
    s3 = s3 ^ s1
    s1 = s1 ^ s2
    s0 = s0 ^ s3
    s2 = s2 ^ t
    s3 = (s3 << 11) | ti.bit_shr(s3, 21)

    return result, uvec4(s0, s1, s2, s3)


@ti.func
def next_f32(state: uvec4):
    """Draw a float uniformly distributed in [0, 1).

    Uses the top 24 bits of next_u32, so every result is an exact multiple
    of 2^-24.

    Returns:
        A tuple (value, new_state).
    """
    bits, new_state = next_u32(state)
    return ti.cast(ti.bit_shr(bits, 8), ti.f32) * F32_SCALE, new_state


@ti.func
def next_unit_ball(state: uvec4):
    """Draw a point uniformly distributed inside the unit ball.

    Rejection sampling over [-1, 1]^3, accepting |p|^2 <= 1. The loop is
    capped at MAX_REJECTION_ATTEMPTS; running out records
    Fault.RNG_EXHAUSTED and yields the zero vector.

    Returns:
        A tuple (point, new_state).
    """
    rng = state
    point = vec3(0.0, 0.0, 0.0)
    found = 0
    for _ in range(MAX_REJECTION_ATTEMPTS):
        if found == 0:
            x, rng = next_f32(rng)
            y, rng = next_f32(rng)
            z, rng = next_f32(rng)
            candidate = vec3(2.0 * x - 1.0, 2.0 * y - 1.0, 2.0 * z - 1.0)
            if length_squared(candidate) <= 1.0:
                point = candidate
                found = 1

    if found == 0:
        record_fault(int(Fault.RNG_EXHAUSTED))

    return point, rng


@ti.func
def next_unit_sphere(state: uvec4):
    """Draw a unit vector uniformly distributed on the sphere.

    Normalizes a unit-ball sample. A zero ball sample cannot be normalized
    and maps to the +x axis instead.

    Returns:
        A tuple (direction, new_state).
    """
    point, rng = next_unit_ball(state)
    direction = vec3(1.0, 0.0, 0.0)
    if length_squared(point) > 0.0:
        direction = tm.normalize(point)
    return direction, rng


# =============================================================================
# Host Mirror
# =============================================================================


def _rotl32(x: int, k: int) -> int:
    return ((x << k) | (x >> (32 - k))) & MASK32


def splitmix64(x: int) -> tuple[int, int]:
    """Advance a SplitMix64 state and return (output, new_state)."""
    x = (x + 0x9E3779B97F4A7C15) & MASK64
    z = x
    z = ((z ^ (z >> 30)) * 0xBF58476D1CE4E5B9) & MASK64
    z = ((z ^ (z >> 27)) * 0x94D049BB133111EB) & MASK64
    return z ^ (z >> 31), x


def seed_words(seed: int) -> tuple[int, int, int, int]:
    """Expand an integer seed into a non-zero xoshiro128+ state.

    Two SplitMix64 outputs are split into four 32-bit words.

    Args:
        seed: Any Python integer (reduced modulo 2^64).

    Returns:
        Four 32-bit words, not all zero.
    """
    x = seed & MASK64
    a, x = splitmix64(x)
    b, x = splitmix64(x)
    words = (a & MASK32, a >> 32, b & MASK32, b >> 32)
    if not any(words):
        words = (1, 0, 0, 0)
    return words


class Xoshiro128Plus:
    """Host-side xoshiro128+ generator, bit-exact with the device functions.

    Attributes:
        state: The current four 32-bit words.
    """

    def __init__(
        self,
        seed: int = 0,
        state: tuple[int, int, int, int] | None = None,
    ) -> None:
        """Create a generator from a seed or from explicit state words.

        Args:
            seed: Seed expanded through SplitMix64 when state is not given.
            state: Explicit state words; must not be all zero.

        Raises:
            ValueError: If state is all zero or has the wrong length.
        """
        if state is None:
            state = seed_words(seed)
        if len(state) != 4:
            raise ValueError(f"xoshiro128+ state needs 4 words, got {len(state)}")
        words = tuple(int(w) & MASK32 for w in state)
        if not any(words):
            raise ValueError("xoshiro128+ state must not be all zero")
        self._s = list(words)

    @property
    def state(self) -> tuple[int, int, int, int]:
        """The current state words."""
        return tuple(self._s)

    def next_u32(self) -> int:
        """Draw a raw 32-bit value."""
        s = self._s
        result = (s[0] + s[3]) & MASK32
        t = (s[1] << 9) & MASK32

        s[2] ^= s[0]
        s[3] ^= s[1]
        s[1] ^= s[2]
        s[0] ^= s[3]
        s[2] ^= t
        s[3] = _rotl32(s[3], 11)

        return result

    def next_f32(self) -> float:
        """Draw a float in [0, 1) from the top 24 bits of a raw draw."""
        return (self.next_u32() >> 8) * F32_SCALE

    def next_reseed(self) -> tuple[int, int, int, int]:
        """Draw four words suitable as a per-frame reseed vector."""
        return (self.next_u32(), self.next_u32(), self.next_u32(), self.next_u32())


# =============================================================================
# Per-Pixel State Store
# =============================================================================

_rng_store = ti.Vector.field(4, dtype=ti.u32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))


def _mix32(x: npt.NDArray[np.uint32]) -> npt.NDArray[np.uint32]:
    """Integer avalanche hash on uint32 arrays (wrapping arithmetic)."""
    x = x ^ (x >> np.uint32(16))
    x = x * np.uint32(0x7FEB352D)
    x = x ^ (x >> np.uint32(15))
    x = x * np.uint32(0x846CA68B)
    x = x ^ (x >> np.uint32(16))
    return x


def pixel_seed_states(seed: int, width: int, height: int) -> npt.NDArray[np.uint32]:
    """Derive initial xoshiro128+ states for a grid of pixels.

    The state of pixel (i, j) depends only on (seed, i, j), not on the grid
    size, so growing the grid keeps existing pixels' streams.

    Args:
        seed: The session seed.
        width: Number of pixel columns.
        height: Number of pixel rows.

    Returns:
        Array of shape (width, height, 4) and dtype uint32; no pixel state is
        all zero.
    """
    seed_lo = seed & MASK32
    seed_hi = (seed >> 32) & MASK32
    seed_key = _mix32(np.array([seed_lo ^ _rotl32(seed_hi, 16)], dtype=np.uint32))

    i = np.arange(width, dtype=np.uint32)[:, None]
    j = np.arange(height, dtype=np.uint32)[None, :]
    pixel_key = _mix32(i * np.uint32(MAX_IMAGE_HEIGHT) + j + np.uint32(1)) ^ seed_key

    states = np.empty((width, height, 4), dtype=np.uint32)
    for k in range(4):
        states[:, :, k] = _mix32(pixel_key + np.uint32((0x9E3779B9 * (k + 1)) & MASK32))

    all_zero = ~states.any(axis=-1)
    states[all_zero, 0] = np.uint32(1)
    return states


def seed_rng_store(seed: int) -> None:
    """Seed every pixel state in the store from a session seed.

    Discards all accumulated randomness history; callers should also reset
    the accumulation buffer.

    Args:
        seed: The session seed.
    """
    _rng_store.from_numpy(pixel_seed_states(seed, MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))


def set_rng_state(pixel_i: int, pixel_j: int, words: tuple[int, int, int, int]) -> None:
    """Overwrite one pixel's random state.

    Args:
        pixel_i: Pixel x-coordinate.
        pixel_j: Pixel y-coordinate.
        words: Four 32-bit words, not all zero.

    Raises:
        ValueError: If the state is all zero or a word is out of range.
    """
    if len(words) != 4 or not any(words):
        raise ValueError("xoshiro128+ state must be 4 words, not all zero")
    for word in words:
        if not 0 <= word <= MASK32:
            raise ValueError(f"State word {word} is not a 32-bit unsigned value")
    _rng_store[pixel_i, pixel_j] = [int(w) for w in words]


def get_rng_state(pixel_i: int, pixel_j: int) -> tuple[int, int, int, int]:
    """Read one pixel's random state."""
    v = _rng_store[pixel_i, pixel_j]
    return (int(v[0]), int(v[1]), int(v[2]), int(v[3]))


def get_rng_store_numpy(width: int, height: int) -> npt.NDArray[np.uint32]:
    """Copy the active region of the store to a (width, height, 4) array."""
    return _rng_store.to_numpy()[:width, :height, :].astype(np.uint32)


def get_rng_store() -> "ti.MatrixField":
    """Get the raw per-pixel state field (full preallocated capacity)."""
    return _rng_store


@ti.func
def load_rng_state(pixel_i: ti.i32, pixel_j: ti.i32) -> uvec4:
    """Read a pixel's persisted random state from the store."""
    return _rng_store[pixel_i, pixel_j]


@ti.func
def store_rng_state(pixel_i: ti.i32, pixel_j: ti.i32, state: uvec4):
    """Write a pixel's evolved random state back to the store."""
    _rng_store[pixel_i, pixel_j] = state


@ti.func
def perturb_state(state: uvec4, reseed: uvec4) -> uvec4:
    """XOR a reseed vector into a state, never producing the all-zero state."""
    mixed = state ^ reseed
    if mixed[0] == 0 and mixed[1] == 0 and mixed[2] == 0 and mixed[3] == 0:
        mixed[0] = ti.u32(1)
    return mixed
