#!/usr/bin/env python3
"""Render a sphere scene with the progressive path tracer.

The script loads a scene (a built-in preset or a JSON file written by
SceneManager.save_json), renders a number of frames into the accumulation
buffer and saves the result as an sRGB PNG.

Usage:
    python examples/render_spheres.py [options]

Options:
    --width WIDTH         Image width in pixels (default: 400)
    --height HEIGHT       Image height in pixels (default: 200)
    --samples SAMPLES     Samples per pixel per frame (default: 4)
    --frames FRAMES       Number of frames to accumulate (default: 64)
    --max-depth DEPTH     Maximum bounces per path (default: 50)
    --policy POLICY       Frame blending: mean or decay (default: mean)
    --alpha ALPHA         Weight of the newest frame for decay (default: 0.1)
    --seed SEED           Seed of the per-pixel random streams (default: 0)
    --scene SCENE         default, showcase, or a JSON scene file (default: showcase)
    --output OUTPUT       Output file path (default: spheres.png)
    --arch ARCH           Taichi backend: cpu or gpu (default: gpu)
    --verbose             Log every frame

Example:
    python examples/render_spheres.py --width 320 --height 160 --frames 32
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import taichi as ti

logger = logging.getLogger("render_spheres")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a sphere scene with the progressive path tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=400, help="Image width in pixels (default: 400)")
    parser.add_argument("--height", type=int, default=200, help="Image height in pixels (default: 200)")
    parser.add_argument(
        "--samples", type=int, default=4, help="Samples per pixel per frame (default: 4)"
    )
    parser.add_argument(
        "--frames", type=int, default=64, help="Number of frames to accumulate (default: 64)"
    )
    parser.add_argument(
        "--max-depth", type=int, default=50, help="Maximum bounces per path (default: 50)"
    )
    parser.add_argument(
        "--policy",
        choices=("mean", "decay"),
        default="mean",
        help="Frame blending: cumulative mean or exponential decay (default: mean)",
    )
    parser.add_argument(
        "--alpha", type=float, default=0.1, help="Weight of the newest frame for decay (default: 0.1)"
    )
    parser.add_argument("--seed", type=int, default=0, help="Random stream seed (default: 0)")
    parser.add_argument(
        "--scene",
        type=str,
        default="showcase",
        help="Scene preset (default, showcase) or JSON scene file (default: showcase)",
    )
    parser.add_argument(
        "--output", type=str, default="spheres.png", help="Output file path (default: spheres.png)"
    )
    parser.add_argument(
        "--arch", choices=("cpu", "gpu"), default="gpu", help="Taichi backend (default: gpu)"
    )
    parser.add_argument("--verbose", action="store_true", help="Log every frame")
    return parser.parse_args(argv)


def load_scene(name: str):
    """Resolve a preset name or JSON file into a SceneManager."""
    # Lazy imports to allow Taichi initialization first
    from pathtracer.scene.manager import SceneManager
    from pathtracer.scene.presets import create_default_scene, create_material_showcase_scene

    presets = {
        "default": create_default_scene,
        "showcase": create_material_showcase_scene,
    }
    if name in presets:
        return presets[name]()
    return SceneManager.load_json(name)


def render_spheres(args: argparse.Namespace) -> Path:
    """Render the requested scene and save it to args.output.

    Returns:
        Path to the saved image file.
    """
    from pathtracer.core.params import FrameParameters
    from pathtracer.core.progressive import CumulativeMean, ExponentialDecay, ProgressiveRenderer

    params = FrameParameters(
        image_shape=(args.width, args.height),
        sample_count=args.samples,
        max_depth=args.max_depth,
    )
    policy = CumulativeMean() if args.policy == "mean" else ExponentialDecay(alpha=args.alpha)

    renderer = ProgressiveRenderer(params, policy=policy, seed=args.seed)
    renderer.load_scene(load_scene(args.scene))

    start_time = time.perf_counter()

    def progress_callback(current: int, target: int) -> None:
        if current % 8 == 0 or current == target:
            elapsed = time.perf_counter() - start_time
            logger.info(
                "Frame %d/%d (%.1f frames/s)",
                current,
                target,
                current / elapsed if elapsed > 0 else 0.0,
            )

    renderer.render(args.frames, callback=progress_callback)

    output_file = Path(args.output)
    renderer.save_image(str(output_file))
    logger.info("Total time: %.2fs", time.perf_counter() - start_time)
    return output_file


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ti.init(arch=ti.gpu if args.arch == "gpu" else ti.cpu)

    try:
        output_file = render_spheres(args)
    except (ValueError, RuntimeError, OSError) as e:
        logger.error("Render failed: %s", e)
        return 1

    print(f"Saved to: {output_file.absolute()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
