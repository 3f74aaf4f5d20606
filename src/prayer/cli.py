"""Command-line front end.

Usage:
    prayer render CONFIG [-o OUTPUT] [options]
    prayer preset NAME [-o OUTPUT] [options]
    prayer presets

Options:
    --width WIDTH           Override the image width in pixels
    --height HEIGHT         Override the image height in pixels
    --samples SAMPLES       Override the number of samples per pixel
    --bounces BOUNCES       Override the maximum light bounces per path
    --exposure EXPOSURE     Override the tone mapping exposure
    --gamma GAMMA           Override the display gamma
    --arch {cpu,gpu}        Taichi backend (default: cpu)
    --seed SEED             Seed for Taichi's random number generator
    --force                 Overwrite an existing output file
    -v, --verbose           Log debug output
    -q, --quiet             Only log warnings and errors

Example:
    prayer render scenes/spheres.toml -o spheres.png --samples 256
    prayer preset cornell_box --width 256 --height 256 --arch gpu
"""

import argparse
import logging
import sys
import time
from collections.abc import Sequence
from pathlib import Path

import taichi as ti

from prayer import __version__
from prayer.errors import ConfigError, TraceError

logger = logging.getLogger("prayer")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the prayer command."""
    parser = argparse.ArgumentParser(
        prog="prayer",
        description="Render scenes with a Monte Carlo path tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-o", "--output", type=Path, help="Output PNG path")
    common.add_argument("--width", type=int, help="Override the image width in pixels")
    common.add_argument("--height", type=int, help="Override the image height in pixels")
    common.add_argument("--samples", type=int, help="Override the samples per pixel")
    common.add_argument("--bounces", type=int, help="Override the maximum light bounces")
    common.add_argument("--exposure", type=float, help="Override the tone mapping exposure")
    common.add_argument("--gamma", type=float, help="Override the display gamma")
    common.add_argument(
        "--arch",
        choices=("cpu", "gpu"),
        default="cpu",
        help="Taichi backend (default: cpu)",
    )
    common.add_argument("--seed", type=int, help="Seed for the random number generator")
    common.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the output file if it exists",
    )
    verbosity = common.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    verbosity.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log warnings and errors",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    render_parser = subparsers.add_parser(
        "render",
        parents=[common],
        help="Render a TOML scene configuration",
    )
    render_parser.add_argument("config", type=Path, help="Path to the configuration file")

    preset_parser = subparsers.add_parser(
        "preset",
        parents=[common],
        help="Render a built-in scene",
    )
    preset_parser.add_argument("name", help="Preset name (see 'prayer presets')")

    subparsers.add_parser("presets", help="List the built-in scenes")

    return parser


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Send prayer's log records to stderr at the requested level."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def init_taichi(arch: str, seed: int | None = None, quiet: bool = False) -> None:
    """Initialize Taichi, falling back to the CPU if the GPU is unavailable."""
    kwargs = {"log_level": ti.WARN if quiet else ti.INFO}
    if seed is not None:
        kwargs["random_seed"] = seed

    if arch == "gpu":
        try:
            ti.init(arch=ti.gpu, **kwargs)
            logger.info("Using GPU backend")
            return
        except RuntimeError as e:
            logger.warning("GPU backend unavailable (%s), falling back to CPU", e)
    ti.init(arch=ti.cpu, **kwargs)
    logger.info("Using CPU backend")


def _default_output(args: argparse.Namespace) -> Path:
    if args.output is not None:
        return args.output
    if args.command == "render":
        return args.config.with_suffix(".png")
    return Path(f"{args.name}.png")


def _render_and_save(config, output: Path) -> None:
    # Lazy imports to allow Taichi initialization first
    from prayer.core.integrator import render
    from prayer.image import save_png

    if config.scene.is_empty():
        raise TraceError("Can't start tracing without a scene: no objects are configured")

    params = config.params
    width, height = params.resolution
    start = time.perf_counter()
    pixels = render(
        config.scene,
        config.camera,
        params.resolution,
        params.samples,
        params.max_light_bounces,
        params.exposure,
        params.gamma,
    )
    elapsed = time.perf_counter() - start

    save_png(pixels, width, height, output)
    logger.info(
        "Saved %dx%d image (%d spp) to %s in %.2fs",
        width,
        height,
        params.samples,
        output,
        elapsed,
    )


def _load(args: argparse.Namespace):
    # Lazy imports to allow Taichi initialization first
    from prayer.config import UserConfig, load_config

    if args.command == "render":
        config = load_config(args.config)
    else:
        from prayer.scene.presets import get_preset

        try:
            factory = get_preset(args.name)
        except KeyError as e:
            raise ConfigError(e.args[0]) from None
        scene, camera = factory()
        config = UserConfig(camera=camera, scene=scene)

    width, height = config.params.resolution
    resolution = None
    if args.width is not None or args.height is not None:
        resolution = (
            args.width if args.width is not None else width,
            args.height if args.height is not None else height,
        )

    return config.with_overrides(
        resolution=resolution,
        samples=args.samples,
        max_light_bounces=args.bounces,
        exposure=args.exposure,
        gamma=args.gamma,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point.

    Returns:
        0 on success, 1 on failure.
    """
    args = build_parser().parse_args(argv)

    if args.command == "presets":
        from prayer.scene.presets import preset_names

        for name in preset_names():
            print(name)
        return 0

    configure_logging(verbose=args.verbose, quiet=args.quiet)

    output = _default_output(args)
    if output.exists() and not args.force:
        logger.error("%s already exists; pass --force to overwrite it", output)
        return 1

    init_taichi(args.arch, seed=args.seed, quiet=not args.verbose)

    try:
        config = _load(args)
        _render_and_save(config, output)
    except (ConfigError, TraceError) as e:
        logger.error("%s", e)
        return 1
    except (ValueError, RuntimeError, OSError) as e:
        logger.error("Render failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
