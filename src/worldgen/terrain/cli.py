"""Command-line interface for world generation."""

import argparse
import sys
import time
import tomllib
from pathlib import Path

import structlog


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for world generation."""
    parser = argparse.ArgumentParser(description="Generate a procedural world")
    parser.add_argument("--width", type=int, default=256, help="World width (default: 256)")
    parser.add_argument("--height", type=int, default=256, help="World height (default: 256)")
    parser.add_argument("--seed", type=int, default=12345, help="Random seed (default: 12345)")
    parser.add_argument(
        "--config", "-c", type=str, default=None, help="Path to a TOML config file"
    )
    parser.add_argument(
        "--settlements", type=int, default=5, help="Settlement sites to list (default: 5)"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    args = parser.parse_args(argv)

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(10 if args.verbose else 20),
    )
    logger = structlog.get_logger()

    # Import here to avoid slow startup for --help
    from ..config import GenerationConfig, load_config
    from ..exceptions import ConfigValidationError, WorldGenError
    from .generator import generate_world

    try:
        config = load_config(Path(args.config)) if args.config else GenerationConfig()
    except FileNotFoundError:
        logger.error("config_not_found", path=args.config)
        return 1
    except tomllib.TOMLDecodeError as e:
        logger.error("config_invalid", path=args.config, error=str(e))
        return 1
    except ConfigValidationError as e:
        logger.error("config_invalid", path=args.config, errors=e.errors)
        return 1

    print(f"Generating {args.width}x{args.height} world with seed {args.seed}")
    print()

    start_time = time.time()
    try:
        world = generate_world(args.seed, args.width, args.height, config)
    except WorldGenError as e:
        logger.error("generation_failed", error=str(e))
        return 1
    gen_time = time.time() - start_time

    print()
    print(f"Generation complete in {gen_time:.1f}s")
    print(f"Plates: {len(world.plates)}  Rivers: {len(world.rivers)}  Lakes: {len(world.lakes)}")
    print(f"Ley lines: {len(world.ley_lines)}  Deposits: {len(world.resources)}")
    print(f"Dungeons: {len(world.dungeons)}  Creatures: {len(world.creatures)}")
    print(
        f"Population: {world.ecology.total_population}  "
        f"Species: {world.ecology.total_species}  "
        f"Forest cover: {world.ecology.forest_cover:.1%}"
    )

    print()
    print("Biomes:")
    total = world.width * world.height
    for biome, count in world.biome_histogram().items():
        if count:
            print(f"  {biome.value:<14} {count:>8}  {count / total:6.1%}")

    if args.settlements > 0 and world.settlements:
        print()
        print("Settlement sites:")
        for site in world.settlements[: args.settlements]:
            water = "river" if site.fresh_water else "dry"
            print(f"  ({site.cell[0]}, {site.cell[1]})  score={site.score:.3f}  {water}")

    print()
    print(f"Digest: {world.digest()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
