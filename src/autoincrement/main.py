"""Command line entry point: print the next value of one or more sequences."""

import argparse
import asyncio

from autoincrement.config import Config
from autoincrement.core.core import Core
from autoincrement.logging import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="autoincrement-next", description=__doc__)
    parser.add_argument("sequences", nargs="+", metavar="NAME", help="sequence names to increment")
    parser.add_argument("--field", default=None, help="field the sequence feeds (default: configured field)")
    return parser.parse_args(argv)


async def run(core: Core, sequences: list[str], field_name: str | None) -> list[int]:
    async with core.lifespan():
        return [await core.next_sequence(name, field_name) for name in sequences]


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    config = Config()
    setup_logging(config.debug)
    values = asyncio.run(run(Core(config), args.sequences, args.field))
    for name, value in zip(args.sequences, values, strict=True):
        print(f"{name}\t{value}")


if __name__ == "__main__":
    main()
