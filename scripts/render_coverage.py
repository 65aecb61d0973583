#!/usr/bin/env python3
"""Render an investor's coverage areas (or all investors') to an HTML map.

The usage quota is checked first: once this month's map loads are used up
the static placeholder page is written instead of the live map.

Usage:
    python scripts/render_coverage.py --owner 42 --output out/coverage.html
    python scripts/render_coverage.py --global --config coverage.yaml -v

Environment:
    MAPBOX_TOKEN, COVERAGE_DATABASE_URL, COVERAGE_USAGE_FILE override the
    matching settings from --config.

Exit codes:
    0 map or static fallback written, 1 configuration or render failure,
    2 invalid arguments
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

import yaml

from domain.coverage.errors import StorageOperationFailedError
from domain.mapping.view import MapViewState
from infrastructure.config import load_settings
from infrastructure.factory import build_coverage_view, render_coverage_page

logger = logging.getLogger("render_coverage")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    scope = parser.add_mutually_exclusive_group(required=True)
    scope.add_argument("--owner", type=int, help="Investor id whose areas to render")
    scope.add_argument(
        "--global",
        dest="global_map",
        action="store_true",
        help="Render every investor's areas, coloured by investor",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("coverage_map.html"),
        help="HTML file to write (default: %(default)s)",
    )
    parser.add_argument("--config", type=Path, help="YAML settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Render the map.

    Returns:
        0 on map or fallback, 1 on configuration or render failure
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, yaml.YAMLError, ValueError) as e:
        # pydantic.ValidationError is a ValueError
        logger.error("Invalid configuration: %s", e)
        return 1
    view = build_coverage_view(settings, owner_id=None if args.global_map else args.owner)

    try:
        state = asyncio.run(render_coverage_page(view, args.output))
    except StorageOperationFailedError as e:
        logger.error("%s", e)
        return 1

    if state is MapViewState.READY:
        rendered = view.last_sync.rendered if view.last_sync else ()
        skipped = view.last_sync.skipped if view.last_sync else ()
        print(f"Map written to {args.output}: {len(rendered)} area(s), {len(skipped)} skipped")
        return 0
    if state is MapViewState.FALLBACK:
        print(f"Map load quota reached; static fallback written to {args.output}")
        return 0

    print(f"ERROR: Map failed to initialize: {view.error}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
