"""
Seed the storefront catalog with the default categories.

Extra categories can be supplied as a JSON list of
{"id", "name", "icon", "description"} objects.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from shared.types import DEFAULT_CATEGORIES, CategorySeed
from storefront.db import seed_categories
from storefront.dependencies import get_db_client


logger = logging.getLogger(__name__)


def load_seeds(path: Path) -> List[CategorySeed]:
    items = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(items, list):
        raise ValueError(f"{path} must contain a JSON list")
    return [
        CategorySeed(
            id=item["id"],
            name=item["name"],
            icon=item.get("icon", ""),
            description=item.get("description", ""),
        )
        for item in items
    ]


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed storefront categories")
    parser.add_argument(
        "--extra",
        type=Path,
        default=None,
        help="JSON file with additional categories",
    )
    parser.add_argument(
        "--skip-defaults",
        action="store_true",
        help="Only seed the categories from --extra",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report which categories are missing without saving",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    seeds: List[CategorySeed] = [] if args.skip_defaults else list(DEFAULT_CATEGORIES)
    if args.extra:
        try:
            seeds.extend(load_seeds(args.extra))
        except (OSError, ValueError, KeyError) as exc:
            logger.error("Could not read %s: %s", args.extra, exc)
            return 1

    db = get_db_client()
    if args.dry_run:
        missing = [seed.id for seed in seeds if not db.get_category(seed.id)]
        logger.info("Missing categories: %s", ", ".join(missing) or "none")
        return 0

    created = seed_categories(db, seeds)
    logger.info("Created %d categories", len(created))
    return 0


if __name__ == "__main__":
    sys.exit(main())
