#!/usr/bin/env python3
"""Seed scoring prompts.

Upserts the built-in sport guidelines and the per-spot system prompt layer.
Safe to re-run; existing rows are refreshed, never duplicated.
"""

import sys
import logging

from dotenv import load_dotenv

load_dotenv()

from core.database import get_db_sync  # noqa: E402
from core.logging import setup_logging  # noqa: E402
from services.scoring_prompts import seed_scoring_prompts, seed_system_sport_prompts  # noqa: E402

logger = logging.getLogger(__name__)


def main():
    setup_logging()

    db = get_db_sync()
    try:
        sports = seed_system_sport_prompts(db)
        spots = seed_scoring_prompts(db)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Prompt seeding failed: {e}", exc_info=True)
        sys.exit(1)
    finally:
        db.close()

    logger.info(
        f"Seeded sport guidelines ({sports['created']} created, {sports['updated']} updated) "
        f"and spot prompts ({spots['created']} created, {spots['updated']} updated)"
    )


if __name__ == '__main__':
    main()
