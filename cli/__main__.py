"""
Entry point for running chorus as a module.

Usage:
    python -m cli providers
    python -m cli ask --provider claude "Explain CRDTs"
    python -m cli refine "and what about offline edits?" --author-model claude
"""

import asyncio
import logging
import os

from dotenv import load_dotenv

from .commands import main


def run():
    load_dotenv()
    logging.basicConfig(
        level=os.environ.get("CHORUS_LOG_LEVEL", "WARNING").upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(main())


if __name__ == "__main__":
    run()
