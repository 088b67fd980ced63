#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from __future__ import annotations

import argparse
import logging
import sys

from .app import WikiScrollApp
from .config import load_feed_config, setup_logging

logger = logging.getLogger("wikiscroll")


# --- Entrypoint ---
def main() -> None:
    parser = argparse.ArgumentParser(description="Endless random Wikipedia in your terminal")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    debug_path = setup_logging(args.debug)
    if debug_path:
        print(f"Debug logging enabled: {debug_path}", file=sys.stderr)

    config = load_feed_config()
    logger.info("Using API endpoint: %s", config.api_url)

    try:
        app = WikiScrollApp(config=config)
        app.run()
    except Exception as e:
        logger.exception("Application crashed: %s", e)
        print(f"Application crashed: {e}", file=sys.stderr)


if __name__ == "__main__":
    main()
