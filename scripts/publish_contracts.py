#!/usr/bin/env python3
"""
Publish contract documents to the broker.

Usage:
  python scripts/publish_contracts.py pacts/our_little_consumer-our_provider.json \
      --consumer-version 1.0.0 --tag prod --tag test

Broker URL and credentials come from config/handshake.yml or the
PACT_BROKER_URL / PACT_BROKER_USERNAME / PACT_BROKER_PASSWORD env vars.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from handshake.broker import BrokerClient
from handshake.errors import HandshakeError
from handshake.utils.config_loader import load_config, setup_logging

logger = logging.getLogger("publish_contracts")


def main() -> int:
    parser = argparse.ArgumentParser(description="Publish contract documents to the broker")
    parser.add_argument("files", nargs="+", type=Path)
    parser.add_argument("--config", type=Path, default=None, help="Path to handshake.yml")
    parser.add_argument("--consumer-version", default=None)
    parser.add_argument("--tag", action="append", default=None, help="Consumer version tag (repeatable)")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    cfg = load_config(args.config)
    setup_logging(cfg, args.verbose)

    if not cfg.broker.url:
        logger.error("No broker URL configured (set broker.url or PACT_BROKER_URL)")
        return 2

    version = args.consumer_version or cfg.broker.consumer_version
    tags = args.tag or cfg.broker.tags

    failed = 0
    with BrokerClient(cfg.broker.url, cfg.broker.username, cfg.broker.password) as broker:
        for path in args.files:
            try:
                broker.publish_contract_file(path, version, tags)
                print(f"Published {path} as version {version} (tags: {', '.join(tags) or 'none'})")
            except HandshakeError as e:
                failed += 1
                logger.error("Contract publishing failed for %s: %s", path, e)

    if failed:
        return 1
    print(f"Contract publishing complete! See {cfg.broker.url}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
