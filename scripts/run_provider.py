#!/usr/bin/env python3
"""
Serve the provider service (business endpoint + provider-state endpoints).

Usage:
  python scripts/run_provider.py [--port 8080] [--no-states]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

import uvicorn

from handshake.provider import ProviderDataStore, create_provider_app
from handshake.utils.config_loader import load_config, setup_logging

logger = logging.getLogger("run_provider")


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the provider service")
    parser.add_argument("--config", type=Path, default=None, help="Path to handshake.yml")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--no-states", action="store_true", help="Do not expose /setup and /states")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    cfg = load_config(args.config)
    setup_logging(cfg, args.verbose)

    host = args.host or cfg.provider.host
    port = args.port or cfg.provider.port
    app = create_provider_app(
        store=ProviderDataStore(cfg.provider.initial_count),
        enable_states=not args.no_states,
    )
    logger.info("Provider Service listening on http://%s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_level=cfg.logging.level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
