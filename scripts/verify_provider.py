#!/usr/bin/env python3
"""
Verify a running provider against one or more contract documents.

Usage:
  python scripts/verify_provider.py --base-url http://localhost:8080 \
      pacts/our_little_consumer-our_provider.json

State setup/discovery URLs default to <base-url>/setup and <base-url>/states.
Exit code is 0 when every interaction passed, 1 otherwise.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from handshake.errors import ConfigurationError
from handshake.utils.config_loader import load_config, setup_logging
from handshake.verifier import Verifier, VerifierOptions

logger = logging.getLogger("verify_provider")


def main() -> int:
    parser = argparse.ArgumentParser(description="Verify a provider against contract documents")
    parser.add_argument("sources", nargs="+", help="Contract file paths or broker URLs")
    parser.add_argument("--config", type=Path, default=None, help="Path to handshake.yml")
    parser.add_argument("--provider", default=None, help="Provider name (defaults to config mock.provider)")
    parser.add_argument("--base-url", required=True, help="Base URL of the running provider")
    parser.add_argument("--setup-url", default=None)
    parser.add_argument("--states-url", default=None)
    parser.add_argument("--no-states", action="store_true", help="Do not call the state endpoints")
    parser.add_argument("--publish", action="store_true", help="Publish results to the broker")
    parser.add_argument("--provider-version", default=None)
    parser.add_argument("--tag", action="append", default=None, help="Provider version tag (repeatable)")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    cfg = load_config(args.config)
    setup_logging(cfg, args.verbose)

    base_url = args.base_url.rstrip("/")
    options = VerifierOptions(
        provider=args.provider or cfg.mock.provider,
        provider_base_url=base_url,
        pact_sources=args.sources,
        state_setup_url=None if args.no_states else (args.setup_url or f"{base_url}/setup"),
        state_discovery_url=None if args.no_states else (args.states_url or f"{base_url}/states"),
        broker_url=cfg.broker.url,
        broker_username=cfg.broker.username,
        broker_password=cfg.broker.password,
        publish_verification_results=args.publish or cfg.verification.publish_results,
        provider_version=args.provider_version or cfg.verification.provider_version,
        provider_tags=args.tag or cfg.verification.provider_tags,
        request_timeout=cfg.verification.request_timeout,
        timeout=cfg.verification.timeout,
    )

    try:
        with Verifier() as verifier:
            result = verifier.verify_provider(options)
    except ConfigurationError as e:
        logger.error("Verification could not run: %s", e)
        return 2

    print(result.summary())
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
