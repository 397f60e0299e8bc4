"""
handshake - consumer-driven contract testing for small HTTP services.

This package wires together:
- contract: matcher tree, interactions, ledger and the contract document codec
- mock: the consumer-side mock provider used while recording interactions
- provider: the real provider service, its backing store and provider states
- consumer: the HTTP client that talks to the provider
- verifier: replays contract documents against a live provider
- broker: publishes contracts and verification results

Key rule:
- Consumer tests talk to the mock provider only.
- Provider verification talks to a running provider only.
"""

__version__ = "1.0.0"
