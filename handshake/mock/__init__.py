"""
Consumer-side mock provider.

Consumer tests point their client at ``MockProvider.url`` instead of the
real provider; the interactions they register become the contract.
"""

from .matching import ObservedRequest, request_mismatches
from .server import MockProvider, MockState, MockVerification, UnexpectedRequest, create_mock_app

__all__ = [
    "MockProvider",
    "MockState",
    "MockVerification",
    "ObservedRequest",
    "UnexpectedRequest",
    "create_mock_app",
    "request_mismatches",
]
