"""
Error types shared by the contract, mock, verifier and broker layers.

Two families live here:
- exceptions, raised when the harness itself is mis-wired (fatal)
- FailureKind, the tag on every failure that is captured into a result
  instead of being raised
"""

from enum import Enum
from typing import List


class FailureKind(str, Enum):
    MATCH = "MATCH"
    UNEXPECTED_REQUEST = "UNEXPECTED_REQUEST"
    UNUSED_INTERACTION = "UNUSED_INTERACTION"
    STATE_SETUP = "STATE_SETUP"
    REQUEST = "REQUEST"
    TIMEOUT = "TIMEOUT"
    PUBLISH = "PUBLISH"


class HandshakeError(Exception):
    """Base class for every error raised by handshake."""


class ConfigurationError(HandshakeError):
    """The test harness is mis-wired; the run cannot continue."""


class ContractDocumentError(ConfigurationError):
    """A contract document could not be read or is malformed."""


class MockStateError(ConfigurationError):
    """A mock provider operation was called in the wrong lifecycle state."""


class MockVerificationError(HandshakeError):
    def __init__(self, failures: List[str]):
        self.failures = list(failures)
        lines = "\n".join(f"  - {f}" for f in self.failures)
        super().__init__(f"Mock provider verification failed:\n{lines}")


class BrokerError(HandshakeError):
    """The broker was unreachable or rejected a call."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
