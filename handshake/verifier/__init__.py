from .options import VerifierOptions
from .results import InteractionResult, VerificationResult
from .verifier import Verifier, compare_response, verify_provider

__all__ = [
    "InteractionResult",
    "VerificationResult",
    "Verifier",
    "VerifierOptions",
    "compare_response",
    "verify_provider",
]
