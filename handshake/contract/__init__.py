"""
Contract layer: what a consumer expects of a provider.

Nothing in here does network I/O except ``load_document`` for broker URLs.
"""

from .document import contract_filename, document_from_dict, document_to_dict, load_document, read_document, write_document
from .ledger import InteractionLedger
from .matchers import (
    EachLike,
    Equals,
    Like,
    Literal,
    Mismatch,
    MatchResult,
    SomethingLike,
    Term,
    generate,
    match,
    match_headers,
    match_query,
)
from .models import ContractDocument, Interaction, InteractionRequest, InteractionResponse, Outcome, SpecVersion

__all__ = [
    "ContractDocument",
    "EachLike",
    "Equals",
    "Interaction",
    "InteractionLedger",
    "InteractionRequest",
    "InteractionResponse",
    "Like",
    "Literal",
    "MatchResult",
    "Outcome",
    "Mismatch",
    "SomethingLike",
    "SpecVersion",
    "Term",
    "contract_filename",
    "document_from_dict",
    "document_to_dict",
    "generate",
    "load_document",
    "match",
    "match_headers",
    "match_query",
    "read_document",
    "write_document",
]
