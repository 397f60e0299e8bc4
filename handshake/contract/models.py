from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class SpecVersion(str, Enum):
    V2 = "2.0.0"
    V3 = "3.0.0"


class Outcome(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


# ---------------------------------------------------------------------------
# Interactions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InteractionRequest:
    method: str
    path: Any                            # plain string or a Term
    query: Dict[str, Any] = field(default_factory=dict)
    headers: Optional[Dict[str, Any]] = None
    body: Any = None                     # None means "not part of the expectation"

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "query", dict(self.query or {}))


@dataclass(frozen=True)
class InteractionResponse:
    status: int
    headers: Optional[Dict[str, Any]] = None
    body: Any = None


@dataclass(frozen=True)
class Interaction:
    description: str
    request: InteractionRequest
    response: InteractionResponse
    provider_state: Optional[str] = None

    def label(self) -> str:
        if self.provider_state:
            return f"{self.description} (given {self.provider_state})"
        return self.description


# ---------------------------------------------------------------------------
# Contract document
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ContractDocument:
    consumer_name: str
    provider_name: str
    interactions: Tuple[Interaction, ...]
    spec_version: SpecVersion = SpecVersion.V2

    def __post_init__(self) -> None:
        object.__setattr__(self, "interactions", tuple(self.interactions))

    def provider_states(self) -> List[str]:
        """Distinct provider states referenced by this document, in order of first use."""
        seen: List[str] = []
        for interaction in self.interactions:
            if interaction.provider_state and interaction.provider_state not in seen:
                seen.append(interaction.provider_state)
        return seen
