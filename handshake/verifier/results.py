"""
Verification results.

Results are derived from a run and never persisted, except as the payload
published to a broker.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from handshake.contract.matchers import Mismatch
from handshake.contract.models import Interaction, Outcome


@dataclass
class InteractionResult:
    consumer_name: str
    interaction: Interaction
    mismatches: List[Mismatch] = field(default_factory=list)

    @property
    def outcome(self) -> Outcome:
        return Outcome.PASS if not self.mismatches else Outcome.FAIL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "consumer": self.consumer_name,
            "description": self.interaction.description,
            "providerState": self.interaction.provider_state,
            "outcome": self.outcome.value,
            "mismatches": [m.to_dict() for m in self.mismatches],
        }


@dataclass
class VerificationResult:
    provider_name: str
    interaction_results: List[InteractionResult] = field(default_factory=list)
    notices: List[str] = field(default_factory=list)
    publish_errors: List[str] = field(default_factory=list)

    @property
    def outcome(self) -> Outcome:
        if all(r.outcome == Outcome.PASS for r in self.interaction_results):
            return Outcome.PASS
        return Outcome.FAIL

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.PASS

    def failures(self) -> List[InteractionResult]:
        return [r for r in self.interaction_results if r.outcome == Outcome.FAIL]

    def for_consumer(self, consumer_name: str) -> List[InteractionResult]:
        return [r for r in self.interaction_results if r.consumer_name == consumer_name]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider_name,
            "outcome": self.outcome.value,
            "interactions": [r.to_dict() for r in self.interaction_results],
            "notices": list(self.notices),
            "publishErrors": list(self.publish_errors),
        }

    def summary(self) -> str:
        """Human-readable report listing every failing interaction with its diff."""
        passed = len(self.interaction_results) - len(self.failures())
        lines = [
            f"Verification of {self.provider_name}: {self.outcome.value} "
            f"({passed}/{len(self.interaction_results)} interactions passed)"
        ]
        for result in self.failures():
            lines.append(f"  FAIL [{result.consumer_name}] {result.interaction.label()}")
            for mismatch in result.mismatches:
                lines.append(f"    - {mismatch.kind.value} {mismatch.describe()}")
        for notice in self.notices:
            lines.append(f"  NOTE {notice}")
        for error in self.publish_errors:
            lines.append(f"  PUBLISH FAILED {error}")
        return "\n".join(lines)
