"""
Consumer-side ledger of expected interactions.

The ledger only accumulates; it never reorders or de-duplicates. A mock
provider run owns exactly one ledger and is its only writer.
"""

from __future__ import annotations

import logging
from typing import List, Tuple

from handshake.contract.models import ContractDocument, Interaction, SpecVersion
from handshake.errors import ConfigurationError

logger = logging.getLogger(__name__)


class InteractionLedger:
    def __init__(self) -> None:
        self._interactions: List[Interaction] = []

    def add_interaction(self, interaction: Interaction) -> None:
        self._interactions.append(interaction)
        logger.debug("Recorded interaction #%d: %s", len(self._interactions), interaction.label())

    def all_interactions(self) -> Tuple[Interaction, ...]:
        return tuple(self._interactions)

    def __len__(self) -> int:
        return len(self._interactions)

    def to_document(
        self,
        consumer_name: str,
        provider_name: str,
        spec_version: SpecVersion = SpecVersion.V2,
    ) -> ContractDocument:
        """
        Project the recorded interactions into a contract document.

        Raises:
            ConfigurationError: If no interaction was recorded. An empty
                contract is not a valid deliverable.
        """
        if not self._interactions:
            raise ConfigurationError(
                f"No interactions recorded between {consumer_name!r} and {provider_name!r}; "
                "refusing to build an empty contract"
            )
        return ContractDocument(
            consumer_name=consumer_name,
            provider_name=provider_name,
            interactions=tuple(self._interactions),
            spec_version=spec_version,
        )
