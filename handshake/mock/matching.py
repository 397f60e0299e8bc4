"""
Request matching for the mock provider.

A request matches an interaction when method, path and query agree (path
and query values go through the matcher, so Term and Like are allowed),
every declared request header is present, and the body matches when the
interaction declares one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from handshake.contract.matchers import MatchResult, Mismatch, match, match_headers, match_query
from handshake.contract.models import Interaction
from handshake.utils.bodies import parse_body


@dataclass(frozen=True)
class ObservedRequest:
    method: str
    path: str
    query: Dict[str, List[str]] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None

    @classmethod
    def from_parts(
        cls,
        method: str,
        path: str,
        query_items: Sequence[Tuple[str, str]],
        headers: Dict[str, str],
        raw_body: bytes,
    ) -> "ObservedRequest":
        query: Dict[str, List[str]] = {}
        for name, value in query_items:
            query.setdefault(name, []).append(value)
        return cls(
            method=method.upper(),
            path=path,
            query=query,
            headers={k.lower(): v for k, v in headers.items()},
            body=parse_body(raw_body, headers),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "path": self.path,
            "query": self.query,
            "headers": self.headers,
            "body": self.body,
        }


def request_mismatches(interaction: Interaction, observed: ObservedRequest) -> MatchResult:
    expected = interaction.request
    result = MatchResult()
    if expected.method != observed.method:
        result.mismatches.append(Mismatch("$.method", expected.method, observed.method, "method differs"))
    result.extend(match(expected.path, observed.path, "$.path"))
    result.extend(match_query(expected.query, observed.query))
    result.extend(match_headers(expected.headers, observed.headers))
    if expected.body is not None:
        result.extend(match(expected.body, observed.body, "$.body"))
    return result


def select_candidates(interactions: Sequence[Interaction], observed: ObservedRequest) -> Tuple[List[int], Dict[str, List[str]]]:
    """
    Return indexes of every interaction matching ``observed`` in registration
    order, plus the mismatch descriptions of the ones that did not match.
    """
    candidates: List[int] = []
    diagnostics: Dict[str, List[str]] = {}
    for index, interaction in enumerate(interactions):
        result = request_mismatches(interaction, observed)
        if result.ok:
            candidates.append(index)
        else:
            diagnostics[interaction.label()] = [m.describe() for m in result.mismatches]
    return candidates, diagnostics
