"""
Contract document codec.

Documents are written in the Pact v2 layout: request and response values
hold the generated examples and the matcher tree travels alongside as
JSON-path keyed ``matchingRules``. On read, the rules are folded back into
matcher nodes so the verifier can judge responses with the same tree the
consumer recorded. Pact v3 rule layouts and query maps are accepted on read.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qs

import requests

from handshake.contract.matchers import child_path, from_matching_rules, generate, to_matching_rules
from handshake.contract.models import (
    ContractDocument,
    Interaction,
    InteractionRequest,
    InteractionResponse,
    SpecVersion,
)
from handshake.errors import ContractDocumentError

logger = logging.getLogger(__name__)


def contract_filename(consumer_name: str, provider_name: str) -> str:
    """``Our Little Consumer`` + ``Our Provider`` -> ``our_little_consumer-our_provider.json``."""

    def _slug(name: str) -> str:
        return "_".join(name.lower().split())

    return f"{_slug(consumer_name)}-{_slug(provider_name)}.json"


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def interaction_to_dict(interaction: Interaction) -> Dict[str, Any]:
    req = interaction.request
    resp = interaction.response

    request: Dict[str, Any] = {"method": req.method, "path": generate(req.path)}
    request_rules = to_matching_rules(req.path, "$.path")
    if req.query:
        request["query"] = generate(req.query)
        request_rules.update(to_matching_rules(req.query, "$.query"))
    if req.headers:
        request["headers"] = generate(req.headers)
        request_rules.update(to_matching_rules(req.headers, "$.headers"))
    if req.body is not None:
        request["body"] = generate(req.body)
        request_rules.update(to_matching_rules(req.body, "$.body"))
    if request_rules:
        request["matchingRules"] = request_rules

    response: Dict[str, Any] = {"status": resp.status}
    response_rules: Dict[str, Any] = {}
    if resp.headers:
        response["headers"] = generate(resp.headers)
        response_rules.update(to_matching_rules(resp.headers, "$.headers"))
    if resp.body is not None:
        response["body"] = generate(resp.body)
        response_rules.update(to_matching_rules(resp.body, "$.body"))
    if response_rules:
        response["matchingRules"] = response_rules

    data: Dict[str, Any] = {"description": interaction.description}
    if interaction.provider_state:
        data["providerState"] = interaction.provider_state
    data["request"] = request
    data["response"] = response
    return data


def document_to_dict(document: ContractDocument) -> Dict[str, Any]:
    return {
        "consumer": {"name": document.consumer_name},
        "provider": {"name": document.provider_name},
        "interactions": [interaction_to_dict(i) for i in document.interactions],
        "metadata": {"pactSpecification": {"version": document.spec_version.value}},
    }


def write_document(document: ContractDocument, directory: Union[str, Path]) -> Path:
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / contract_filename(document.consumer_name, document.provider_name)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document_to_dict(document), f, indent=2)
        f.write("\n")
    logger.info("Wrote contract with %d interaction(s) to %s", len(document.interactions), path)
    return path


# ---------------------------------------------------------------------------
# Deserialization
# ---------------------------------------------------------------------------

def _normalize_query(raw: Any) -> Dict[str, Any]:
    if not raw:
        return {}
    if isinstance(raw, str):
        raw = parse_qs(raw, keep_blank_values=True)
    if not isinstance(raw, Mapping):
        raise ContractDocumentError(f"Unsupported query format: {raw!r}")
    return {
        name: value[0] if isinstance(value, list) and len(value) == 1 else value
        for name, value in raw.items()
    }


def _flatten_v3_rules(rules: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Convert v3 category-nested rules into the flat v2 form."""
    flat: Dict[str, Dict[str, Any]] = {}
    for category, entries in rules.items():
        if category == "path":
            matchers = entries.get("matchers") or []
            if matchers:
                flat["$.path"] = dict(matchers[0])
            continue
        prefix = {"body": "$.body", "header": "$.headers", "query": "$.query"}.get(category)
        if prefix is None:
            continue
        for key, entry in entries.items():
            matchers = entry.get("matchers") or []
            if not matchers:
                continue
            if category == "body":
                path = prefix + key[1:] if key.startswith("$") else child_path(prefix, key)
            else:
                path = child_path(prefix, key)
            flat[path] = dict(matchers[0])
    return flat


def _rules(section: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    rules = section.get("matchingRules") or {}
    if any(not key.startswith("$") for key in rules):
        return _flatten_v3_rules(rules)
    return dict(rules)


def interaction_from_dict(data: Mapping[str, Any]) -> Interaction:
    try:
        req = data["request"]
        resp = data["response"]
        request_rules = _rules(req)
        response_rules = _rules(resp)
        request = InteractionRequest(
            method=req["method"],
            path=from_matching_rules(req["path"], request_rules, "$.path"),
            query=from_matching_rules(_normalize_query(req.get("query")), request_rules, "$.query"),
            headers=from_matching_rules(req.get("headers"), request_rules, "$.headers"),
            body=from_matching_rules(req.get("body"), request_rules, "$.body"),
        )
        response = InteractionResponse(
            status=int(resp["status"]),
            headers=from_matching_rules(resp.get("headers"), response_rules, "$.headers"),
            body=from_matching_rules(resp.get("body"), response_rules, "$.body"),
        )
        return Interaction(
            description=data["description"],
            request=request,
            response=response,
            provider_state=data.get("providerState") or _first_v3_state(data),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ContractDocumentError(f"Malformed interaction {data.get('description')!r}: {exc}") from exc


def _first_v3_state(data: Mapping[str, Any]) -> Optional[str]:
    states = data.get("providerStates") or []
    return states[0].get("name") if states else None


def document_from_dict(data: Mapping[str, Any]) -> ContractDocument:
    try:
        consumer = data["consumer"]["name"]
        provider = data["provider"]["name"]
        raw_interactions = data.get("interactions") or []
        version = ((data.get("metadata") or {}).get("pactSpecification") or {}).get("version", "2.0.0")
        spec_version = SpecVersion(version)
    except (KeyError, TypeError, ValueError) as exc:
        raise ContractDocumentError(f"Malformed contract document: {exc}") from exc
    interactions = tuple(interaction_from_dict(i) for i in raw_interactions)
    if not interactions:
        raise ContractDocumentError(f"Contract between {consumer!r} and {provider!r} has no interactions")
    return ContractDocument(consumer, provider, interactions, spec_version)


def read_document(path: Union[str, Path]) -> ContractDocument:
    path = Path(path)
    if not path.exists():
        raise ContractDocumentError(f"Contract file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ContractDocumentError(f"Contract file {path} is not valid JSON: {exc}") from exc
    return document_from_dict(data)


def load_document(
    source: Union[str, Path],
    auth: Optional[Tuple[str, str]] = None,
    timeout: float = 10.0,
    session: Optional[requests.Session] = None,
) -> ContractDocument:
    """Load a contract from a local path or an http(s) URL (e.g. a broker)."""
    source_str = str(source)
    if not source_str.startswith(("http://", "https://")):
        return read_document(source_str)

    http = session or requests
    try:
        resp = http.get(source_str, auth=auth, timeout=timeout, headers={"Accept": "application/json"})
        resp.raise_for_status()
        data = resp.json()
    except requests.exceptions.RequestException as exc:
        raise ContractDocumentError(f"Could not fetch contract from {source_str}: {exc}") from exc
    except ValueError as exc:
        raise ContractDocumentError(f"Contract at {source_str} is not valid JSON: {exc}") from exc
    logger.info("Fetched contract from %s", source_str)
    return document_from_dict(data)
