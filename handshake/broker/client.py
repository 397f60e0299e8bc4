"""
Broker HTTP client.

The broker is an opaque remote store for contract documents and
verification results. This client is the only place where broker HTTP
calls are made; every transport or HTTP error surfaces as BrokerError.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union
from urllib.parse import quote

import requests
from requests.auth import HTTPBasicAuth

from handshake.contract.document import document_to_dict, read_document
from handshake.contract.models import ContractDocument
from handshake.errors import BrokerError

logger = logging.getLogger(__name__)


def _seg(value: str) -> str:
    return quote(value, safe="")


class BrokerClient:
    def __init__(
        self,
        base_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.auth = HTTPBasicAuth(username, password) if username else None
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session or requests.Session()

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "BrokerClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method,
                url,
                json=payload,
                auth=self.auth,
                timeout=self.timeout,
                headers={"Accept": "application/hal+json, application/json"},
            )
        except requests.exceptions.RequestException as exc:
            raise BrokerError(f"{method} {url} failed: {exc}") from exc
        if not resp.ok:
            raise BrokerError(f"{method} {url} returned {resp.status_code}: {resp.text[:200]}", resp.status_code)
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            return {}

    # --- Consumer side --------------------------------------------------------

    def publish_contract(
        self,
        document: ContractDocument,
        consumer_version: str,
        tags: Iterable[str] = (),
    ) -> Dict[str, Any]:
        path = (
            f"/pacts/provider/{_seg(document.provider_name)}"
            f"/consumer/{_seg(document.consumer_name)}/version/{_seg(consumer_version)}"
        )
        result = self._request("PUT", path, document_to_dict(document))
        for tag in tags:
            self.tag_version(document.consumer_name, consumer_version, tag)
        logger.info(
            "Published contract %s -> %s version %s",
            document.consumer_name,
            document.provider_name,
            consumer_version,
        )
        return result

    def publish_contract_file(
        self,
        path: Union[str, Path],
        consumer_version: str,
        tags: Iterable[str] = (),
    ) -> Dict[str, Any]:
        return self.publish_contract(read_document(path), consumer_version, tags)

    def tag_version(self, pacticipant: str, version: str, tag: str) -> Dict[str, Any]:
        path = f"/pacticipants/{_seg(pacticipant)}/versions/{_seg(version)}/tags/{_seg(tag)}"
        return self._request("PUT", path, {})

    # --- Provider side --------------------------------------------------------

    def publish_verification_result(
        self,
        consumer_name: str,
        provider_name: str,
        success: bool,
        provider_version: str,
        tags: Iterable[str] = (),
        test_results: Optional[Any] = None,
    ) -> Dict[str, Any]:
        tags = list(tags)
        path = f"/pacts/provider/{_seg(provider_name)}/consumer/{_seg(consumer_name)}/verification-results"
        payload: Dict[str, Any] = {
            "success": success,
            "providerApplicationVersion": provider_version,
        }
        if tags:
            payload["providerVersionTags"] = tags
        if test_results is not None:
            payload["testResults"] = test_results
        result = self._request("POST", path, payload)
        for tag in tags:
            self.tag_version(provider_name, provider_version, tag)
        logger.info("Published verification result for %s -> %s: success=%s", consumer_name, provider_name, success)
        return result
