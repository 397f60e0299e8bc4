import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class ProviderClient:
    """
    Consumer-side HTTP client for the provider service.

    Consumer tests point ``base_url`` at a MockProvider; in production it
    points at the real provider (API_HOST / API_PORT).
    """

    def __init__(self, base_url: Optional[str] = None, timeout: float = 10.0):
        if base_url is None:
            host = os.getenv("API_HOST", "http://localhost")
            port = os.getenv("API_PORT", "8080")
            base_url = f"{host}:{port}"
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def fetch_provider_data(self, valid_date: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Fetch the dated count from the provider.

        Returns:
            ``{"count": ..., "date": ...}``, or None when the provider has no
            data for the date (404).

        Raises:
            requests.HTTPError: For any other non-2xx response.
        """
        if valid_date is None:
            valid_date = datetime.now(timezone.utc).isoformat()
        url = f"{self.base_url}/provider"
        resp = requests.get(url, params={"validDate": valid_date}, timeout=self.timeout)
        if resp.status_code == 404:
            logger.info("Provider has no data for %s", valid_date)
            return None
        resp.raise_for_status()
        data = resp.json()
        return {"count": data.get("count"), "date": data.get("validDate")}
