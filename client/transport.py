"""
HTTP transport to the spreadsheet endpoint.

The endpoint is a deployed spreadsheet web app: GET returns the full state,
POST replaces it. Nothing here interprets the records.
"""

from typing import Any, Dict

import requests

from shared.logging_config import get_sync_logger

logger = get_sync_logger()

USER_AGENT = 'ShiftSync-Client/1.0'


class TransportError(Exception):
    """Raised when the endpoint cannot be reached or answers unusably"""
    pass


class SheetTransport:
    """Performs the full-state fetch and full-state replace calls"""

    def __init__(self, timeout: float = 10, session: requests.Session = None):
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': USER_AGENT
        })

    def fetch_state(self, url: str) -> Dict[str, Any]:
        """GET the full remote state as a mapping of collection name to records"""
        try:
            response = self._session.get(url, timeout=self.timeout, headers={'Cache-Control': 'no-cache'})
        except requests.RequestException as e:
            raise TransportError(f"GET failed: {e}") from e

        if not response.ok:
            raise TransportError(f"GET returned {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"GET returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise TransportError(f"GET returned {type(data).__name__}, expected an object")

        logger.debug(f"Fetched remote state with collections: {', '.join(data.keys())}")
        return data

    def push_state(self, url: str, payload: Dict[str, Any]) -> None:
        """POST the full state. The response is not inspected."""
        try:
            response = self._session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"POST failed: {e}") from e

        logger.debug(f"POST answered {response.status_code}")

    def close(self) -> None:
        self._session.close()
