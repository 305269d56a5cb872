"""Small HTTP helpers that fetch and decode JSON."""

from __future__ import annotations

import warnings
from typing import Any

import requests

HTTP_TIMEOUT = 30.0


class HTTPFetch:
    """Generic HTTP fetcher with a request timeout."""

    def __init__(self, timeout: float = HTTP_TIMEOUT) -> None:
        self.timeout = timeout
        self._session = requests.Session()

    def json(self, url: str) -> Any:
        """GET ``url`` and return its decoded JSON body."""
        with self._session.get(url, timeout=self.timeout) as response:
            return response.json()


def get_json(url: str) -> Any:
    """GET ``url`` without TLS verification or compression and decode the JSON."""
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", message="Unverified HTTPS request")
        response = requests.get(
            url,
            timeout=HTTP_TIMEOUT,
            verify=False,
            headers={"Accept-Encoding": "identity"},
        )
    with response:
        return response.json()