"""Shared HTTP plumbing for the OpenAI-compatible endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import requests

from .errors import AuthError, NetworkError, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT = 60.0

_BODY_PREVIEW = 500


class OpenAIHTTPClient:
    """Issues single POST requests and maps every failure onto the error taxonomy.

    The blocking ``requests`` call runs in a worker thread so the event loop
    stays free while waiting on the network. No retries are attempted.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key or ""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def post(self, path: str, **kwargs: Any) -> Dict[str, Any]:
        """POST off the event loop, bounded by ``timeout`` for the whole exchange.

        ``requests`` only bounds connect and each individual read.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.post_sync, path, **kwargs), self.timeout
            )
        except asyncio.TimeoutError as exc:
            url = self.url_for(path)
            logger.warning("Request to %s exceeded %.1f s in total", url, self.timeout)
            raise NetworkError(f"Request to {url} timed out") from exc

    def post_sync(self, path: str, **kwargs: Any) -> Dict[str, Any]:
        if not self._api_key:
            raise AuthError("OPENAI_API_KEY is not set")

        url = self.url_for(path)
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            response = self._session.post(url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.Timeout as exc:
            logger.warning("Request to %s timed out after %.1f s", url, self.timeout)
            raise NetworkError(f"Request to {url} timed out") from exc
        except requests.RequestException as exc:
            logger.warning("Request to %s failed: %s", url, exc)
            raise NetworkError(f"Unable to reach {url}") from exc

        body = response.text[:_BODY_PREVIEW]
        if response.status_code in (401, 403):
            raise AuthError(
                f"Credential rejected by {url} ({response.status_code})",
                status_code=response.status_code,
                body=body,
            )
        if not 200 <= response.status_code < 300:
            logger.warning("%s answered %d: %s", url, response.status_code, body)
            raise UpstreamError(
                f"{url} answered with status {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"{url} returned a non-JSON body",
                status_code=response.status_code,
                body=body,
            ) from exc
        if not isinstance(data, dict):
            raise UpstreamError(
                f"{url} returned an unexpected body",
                status_code=response.status_code,
                body=body,
            )
        return data
