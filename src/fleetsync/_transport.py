"""JSON-over-HTTP transport shared by the store, search and cache tiers."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from fleetsync._redact import redact_for_log, redact_text
from fleetsync.exceptions import FleetSyncTransportError

_logger = logging.getLogger(__name__)

USER_AGENT = "fleetsync/0.1 (+aiohttp)"


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`RestTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        ...


class RestTransport:
    """HTTP transport bound to one base URL and a set of default headers."""

    def __init__(
        self,
        base_url: str,
        http_session: aiohttp.ClientSession,
        *,
        headers: Mapping[str, str] | None = None,
        trace: bool = False,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_session
        self._headers: dict[str, str] = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        if headers:
            self._headers.update(headers)
        self._trace = trace

    @property
    def base_url(self) -> str:
        return self._base_url

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        An empty response body decodes to ``None``.

        Raises
        ------
        FleetSyncTransportError
            On network errors, timeouts, non-2xx statuses or invalid JSON.
        """
        url = f"{self._base_url}{path}"
        merged_headers = dict(self._headers)
        if headers:
            merged_headers.update(headers)
        data: str | None = None
        if json_body is not None:
            data = json.dumps(json_body, separators=(",", ":"))
            merged_headers.setdefault("content-type", "application/json")

        _logger.debug("%s %s", method, redact_text(url))
        if self._trace:
            _logger.debug(
                "Request trace %s %s params=%s headers=%s body=%s",
                method,
                path,
                redact_for_log(dict(params or {})),
                redact_for_log(merged_headers),
                redact_for_log(json_body),
            )

        client_timeout = aiohttp.ClientTimeout(total=timeout) if timeout is not None else None
        try:
            async with self._http.request(
                method,
                url,
                params=params,
                data=data,
                headers=merged_headers,
                timeout=client_timeout,
            ) as resp:
                text = await resp.text()
                if resp.status < 200 or resp.status >= 300:
                    raise FleetSyncTransportError(
                        f"HTTP {resp.status} from {path}: {redact_text(text, max_string=200)}",
                        status_code=resp.status,
                        endpoint=path,
                    )
        except FleetSyncTransportError:
            raise
        except TimeoutError as exc:
            raise FleetSyncTransportError(
                f"Request to {path} timed out after {timeout} seconds",
                endpoint=path,
            ) from exc
        except aiohttp.ClientError as exc:
            raise FleetSyncTransportError(
                f"Request to {path} failed: network error: {exc}",
                endpoint=path,
            ) from exc

        if not text.strip():
            return None

        try:
            result = json.loads(text)
        except json.JSONDecodeError as exc:
            raise FleetSyncTransportError(
                f"Invalid JSON from {path}: {redact_text(text, max_string=200)}",
                status_code=resp.status,
                endpoint=path,
            ) from exc

        if self._trace:
            _logger.debug("Response trace %s %s body=%s", method, path, redact_for_log(result))
        return result
