"""Shared (out-of-process) cache tier.

The production implementation talks to a Redis REST endpoint (Upstash
style: one ``POST /`` per command, body is the command as a JSON array,
reply is ``{"result": ...}`` or ``{"error": ...}``). Values are stored as
JSON text with a server-side expiry.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from fleetsync._transport import Transport
from fleetsync.exceptions import FleetSyncError, FleetSyncTransportError

_logger = logging.getLogger(__name__)


class RemoteCacheTier(Protocol):
    """Interface consumed by :class:`fleetsync.cache.tiered.TwoTierCache`.

    Implementations may raise on any call; the two-tier cache treats every
    failure as non-fatal.
    """

    @property
    def available(self) -> bool: ...

    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any, ttl: float) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def clear(self) -> None: ...


class HttpRemoteTier:
    """Redis REST client used as the shared cache tier.

    Call :meth:`connect` once before use. Until it succeeds the tier reports
    itself unavailable and the two-tier cache runs local-only.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._connected = False

    @property
    def available(self) -> bool:
        return self._connected

    async def connect(self) -> bool:
        try:
            reply = await self._command("PING")
        except FleetSyncError as exc:
            _logger.warning("Remote cache tier unavailable, continuing with local cache only: %s", exc)
            self._connected = False
            return False
        self._connected = reply == "PONG"
        if self._connected:
            _logger.info("Remote cache tier connected")
        else:
            _logger.warning("Remote cache tier answered PING with %r, continuing with local cache only", reply)
        return self._connected

    def close(self) -> None:
        self._connected = False

    async def _command(self, *args: Any) -> Any:
        body = await self._transport.request("POST", "/", json_body=[str(arg) for arg in args])
        if not isinstance(body, dict):
            raise FleetSyncTransportError(f"Unexpected reply to {args[0]}: {body!r}", endpoint="/")
        if "error" in body:
            raise FleetSyncTransportError(f"{args[0]} failed: {body['error']}", endpoint="/")
        return body.get("result")

    async def get(self, key: str) -> Any:
        raw = await self._command("GET", key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: float) -> None:
        # Redis EX only takes whole seconds.
        seconds = max(1, int(ttl))
        await self._command("SET", key, json.dumps(value, separators=(",", ":")), "EX", seconds)

    async def delete(self, key: str) -> bool:
        removed = await self._command("DEL", key)
        return bool(removed)

    async def clear(self) -> None:
        await self._command("FLUSHALL")
