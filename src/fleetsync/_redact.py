"""Masking of credentials in debug traces.

The database is called with the Supabase service key (as ``apikey`` header,
bearer token and sometimes ``apikey`` query parameter) and the remote cache
with its REST token. Any of these can also show up inside free text, such as
an error body that echoes the request, so strings are scrubbed too.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

REDACTED = "<redacted>"

_SECRET_KEYS: frozenset[str] = frozenset(
    {
        "apikey",
        "authorization",
        "token",
        "access_token",
        "refresh_token",
        "service_role_key",
        "supabase_key",
        "remote_cache_token",
        "password",
        "cookie",
    }
)

# Redis commands whose arguments after the command name are credentials.
_SECRET_COMMANDS: frozenset[str] = frozenset({"AUTH", "HELLO"})

_BEARER = re.compile(r"(?i)\b(bearer)\s+[A-Za-z0-9._~+/=-]+")
_JWT = re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*")
_QUERY_SECRET = re.compile(r"(?i)\b(apikey|token|access_token)=([^&\s\"']+)")


def redact_text(text: str, *, max_string: int = 512) -> str:
    """Mask bearer tokens, JWTs and secret query parameters inside *text*."""
    text = _BEARER.sub(lambda m: f"{m.group(1)} {REDACTED}", text)
    text = _JWT.sub(REDACTED, text)
    text = _QUERY_SECRET.sub(lambda m: f"{m.group(1)}={REDACTED}", text)
    if len(text) > max_string:
        return f"{text[:max_string]}...<truncated {len(text) - max_string} chars>"
    return text


def _is_secret_key(key: Any) -> bool:
    return str(key).lower().replace("-", "_") in _SECRET_KEYS


def redact_for_log(value: Any, *, max_string: int = 512) -> Any:
    """Return a copy of *value* that is safe to put in a DEBUG log.

    Mappings lose the values of credential keys, strings are scrubbed with
    :func:`redact_text`, and a Redis command array such as
    ``["AUTH", "secret"]`` keeps only its command name.
    """
    if isinstance(value, str):
        return redact_text(value, max_string=max_string)
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    if isinstance(value, Mapping):
        return {
            str(k): REDACTED if _is_secret_key(k) else redact_for_log(v, max_string=max_string)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        if value and isinstance(value[0], str) and value[0].upper() in _SECRET_COMMANDS:
            return [value[0], *(REDACTED for _ in value[1:])]
        return [redact_for_log(item, max_string=max_string) for item in value]
    return redact_text(repr(value), max_string=max_string)
