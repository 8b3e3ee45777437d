"""Client configuration for fleetsync."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from fleetsync.exceptions import FleetSyncConfigError

#: Seconds before an external toll search is abandoned.
DEFAULT_TOLL_SEARCH_TIMEOUT: float = 35.0


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise FleetSyncConfigError(f"{name} must be numeric, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class FleetSyncConfig:
    """Client configuration.

    Parameters
    ----------
    supabase_url : str or None
        Hosted database project URL. The REST API is expected under
        ``/rest/v1``. When unset, callers must supply their own store.
    supabase_key : str or None
        API key sent as both the ``apikey`` header and the bearer token.
    user_id : str or None
        Owner stamped on every persisted toll notice row.
    toll_search_url : str or None
        Base URL of the toll search service (``/api/tolls/search`` is
        appended). When unset, callers must supply their own search provider.
    toll_search_timeout : float
        Seconds before a search is abandoned and reported as failed.
    default_state : str
        Jurisdiction used for rentals that don't carry one.
    remote_cache_url : str or None
        Redis REST endpoint for the shared cache tier. Optional.
    remote_cache_token : str or None
        Bearer token for the shared cache tier.
    cache_key_prefix : str
        Prefix applied to every shared-tier cache key.
    api_trace_enabled : bool
        Log redacted request/response bodies at DEBUG level.
    """

    supabase_url: str | None = None
    supabase_key: str | None = None
    user_id: str | None = None
    toll_search_url: str | None = None
    toll_search_timeout: float = DEFAULT_TOLL_SEARCH_TIMEOUT
    default_state: str = "NSW"
    remote_cache_url: str | None = None
    remote_cache_token: str | None = None
    cache_key_prefix: str = "fleetsync"
    api_trace_enabled: bool = False

    def __post_init__(self) -> None:
        if self.toll_search_timeout <= 0:
            raise FleetSyncConfigError("toll_search_timeout must be positive")
        if not self.cache_key_prefix:
            raise FleetSyncConfigError("cache_key_prefix must be non-empty")

    @property
    def rest_url(self) -> str | None:
        """PostgREST base URL derived from ``supabase_url``."""
        if not self.supabase_url:
            return None
        return f"{self.supabase_url.rstrip('/')}/rest/v1"

    @classmethod
    def from_env(cls, **overrides: Any) -> FleetSyncConfig:
        """Create configuration from ``FLEETSYNC_*`` environment variables.

        Explicit keyword arguments override environment values.

        Raises
        ------
        FleetSyncConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "FLEETSYNC_SUPABASE_URL": "supabase_url",
            "FLEETSYNC_SUPABASE_KEY": "supabase_key",
            "FLEETSYNC_USER_ID": "user_id",
            "FLEETSYNC_TOLL_SEARCH_URL": "toll_search_url",
            "FLEETSYNC_DEFAULT_STATE": "default_state",
            "FLEETSYNC_REMOTE_CACHE_URL": "remote_cache_url",
            "FLEETSYNC_REMOTE_CACHE_TOKEN": "remote_cache_token",
            "FLEETSYNC_CACHE_KEY_PREFIX": "cache_key_prefix",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        timeout_env = env.get("FLEETSYNC_TOLL_SEARCH_TIMEOUT")
        if timeout_env is not None and "toll_search_timeout" not in overrides:
            config_kwargs["toll_search_timeout"] = _env_float("FLEETSYNC_TOLL_SEARCH_TIMEOUT", timeout_env)

        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(
                env.get("FLEETSYNC_API_TRACE_ENABLED"),
                False,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
