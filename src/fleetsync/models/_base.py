"""Base model for toll provider results and persisted rows.

Every record model inherits from :class:`FleetBaseModel` which provides:

* ``alias_generator=to_camel`` so the provider's camelCase keys
  (``licencePlate``, ``tollNoticeNumber``) and the database's snake_case
  columns (``licence_plate``) both populate the same fields.
* A ``model_validator(mode="before")`` that strips placeholder values
  (``""``, ``"--"``, ``"N/A"``, NaN, ``None``) so the field default is used.
* A ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from fleetsync.ingestion.normalize import is_placeholder


class FleetBaseModel(BaseModel):
    """Base for record models decoded from external payloads."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)
    """Original payload dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        """Drop placeholder values from *values*."""
        return {key: value for key, value in values.items() if not is_placeholder(value)}

    @model_validator(mode="before")
    @classmethod
    def _clean_placeholders(cls, values: Any) -> Any:
        """Strip placeholder values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = FleetBaseModel._clean_dict(values)
        # Keep an explicit raw= from the caller; otherwise stash the payload.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
