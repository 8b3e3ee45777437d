"""Rental window and reconciliation outcome models."""

from __future__ import annotations

from datetime import date
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from fleetsync.models.search import VALID_STATES
from fleetsync.models.summary import WeeklyTollSummary
from fleetsync.models.toll import RentalTollNotice


class Rental(BaseModel):
    """The part of a rental agreement reconciliation needs.

    ``start_date`` and ``end_date`` bound the rental window inclusively: a
    notice issued at any time on ``end_date`` belongs to the rental.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(min_length=1)
    start_date: date
    end_date: date
    licence_plate: str = Field(min_length=1)
    state: str = "NSW"
    vehicle_registration: str | None = None
    user_id: str | None = None

    @field_validator("state")
    @classmethod
    def _valid_state(cls, value: str) -> str:
        state = value.upper()
        if state not in VALID_STATES:
            raise ValueError(f"state must be one of {', '.join(sorted(VALID_STATES))}")
        return state

    @model_validator(mode="after")
    def _check_window(self) -> Rental:
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ReconciliationStatus(StrEnum):
    UPDATED = "updated"
    NO_NOTICES_FOUND = "no_notices_found"
    NO_NOTICES_IN_WINDOW = "no_notices_in_window"
    SEARCH_FAILED = "search_failed"
    SKIPPED = "skipped"


class ReconciliationResult(BaseModel):
    """Outcome of one reconciliation pass for a rental.

    ``notices`` and ``summaries`` always reflect what the store holds after
    the pass, including for ``SEARCH_FAILED``. ``SKIPPED`` results carry no
    notices because nothing was read.
    """

    model_config = ConfigDict(frozen=True)

    rental_id: str
    status: ReconciliationStatus
    notices: list[RentalTollNotice] = Field(default_factory=list)
    summaries: list[WeeklyTollSummary] = Field(default_factory=list)
    found_count: int = 0
    in_window_count: int = 0
    persisted_count: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != ReconciliationStatus.SEARCH_FAILED
