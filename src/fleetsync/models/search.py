"""Toll search request/response models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fleetsync.ingestion.normalize import safe_float, safe_int
from fleetsync.models._base import FleetBaseModel
from fleetsync.models.toll import TollNotice

VALID_STATES = frozenset({"NSW", "VIC", "QLD", "WA", "SA", "TAS", "ACT", "NT"})


class TollSearchRequest(BaseModel):
    """Input of one external toll search."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    licence_plate: str = Field(min_length=1)
    state: str
    toll_notice_number: str | None = None
    is_motorcycle: bool | None = None

    @field_validator("licence_plate")
    @classmethod
    def _upper_plate(cls, value: str) -> str:
        return value.upper()

    @field_validator("state")
    @classmethod
    def _valid_state(cls, value: str) -> str:
        state = value.upper()
        if state not in VALID_STATES:
            raise ValueError(f"state must be one of {', '.join(sorted(VALID_STATES))}")
        return state

    @property
    def cache_key(self) -> str:
        """Key shared by searches the service answers with the same notices.

        The service filters by notice number and motorcycle lookup itself, so
        both are part of the key; a plain plate search stays ``PLATE_STATE``.
        """
        key = f"{self.licence_plate}_{self.state}"
        if self.toll_notice_number:
            key += f"_n{self.toll_notice_number}"
        if self.is_motorcycle:
            key += "_moto"
        return key

    def to_payload(self) -> dict[str, Any]:
        """Request body in the search service's camelCase form."""
        payload: dict[str, Any] = {"licencePlate": self.licence_plate, "state": self.state}
        if self.toll_notice_number is not None:
            payload["tollNoticeNumber"] = self.toll_notice_number
        if self.is_motorcycle is not None:
            payload["isMotorcycle"] = self.is_motorcycle
        return payload


class TollSearchTotals(FleetBaseModel):
    """Totals the search service reports alongside its notices."""

    total_admin_fee: float = 0.0
    total_toll_amount: float = 0.0
    total_amount_payable: float = 0.0
    count: int = 0

    @field_validator("total_admin_fee", "total_toll_amount", "total_amount_payable", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        parsed = safe_float(value)
        return parsed if parsed is not None else 0.0

    @field_validator("count", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        parsed = safe_int(value)
        return parsed if parsed is not None else 0

    @classmethod
    def from_notices(cls, notices: list[TollNotice]) -> TollSearchTotals:
        admin = sum(n.admin_fee for n in notices)
        toll = sum(n.toll_amount for n in notices)
        return cls(
            total_admin_fee=admin,
            total_toll_amount=toll,
            total_amount_payable=sum(n.total_amount for n in notices),
            count=len(notices),
        )


class TollSearchSuccess(BaseModel):
    """The search completed; ``notices`` may be empty."""

    model_config = ConfigDict(frozen=True)

    success: Literal[True] = True
    notices: list[TollNotice] = Field(default_factory=list)
    totals: TollSearchTotals | None = None


class TollSearchFailure(BaseModel):
    """The search could not be completed."""

    model_config = ConfigDict(frozen=True)

    success: Literal[False] = False
    error: str


TollSearchResult = TollSearchSuccess | TollSearchFailure
