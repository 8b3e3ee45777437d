"""Data models for toll notices, searches and rentals."""

from fleetsync.models._base import FleetBaseModel
from fleetsync.models.rental import ReconciliationResult, ReconciliationStatus, Rental
from fleetsync.models.search import (
    VALID_STATES,
    TollSearchFailure,
    TollSearchRequest,
    TollSearchResult,
    TollSearchSuccess,
    TollSearchTotals,
)
from fleetsync.models.summary import TollStatistics, WeeklyTollSummary
from fleetsync.models.toll import PAID_STATUS, UNPAID_STATUS, RentalTollNotice, TollNotice, VehicleType

__all__ = [
    "FleetBaseModel",
    "PAID_STATUS",
    "ReconciliationResult",
    "ReconciliationStatus",
    "Rental",
    "RentalTollNotice",
    "TollNotice",
    "TollSearchFailure",
    "TollSearchRequest",
    "TollSearchResult",
    "TollSearchSuccess",
    "TollSearchTotals",
    "TollStatistics",
    "UNPAID_STATUS",
    "VALID_STATES",
    "VehicleType",
    "WeeklyTollSummary",
]
