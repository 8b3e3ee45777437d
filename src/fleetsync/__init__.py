"""fleetsync - Rental toll notice reconciliation with a two-tier cache."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleetsync")
except PackageNotFoundError:
    __version__ = "0+local"
from fleetsync.aggregate import aggregate_weekly, compute_statistics
from fleetsync.cache import MISSING, CachePolicy, HttpRemoteTier, MemoryCache, TwoTierCache
from fleetsync.client import FleetSyncClient
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import (
    FleetSyncConfigError,
    FleetSyncError,
    FleetSyncTransportError,
    TollPersistenceError,
    TollRecordError,
    TollSearchError,
)
from fleetsync.export import export_csv, export_filename
from fleetsync.models import (
    ReconciliationResult,
    ReconciliationStatus,
    Rental,
    RentalTollNotice,
    TollNotice,
    TollSearchFailure,
    TollSearchRequest,
    TollSearchResult,
    TollSearchSuccess,
    TollStatistics,
    VehicleType,
    WeeklyTollSummary,
)
from fleetsync.reconciler import TollReconciler
from fleetsync.search import HttpTollSearchClient, TollSearchProvider
from fleetsync.store import InMemoryTollStore, PostgrestTollStore, TollNoticeStore

__all__ = [
    "__version__",
    "CachePolicy",
    "FleetSyncClient",
    "FleetSyncConfig",
    "FleetSyncConfigError",
    "FleetSyncError",
    "FleetSyncTransportError",
    "HttpRemoteTier",
    "HttpTollSearchClient",
    "InMemoryTollStore",
    "MISSING",
    "MemoryCache",
    "PostgrestTollStore",
    "ReconciliationResult",
    "ReconciliationStatus",
    "Rental",
    "RentalTollNotice",
    "TollNotice",
    "TollNoticeStore",
    "TollPersistenceError",
    "TollReconciler",
    "TollRecordError",
    "TollSearchError",
    "TollSearchFailure",
    "TollSearchProvider",
    "TollSearchRequest",
    "TollSearchResult",
    "TollSearchSuccess",
    "TollStatistics",
    "TwoTierCache",
    "VehicleType",
    "WeeklyTollSummary",
    "aggregate_weekly",
    "compute_statistics",
    "export_csv",
    "export_filename",
]
