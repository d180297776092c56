"""Offline-resilient location sync SDK."""

from .buffer import OfflineQueue
from .cache import LocalReadCache
from .client import LocationClient
from .config import ClientConfig
from .connectivity import ConnectivityMonitor
from .dispatcher import DispatcherState, SyncDispatcher
from .errors import BackendRejected, MalformedPayloadError, PersistenceError, SyncError, TransientNetworkError
from .models import ConnectivityState, LocationSample, QueuedOperation
from .results import DrainReport, QueryResult, SubmitOutcome, SubmitStatus
from .storage import SlotStore
from .transport import TransportClient

__all__ = [
    "BackendRejected",
    "ClientConfig",
    "ConnectivityMonitor",
    "ConnectivityState",
    "DispatcherState",
    "DrainReport",
    "LocalReadCache",
    "LocationClient",
    "LocationSample",
    "MalformedPayloadError",
    "OfflineQueue",
    "PersistenceError",
    "QueryResult",
    "QueuedOperation",
    "SlotStore",
    "SubmitOutcome",
    "SubmitStatus",
    "SyncDispatcher",
    "SyncError",
    "TransientNetworkError",
    "TransportClient",
]
