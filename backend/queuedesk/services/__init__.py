"""Services package for QueueDesk."""

from .snapshot_builder import build_snapshot
from .reconciler import TicketIdentityError, apply_update, apply_updates
from .time_estimation import WaitTimeEstimator
from .stats_store import HistoricalStatStore
from .queue_service import QueueService

__all__ = [
    "build_snapshot",
    "apply_update",
    "apply_updates",
    "TicketIdentityError",
    "WaitTimeEstimator",
    "HistoricalStatStore",
    "QueueService",
]
