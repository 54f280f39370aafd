"""
issuetree - Synchronization

Keeps the work-item tree, the tracker's issues and the item branches
aligned:
- SagaOrchestrator: update/create/delete workflows with compensation
- BranchLifecycleOrchestrator: per-leaf branch state machine
- TombstoneCache / TombstoneReconciler: masking of soft-deleted issues
- OptimisticUpdateManager: projected snapshots for in-flight workflows
- Notification sinks
"""

from issuetree.sync.branches import BranchLifecycleOrchestrator
from issuetree.sync.notifications import (
    CallbackNotificationSink,
    LoggingNotificationSink,
    NotificationCollector,
    NotificationRecorder,
    NotificationSink,
)
from issuetree.sync.optimistic import OptimisticUpdateManager
from issuetree.sync.saga import SagaOrchestrator
from issuetree.sync.tombstones import (
    ConsistencyReport,
    Inconsistency,
    TombstoneCache,
    TombstoneReconciler,
)

__all__ = [
    # Workflows
    "SagaOrchestrator",
    "BranchLifecycleOrchestrator",
    "OptimisticUpdateManager",
    # Tombstones
    "TombstoneCache",
    "TombstoneReconciler",
    "ConsistencyReport",
    "Inconsistency",
    # Notifications
    "NotificationSink",
    "NotificationCollector",
    "NotificationRecorder",
    "LoggingNotificationSink",
    "CallbackNotificationSink",
]
