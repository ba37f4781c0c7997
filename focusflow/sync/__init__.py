"""Offline sync reconciliation."""

from focusflow.sync.reconciler import SyncReconciler, SyncResult

__all__ = ["SyncReconciler", "SyncResult"]
