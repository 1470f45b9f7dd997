"""Installer: local install state and reconciliation against the registry."""

from agt.installer.reconciler import (
    BatchResult,
    InstallOptions,
    InstallOutcome,
    ItemResult,
    Reconciler,
    UpdateCandidate,
    UpdatePlan,
)
from agt.installer.state_store import InstalledStateStore

__all__ = [
    "BatchResult",
    "InstallOptions",
    "InstallOutcome",
    "InstalledStateStore",
    "ItemResult",
    "Reconciler",
    "UpdateCandidate",
    "UpdatePlan",
]
