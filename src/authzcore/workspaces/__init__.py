"""Workspace (organization) provisioning and reconciliation."""

from .provisioner import WorkspaceProvisioner
from .reconciler import WorkspaceReconciler
from .reports import ProvisioningReport, ProvisioningStep, ReconcileReport

__all__ = [
    "ProvisioningReport",
    "ProvisioningStep",
    "ReconcileReport",
    "WorkspaceProvisioner",
    "WorkspaceReconciler",
]
