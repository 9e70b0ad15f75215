"""Outcome records for workspace provisioning and reconciliation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from ..models import Organization

logger = logging.getLogger(__name__)


@dataclass
class ProvisioningStep:
    """One step of a provisioning run.

    ``ok`` is True on success, False on failure and None when the step was
    skipped because an earlier one failed.
    """

    name: str
    ok: Optional[bool] = None
    error: str = ""

    @property
    def skipped(self) -> bool:
        return self.ok is None


@dataclass
class ProvisioningReport:
    """Per-step ledger of a create/delete/bootstrap run."""

    operation: str
    organization: Optional[Organization] = None
    steps: list[ProvisioningStep] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(step.ok for step in self.steps)

    @property
    def failed_step(self) -> Optional[ProvisioningStep]:
        return next((step for step in self.steps if step.ok is False), None)

    def __bool__(self) -> bool:
        return self.success

    async def run(self, name: str, step: Callable[[], Awaitable[None]]) -> bool:
        """Run ``step`` unless an earlier step failed, and record the outcome.

        Returns True when the step ran and succeeded.
        """
        if self.failed_step is not None:
            self.steps.append(ProvisioningStep(name=name))
            return False
        try:
            await step()
        except Exception as e:
            logger.error("[%s] step '%s' failed: %s", self.operation, name, e)
            self.steps.append(ProvisioningStep(name=name, ok=False, error=str(e)))
            return False
        self.steps.append(ProvisioningStep(name=name, ok=True))
        return True


@dataclass
class ReconcileReport:
    """Counters of structural repairs made by one reconciliation run."""

    success: bool = True
    organizations: int = 0
    groups_created: int = 0
    groups_attached: int = 0
    permissions_created: int = 0
    roles_created: int = 0
    roles_updated: int = 0
    roles_attached: int = 0
    error: str = ""

    @property
    def mutations(self) -> int:
        return (
            self.groups_created
            + self.groups_attached
            + self.permissions_created
            + self.roles_created
            + self.roles_updated
            + self.roles_attached
        )

    def __bool__(self) -> bool:
        return self.success


__all__ = [
    "ProvisioningStep",
    "ProvisioningReport",
    "ReconcileReport",
]
