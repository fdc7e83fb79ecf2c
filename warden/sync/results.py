"""Per-branch results and the run report."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from warden.policy.models import ProtectionPolicy
from warden.sync.verify import VerificationOutcome


class RunMode(Enum):
    APPLY = "apply"
    DRY_RUN = "dry-run"
    VERIFY_ONLY = "verify-only"


class BranchState(Enum):
    """Terminal state of one branch."""

    MATCHED = "matched"
    MISMATCHED = "mismatched"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"


_OK_STATES = {BranchState.MATCHED, BranchState.SKIPPED}


@dataclass
class BranchResult:
    """Outcome for a single ``(branch, policy)`` pair."""

    branch: str
    required: bool
    state: BranchState
    reason: str = ""
    applied: bool = False
    applied_policy: ProtectionPolicy | None = None
    verification: VerificationOutcome | None = None
    planned_payload: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.state in _OK_STATES

    @property
    def observed(self) -> ProtectionPolicy | None:
        return self.verification.observed if self.verification else None

    def summary(self) -> str:
        steps = ["applied"] if self.applied else []
        steps.append(self.state.value)
        text = f"{self.branch}: {' -> '.join(steps)}"
        if self.reason:
            text += f" ({self.reason})"
        return text

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "branch": self.branch,
            "required": self.required,
            "state": self.state.value,
            "applied": self.applied,
            "reason": self.reason,
        }
        if self.verification is not None:
            data["protected"] = self.verification.protected
            data["diffs"] = {k: d.to_dict() for k, d in self.verification.diffs.items()}
        if self.observed is not None:
            data["observed"] = self.observed.model_dump(by_alias=True, mode="json")
        if self.applied_policy is not None:
            data["appliedPolicy"] = self.applied_policy.model_dump(by_alias=True, mode="json")
        if self.planned_payload is not None:
            data["plannedPayload"] = self.planned_payload
        return data


@dataclass
class RunReport:
    repository: str
    mode: RunMode
    results: list[BranchResult] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        """0 when every branch matched or was skipped, 1 otherwise."""
        return 0 if all(r.ok for r in self.results) else 1

    @property
    def cancelled(self) -> bool:
        return any(r.state == BranchState.CANCELLED for r in self.results)

    def count(self, state: BranchState) -> int:
        return sum(1 for r in self.results if r.state == state)

    def to_dict(self) -> dict[str, Any]:
        return {
            "repository": self.repository,
            "mode": self.mode.value,
            "exitCode": self.exit_code,
            "results": [r.to_dict() for r in self.results],
        }
