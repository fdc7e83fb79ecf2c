"""Orchestrator — drive every branch of a governance spec through its state machine.

Per branch: existence check, then (apply mode) the policy write, then
verification. Branch-scoped errors become a ``FAILED`` result and the run
moves on to the next branch. Cancellation is only observed between branches,
so a branch that has started always finishes with its real outcome.
"""

from __future__ import annotations

import logging
import threading

from warden.errors import BranchError
from warden.platform.client import GitHubClient
from warden.platform.payload import to_payload
from warden.policy.models import BranchRule, GovernanceSpec
from warden.sync.apply import apply_policy, branch_exists
from warden.sync.results import BranchResult, BranchState, RunMode, RunReport
from warden.sync.verify import verify
from warden.utils.git_ops import RepositoryId

logger = logging.getLogger(__name__)


class GovernanceRunner:
    """Applies and/or verifies a ``GovernanceSpec`` against one repository."""

    def __init__(
        self,
        client: GitHubClient,
        repository: RepositoryId,
        mode: RunMode = RunMode.APPLY,
        cancel_event: threading.Event | None = None,
    ):
        self.client = client
        self.repository = repository
        self.mode = mode
        self.cancel_event = cancel_event or threading.Event()

    def run(self, spec: GovernanceSpec) -> RunReport:
        """Process every rule in order. Exactly one result per rule."""
        report = RunReport(repository=self.repository.slug, mode=self.mode)
        for rule in spec.rules:
            if self.cancel_event.is_set():
                report.results.append(
                    BranchResult(
                        branch=rule.target.name,
                        required=rule.target.required,
                        state=BranchState.CANCELLED,
                        reason="run cancelled before this branch was processed",
                    )
                )
                continue
            try:
                result = self.process(rule)
            except Exception as e:
                logger.exception("Unexpected error while processing %s", rule.target.name)
                result = BranchResult(
                    branch=rule.target.name,
                    required=rule.target.required,
                    state=BranchState.FAILED,
                    reason=f"unexpected error: {e}",
                )
            logger.info("%s", result.summary())
            report.results.append(result)
        return report

    def process(self, rule: BranchRule) -> BranchResult:
        branch = rule.target.name
        result = BranchResult(branch=branch, required=rule.target.required, state=BranchState.FAILED)

        try:
            exists = branch_exists(self.client, self.repository, branch)
        except BranchError as e:
            logger.warning("Existence check failed for %s: %s", branch, e)
            result.reason = str(e)
            return result

        if not exists:
            if rule.target.required:
                result.reason = "branch not found"
            else:
                result.state = BranchState.SKIPPED
                result.reason = "not found"
            return result

        if self.mode == RunMode.APPLY:
            try:
                result.applied_policy = apply_policy(
                    self.client, self.repository, branch, rule.policy
                )
            except BranchError as e:
                logger.warning("Could not apply protection to %s: %s", branch, e)
                result.reason = str(e)
                return result
            result.applied = True

        try:
            outcome = verify(self.client, self.repository, branch, rule.policy)
        except BranchError as e:
            logger.warning("Could not verify protection on %s: %s", branch, e)
            result.reason = f"verification failed: {e}"
            return result

        result.verification = outcome
        if outcome.matches:
            result.state = BranchState.MATCHED
        else:
            result.state = BranchState.MISMATCHED
            result.reason = outcome.summary()
            if self.mode == RunMode.DRY_RUN:
                result.planned_payload = to_payload(rule.policy)
        return result
