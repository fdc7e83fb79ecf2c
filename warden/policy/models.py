"""Declarative branch-protection policy.

All models are frozen and reject unknown fields, so a typo in a policy file
fails loudly instead of silently relaxing protection. Field names are
camelCase in files and snake_case in Python.
"""

from __future__ import annotations

from typing import Annotated, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    model_validator,
)
from pydantic.alias_generators import to_camel

MAX_APPROVING_REVIEWS = 6


class StrictModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class RequiredStatusChecks(StrictModel):
    """Status checks that must pass before merging.

    Context names are opaque; the platform decides whether they exist.
    """

    strict: StrictBool = True
    contexts: tuple[StrictStr, ...] = ()


class PushRestrictions(StrictModel):
    """Identities allowed to push. Compared as sets."""

    users: tuple[StrictStr, ...] = ()
    teams: tuple[StrictStr, ...] = ()
    apps: tuple[StrictStr, ...] = ()


class ProtectionPolicy(StrictModel):
    """Desired protection state for one branch.

    Defaults mirror a conservative single-maintainer setup: one approving
    review, stale reviews dismissed, admins included, conversations resolved,
    no force pushes or deletions.

    Building one directly raises ``pydantic.ValidationError`` on bad values;
    ``warden.policy.loader.parse_spec`` reports the same problems as
    ``warden.errors.ValidationError`` with file locations.
    """

    required_status_checks: Optional[RequiredStatusChecks] = Field(
        default_factory=RequiredStatusChecks
    )
    required_approving_review_count: Annotated[
        StrictInt, Field(ge=0, le=MAX_APPROVING_REVIEWS)
    ] = 1
    dismiss_stale_reviews: StrictBool = True
    require_code_owner_reviews: StrictBool = False
    require_last_push_approval: StrictBool = False
    required_conversation_resolution: StrictBool = True
    enforce_admins: StrictBool = True
    allow_force_pushes: StrictBool = False
    allow_deletions: StrictBool = False
    required_linear_history: StrictBool = False
    lock_branch: StrictBool = False
    allow_fork_syncing: StrictBool = True
    block_creations: StrictBool = False
    restrictions: Optional[PushRestrictions] = None


class BranchTarget(StrictModel):
    """A branch to configure. Absence of an optional branch is not an error."""

    name: Annotated[StrictStr, Field(min_length=1)]
    required: StrictBool = True


class BranchRule(StrictModel):
    target: BranchTarget
    policy: ProtectionPolicy


class GovernanceSpec(StrictModel):
    """Ordered branch rules; order is application and reporting order."""

    rules: tuple[BranchRule, ...] = ()
    default_policy: Optional[ProtectionPolicy] = None

    @model_validator(mode="after")
    def _unique_branch_names(self) -> "GovernanceSpec":
        seen: set[str] = set()
        duplicates = []
        for rule in self.rules:
            if rule.target.name in seen:
                duplicates.append(rule.target.name)
            seen.add(rule.target.name)
        if duplicates:
            raise ValueError(f"duplicate branch names: {', '.join(sorted(set(duplicates)))}")
        return self

    @property
    def branch_names(self) -> list[str]:
        return [rule.target.name for rule in self.rules]

    def get(self, branch: str) -> BranchRule | None:
        for rule in self.rules:
            if rule.target.name == branch:
                return rule
        return None

    def select(self, branches: list[str] | tuple[str, ...]) -> "GovernanceSpec":
        """Replace the branch list with ``branches``, in the order given.

        Names already in the spec keep their entry. Other names get
        ``default_policy`` and are treated as required, since the caller asked
        for them explicitly.

        Raises:
            ValueError: if a name is unknown and no default policy exists.
        """
        rules = []
        unknown = []
        for name in dict.fromkeys(branches):
            rule = self.get(name)
            if rule is None:
                if self.default_policy is None:
                    unknown.append(name)
                    continue
                rule = BranchRule(
                    target=BranchTarget(name=name, required=True),
                    policy=self.default_policy,
                )
            rules.append(rule)
        if unknown:
            raise ValueError(
                f"branches not in spec and no defaultPolicy set: {', '.join(unknown)}"
            )
        return GovernanceSpec(rules=tuple(rules), default_policy=self.default_policy)
