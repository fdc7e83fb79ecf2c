"""Verification — compare live protection against the intended policy.

Mismatches are reported as data, never raised. The platform is free to
reorder status-check contexts and push-restriction identities, so those are
compared as sets; every other field must match exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from warden.platform.client import GitHubClient
from warden.platform.payload import decode_protection, from_protection
from warden.policy.models import ProtectionPolicy
from warden.utils.git_ops import RepositoryId

UNPROTECTED = from_protection(None)

_NESTED_FIELDS = ("required_status_checks", "restrictions")


@dataclass(frozen=True)
class FieldDiff:
    expected: Any
    actual: Any

    def to_dict(self) -> dict[str, Any]:
        return {"expected": self.expected, "actual": self.actual}


@dataclass
class VerificationOutcome:
    """Field-by-field comparison for one branch.

    ``diffs`` is keyed by the camelCase field name used in spec files, dotted
    for nested fields (``requiredStatusChecks.contexts``).
    """

    diffs: dict[str, FieldDiff] = field(default_factory=dict)
    observed: ProtectionPolicy | None = None
    protected: bool = True

    @property
    def matches(self) -> bool:
        return not self.diffs

    def summary(self) -> str:
        if self.matches:
            return "matches"
        return "differs: " + ", ".join(self.diffs)


def compare(expected: ProtectionPolicy, observed: ProtectionPolicy | None) -> VerificationOutcome:
    """Compare an intended policy with the observed one (``None`` = unprotected)."""
    outcome = VerificationOutcome(observed=observed, protected=observed is not None)
    actual = observed if observed is not None else UNPROTECTED
    if observed is None:
        outcome.diffs["protected"] = FieldDiff(True, False)

    for name, info in ProtectionPolicy.model_fields.items():
        key = info.alias or name
        want = getattr(expected, name)
        got = getattr(actual, name)
        if name in _NESTED_FIELDS:
            _compare_nested(key, want, got, outcome.diffs)
        elif want != got:
            outcome.diffs[key] = FieldDiff(want, got)
    return outcome


def _compare_nested(key: str, want, got, diffs: dict[str, FieldDiff]) -> None:
    if want is None or got is None:
        if (want is None) != (got is None):
            diffs[key] = FieldDiff(_plain(want), _plain(got))
        return
    for name, info in type(want).model_fields.items():
        sub_key = f"{key}.{info.alias or name}"
        a = getattr(want, name)
        b = getattr(got, name)
        if isinstance(a, tuple):
            if set(a) != set(b):
                diffs[sub_key] = FieldDiff(sorted(a), sorted(b))
        elif a != b:
            diffs[sub_key] = FieldDiff(a, b)


def _plain(value):
    if value is None:
        return None
    return value.model_dump(by_alias=True, mode="json")


def verify(
    client: GitHubClient,
    repo: RepositoryId,
    branch: str,
    expected: ProtectionPolicy,
) -> VerificationOutcome:
    """Re-read the branch's protection and compare it with ``expected``.

    Raises:
        TransientApiError: if the protection cannot be read or decoded.
    """
    data = client.get_protection(repo, branch)
    observed = decode_protection(data, branch) if data is not None else None
    return compare(expected, observed)
