"""Translate between ``ProtectionPolicy`` and GitHub's protection payloads.

The write shape (``PUT .../protection``) carries plain values. The read shape
(``GET .../protection``) wraps most flags as ``{"enabled": bool}`` and omits
sections that are switched off, so decoding treats a missing section as
"disabled".
"""

from __future__ import annotations

from typing import Any

from warden.errors import TransientApiError
from warden.policy.models import ProtectionPolicy, PushRestrictions, RequiredStatusChecks

# Flags sent as plain booleans and read back as {"enabled": bool}.
_FLAG_FIELDS = (
    "enforce_admins",
    "required_linear_history",
    "allow_force_pushes",
    "allow_deletions",
    "block_creations",
    "required_conversation_resolution",
    "lock_branch",
    "allow_fork_syncing",
)


def to_payload(policy: ProtectionPolicy) -> dict[str, Any]:
    """Build the full-replace request body for a policy."""
    checks = policy.required_status_checks
    payload: dict[str, Any] = {
        "required_status_checks": None
        if checks is None
        else {"strict": checks.strict, "contexts": list(checks.contexts)},
        "required_pull_request_reviews": {
            "dismiss_stale_reviews": policy.dismiss_stale_reviews,
            "require_code_owner_reviews": policy.require_code_owner_reviews,
            "required_approving_review_count": policy.required_approving_review_count,
            "require_last_push_approval": policy.require_last_push_approval,
        },
        "restrictions": None
        if policy.restrictions is None
        else {
            "users": list(policy.restrictions.users),
            "teams": list(policy.restrictions.teams),
            "apps": list(policy.restrictions.apps),
        },
    }
    for name in _FLAG_FIELDS:
        payload[name] = getattr(policy, name)
    return payload


def from_protection(data: dict[str, Any] | None) -> ProtectionPolicy:
    """Decode a ``GET .../protection`` response.

    ``None`` or ``{}`` decodes to the unprotected baseline: no checks, no
    reviews, every flag off.
    """
    data = data or {}

    checks = None
    raw_checks = data.get("required_status_checks")
    if raw_checks:
        contexts = raw_checks.get("contexts") or [
            check["context"] for check in raw_checks.get("checks", []) if "context" in check
        ]
        checks = RequiredStatusChecks(
            strict=bool(raw_checks.get("strict", False)),
            contexts=tuple(contexts),
        )

    reviews = data.get("required_pull_request_reviews") or {}

    restrictions = None
    raw_restrictions = data.get("restrictions")
    if raw_restrictions:
        restrictions = PushRestrictions(
            users=tuple(_identity(u, "login") for u in raw_restrictions.get("users", [])),
            teams=tuple(_identity(t, "slug") for t in raw_restrictions.get("teams", [])),
            apps=tuple(_identity(a, "slug") for a in raw_restrictions.get("apps", [])),
        )

    fields: dict[str, Any] = {
        "required_status_checks": checks,
        "required_approving_review_count": int(reviews.get("required_approving_review_count", 0)),
        "dismiss_stale_reviews": bool(reviews.get("dismiss_stale_reviews", False)),
        "require_code_owner_reviews": bool(reviews.get("require_code_owner_reviews", False)),
        "require_last_push_approval": bool(reviews.get("require_last_push_approval", False)),
        "restrictions": restrictions,
    }
    for name in _FLAG_FIELDS:
        fields[name] = _enabled(data.get(name))
    return ProtectionPolicy(**fields)


def decode_protection(data: dict[str, Any] | None, branch: str) -> ProtectionPolicy:
    """``from_protection`` for live responses: a body of the wrong shape is an API error."""
    try:
        return from_protection(data)
    except (AttributeError, TypeError, ValueError) as e:
        raise TransientApiError(branch, None, f"unexpected protection payload: {e}") from e


def _enabled(value: Any) -> bool:
    if isinstance(value, dict):
        return bool(value.get("enabled", False))
    return bool(value)


def _identity(value: Any, key: str) -> str:
    if isinstance(value, dict):
        return str(value.get(key, ""))
    return str(value)
