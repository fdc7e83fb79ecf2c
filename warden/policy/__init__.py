"""Branch-protection policy model and spec file loading."""

from warden.policy.loader import default_spec, dump_spec, get_schema, load_spec, parse_spec
from warden.policy.models import (
    BranchRule,
    BranchTarget,
    GovernanceSpec,
    ProtectionPolicy,
    PushRestrictions,
    RequiredStatusChecks,
)

__all__ = [
    "BranchRule",
    "BranchTarget",
    "GovernanceSpec",
    "ProtectionPolicy",
    "PushRestrictions",
    "RequiredStatusChecks",
    "default_spec",
    "dump_spec",
    "get_schema",
    "load_spec",
    "parse_spec",
]
