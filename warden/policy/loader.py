"""Load governance specs from YAML.

File format::

    defaultPolicy:            # optional
      requiredApprovingReviewCount: 1
    branches:
      - name: main
        required: true
        policy:               # optional when defaultPolicy is set
          requiredStatusChecks: {strict: true, contexts: [test]}

Every level rejects unknown keys.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Optional

import pydantic
import yaml
from pydantic import Field, StrictBool, StrictStr

from warden.errors import ValidationError
from warden.policy.models import (
    BranchRule,
    BranchTarget,
    GovernanceSpec,
    ProtectionPolicy,
    StrictModel,
)


class BranchEntry(StrictModel):
    """One ``branches`` item as written in a spec file."""

    name: Annotated[StrictStr, Field(min_length=1)]
    required: StrictBool = True
    policy: Optional[ProtectionPolicy] = None


class SpecFile(StrictModel):
    """On-disk shape of a governance spec."""

    default_policy: Optional[ProtectionPolicy] = None
    branches: Annotated[tuple[BranchEntry, ...], Field(min_length=1)]


def default_spec() -> GovernanceSpec:
    """``main`` is required, ``develop`` is protected only if it exists."""
    policy = ProtectionPolicy()
    return GovernanceSpec(
        rules=(
            BranchRule(target=BranchTarget(name="main", required=True), policy=policy),
            BranchRule(target=BranchTarget(name="develop", required=False), policy=policy),
        ),
        default_policy=policy,
    )


def parse_spec(data: Any, source: str = "") -> GovernanceSpec:
    """Validate a parsed YAML/JSON document and build a ``GovernanceSpec``.

    Raises:
        ValidationError: with one readable issue per problem found.
    """
    if not isinstance(data, dict):
        raise ValidationError(["top level must be a mapping with a 'branches' key"], source)

    try:
        spec_file = SpecFile.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(_format_issues(e), source) from e

    issues = []
    rules = []
    for entry in spec_file.branches:
        policy = entry.policy if entry.policy is not None else spec_file.default_policy
        if policy is None:
            issues.append(f"branches.{entry.name}: no policy and no defaultPolicy")
            continue
        rules.append(
            BranchRule(
                target=BranchTarget(name=entry.name, required=entry.required),
                policy=policy,
            )
        )
    if issues:
        raise ValidationError(issues, source)

    try:
        return GovernanceSpec(rules=tuple(rules), default_policy=spec_file.default_policy)
    except pydantic.ValidationError as e:
        raise ValidationError(_format_issues(e), source) from e


def load_spec(path: str | Path) -> GovernanceSpec:
    """Load and validate a governance spec from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise ValidationError([f"file not found: {path}"], str(path))
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValidationError([f"invalid YAML: {e}"], str(path)) from e
    return parse_spec(data, source=str(path))


def dump_spec(spec: GovernanceSpec) -> str:
    """Serialize a spec to the YAML file format."""
    data: dict[str, Any] = {}
    if spec.default_policy is not None:
        data["defaultPolicy"] = spec.default_policy.model_dump(by_alias=True, mode="json")
    data["branches"] = [
        {
            "name": rule.target.name,
            "required": rule.target.required,
            "policy": rule.policy.model_dump(by_alias=True, mode="json"),
        }
        for rule in spec.rules
    ]
    return yaml.safe_dump(data, sort_keys=False)


def get_schema() -> dict:
    """JSON Schema for the spec file format."""
    return SpecFile.model_json_schema(by_alias=True)


def _format_issues(error: pydantic.ValidationError) -> list[str]:
    issues = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"]) or "/"
        issues.append(f"{location}: {err['msg']}")
    return issues
