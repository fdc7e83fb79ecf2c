"""End-to-end tests for the warden CLI."""

import json
import signal
import threading

import yaml
from click.testing import CliRunner

from warden.cli import _cancel_on_interrupt, main
from warden.policy import ProtectionPolicy


def _invoke(args, fake_github, env):
    runner = CliRunner()
    return runner.invoke(main, args, obj={"transport": fake_github.transport}, env=env)


def _write_spec(tmp_path, data) -> str:
    path = tmp_path / "protection.yml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


def test_apply_default_spec(fake_github, cli_env, tmp_path):
    result = _invoke(
        ["apply", "--repo", "octo/demo", "--path", str(tmp_path), "--json"], fake_github, cli_env
    )

    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert [(r["branch"], r["state"], r["applied"]) for r in report["results"]] == [
        ("main", "matched", True),
        ("develop", "skipped", False),
    ]
    assert report["results"][1]["reason"] == "not found"


def test_apply_prints_table_and_settings_hint(fake_github, cli_env, tmp_path):
    result = _invoke(["apply", "--repo", "octo/demo", "--path", str(tmp_path)], fake_github, cli_env)

    assert result.exit_code == 0, result.output
    assert "matched" in result.output
    assert "skipped" in result.output
    assert "settings/branches" in result.output


def test_dry_run_mismatch(fake_github, cli_env, tmp_path):
    fake_github.protect("main", ProtectionPolicy(required_approving_review_count=0))
    spec = _write_spec(
        tmp_path,
        {"branches": [{"name": "main", "policy": {"requiredApprovingReviewCount": 1}}]},
    )

    result = _invoke(["apply", spec, "--repo", "octo/demo", "--dry-run", "--json"], fake_github, cli_env)

    assert result.exit_code == 1
    assert fake_github.writes == []
    main_result = json.loads(result.stdout)["results"][0]
    assert main_result["state"] == "mismatched"
    assert main_result["diffs"] == {
        "requiredApprovingReviewCount": {"expected": 1, "actual": 0}
    }


def test_verify_only_skips_writes(fake_github, cli_env, tmp_path):
    fake_github.protect("main", ProtectionPolicy())
    result = _invoke(
        ["apply", "--repo", "octo/demo", "--path", str(tmp_path), "--verify-only", "--branch", "main"],
        fake_github,
        cli_env,
    )
    assert result.exit_code == 0, result.output
    assert fake_github.writes == []


def test_dry_run_and_verify_only_conflict(fake_github, cli_env):
    result = _invoke(["apply", "--repo", "octo/demo", "--dry-run", "--verify-only"], fake_github, cli_env)
    assert result.exit_code == 2
    assert fake_github.calls == []


def test_no_credentials_is_fatal_without_api_calls(fake_github, cli_env, tmp_path):
    env = dict(cli_env, GITHUB_TOKEN="")
    result = _invoke(["apply", "--repo", "octo/demo", "--path", str(tmp_path)], fake_github, env)

    assert result.exit_code == 2
    assert fake_github.calls == []
    assert "Authentication failed" in result.output


def test_unresolvable_repository_is_fatal(fake_github, cli_env, tmp_path):
    result = _invoke(["apply", "--path", str(tmp_path / "nowhere")], fake_github, cli_env)

    assert result.exit_code == 2
    assert all(path == "/user" for _, path in fake_github.calls)


def test_invalid_spec_is_fatal_before_network(fake_github, cli_env, tmp_path):
    spec = _write_spec(
        tmp_path,
        {"branches": [{"name": "main", "policy": {"requiredApprovingReviewCount": -1}}]},
    )
    result = _invoke(["apply", spec, "--repo", "octo/demo"], fake_github, cli_env)

    assert result.exit_code == 2
    assert fake_github.calls == []
    assert "requiredApprovingReviewCount" in result.output


def test_unknown_branch_without_default_policy_is_fatal(fake_github, cli_env, tmp_path):
    spec = _write_spec(tmp_path, {"branches": [{"name": "main", "policy": {}}]})
    result = _invoke(["apply", spec, "--repo", "octo/demo", "--branch", "hotfix"], fake_github, cli_env)

    assert result.exit_code == 2
    assert fake_github.calls == []


def test_spec_file_discovered_in_checkout(fake_github, cli_env, tmp_path):
    spec_dir = tmp_path / ".github"
    spec_dir.mkdir()
    (spec_dir / "branch-protection.yml").write_text(
        yaml.safe_dump({"branches": [{"name": "main", "policy": {"lockBranch": True}}]})
    )

    result = _invoke(
        ["apply", "--repo", "octo/demo", "--path", str(tmp_path), "--json"], fake_github, cli_env
    )

    assert result.exit_code == 0, result.output
    assert [r["branch"] for r in json.loads(result.stdout)["results"]] == ["main"]
    assert fake_github.protections["main"]["lock_branch"] is True


def test_failed_branch_exit_code(fake_github, cli_env, tmp_path):
    spec = _write_spec(tmp_path, {"branches": [{"name": "release", "required": True, "policy": {}}]})
    result = _invoke(["apply", spec, "--repo", "octo/demo"], fake_github, cli_env)
    assert result.exit_code == 1
    assert "failed" in result.output


def test_validate_command(tmp_path):
    spec = _write_spec(tmp_path, {"branches": [{"name": "main", "policy": {}}]})
    result = CliRunner().invoke(main, ["validate", spec])
    assert result.exit_code == 0, result.output
    assert "Valid!" in result.output


def test_validate_command_rejects_typo(tmp_path):
    spec = _write_spec(tmp_path, {"branches": [{"name": "main", "polcy": {}}]})
    result = CliRunner().invoke(main, ["validate", spec])
    assert result.exit_code == 2
    assert "polcy" in result.output


def test_init_writes_loadable_spec(tmp_path):
    target = tmp_path / ".github" / "branch-protection.yml"
    result = CliRunner().invoke(main, ["init", str(target)])
    assert result.exit_code == 0, result.output

    data = yaml.safe_load(target.read_text())
    assert [b["name"] for b in data["branches"]] == ["main", "develop"]

    again = CliRunner().invoke(main, ["init", str(target)])
    assert again.exit_code == 1


def test_schema_command():
    result = CliRunner().invoke(main, ["schema"])
    assert result.exit_code == 0
    assert "branches" in json.loads(result.output)["properties"]


def test_interrupt_sets_cancel_event_and_restores_handler():
    previous = signal.getsignal(signal.SIGINT)
    event = threading.Event()

    with _cancel_on_interrupt(event):
        handler = signal.getsignal(signal.SIGINT)
        assert handler is not previous
        handler(signal.SIGINT, None)

    assert event.is_set()
    assert signal.getsignal(signal.SIGINT) is previous
