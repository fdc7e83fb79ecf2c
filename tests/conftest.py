"""Shared fixtures: an in-memory GitHub served through ``httpx.MockTransport``."""

import json
import re
from urllib.parse import unquote

import httpx
import pytest

from warden.config import Settings
from warden.platform.client import GitHubClient
from warden.platform.payload import to_payload
from warden.utils.git_ops import RepositoryId

TOKEN = "test-token"
API_URL = "https://api.github.test"

_BRANCH_PATH = re.compile(
    r"^/repos/(?P<owner>[^/]+)/(?P<name>[^/]+)/branches/(?P<branch>.+?)(?P<protection>/protection)?$"
)


class FakeGitHub:
    """Just enough of the branch-protection API to exercise warden end to end.

    Stored protection uses the write shape; reads answer in GitHub's read
    shape with status-check contexts reversed, the way the platform is free
    to reorder them.
    """

    def __init__(self, branches=("main",), login="octocat"):
        self.branches = set(branches)
        self.protections: dict[str, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], tuple[int, dict | str]] = {}
        self.known_checks: set[str] | None = None
        self.login = login
        self.on_request = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    @property
    def writes(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] == "PUT"]

    def protect(self, branch, policy):
        self.protections[branch] = to_payload(policy)

    def fail(self, method, path_suffix, status, body=None):
        """Answer ``method`` on paths ending with ``path_suffix`` with ``status``."""
        self.failures[(method, path_suffix)] = (status, body or {"message": "boom"})

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = unquote(request.url.path)
        self.calls.append((request.method, path))
        if self.on_request is not None:
            self.on_request(request)

        if request.headers.get("Authorization") != f"Bearer {TOKEN}":
            return httpx.Response(401, json={"message": "Bad credentials"})

        for (method, suffix), (status, body) in self.failures.items():
            if request.method == method and path.endswith(suffix):
                if isinstance(body, str):
                    return httpx.Response(status, text=body)
                return httpx.Response(status, json=body)

        if path == "/user":
            return httpx.Response(200, json={"login": self.login})

        match = _BRANCH_PATH.match(path)
        if not match:
            return httpx.Response(404, json={"message": "Not Found"})

        branch = match.group("branch")
        if branch not in self.branches:
            return httpx.Response(404, json={"message": "Branch not found"})

        if not match.group("protection"):
            return httpx.Response(
                200, json={"name": branch, "protected": branch in self.protections}
            )

        if request.method == "PUT":
            payload = json.loads(request.content)
            checks = payload.get("required_status_checks") or {}
            unknown = [
                c for c in checks.get("contexts", [])
                if self.known_checks is not None and c not in self.known_checks
            ]
            if unknown:
                return httpx.Response(
                    422,
                    json={
                        "message": "Validation Failed",
                        "errors": [f"Unknown status check context: {c}" for c in unknown],
                    },
                )
            self.protections[branch] = payload
            return httpx.Response(200, json=read_shape(payload))

        if branch not in self.protections:
            return httpx.Response(404, json={"message": "Branch not protected"})
        return httpx.Response(200, json=read_shape(self.protections[branch]))


def read_shape(payload: dict) -> dict:
    """Convert a stored write-shape payload to GitHub's read shape."""
    data: dict = {"url": "https://api.github.test/protection"}
    checks = payload.get("required_status_checks")
    if checks is not None:
        contexts = list(reversed(checks["contexts"]))
        data["required_status_checks"] = {
            "strict": checks["strict"],
            "contexts": contexts,
            "checks": [{"context": c, "app_id": None} for c in contexts],
        }
    reviews = payload.get("required_pull_request_reviews")
    if reviews is not None:
        data["required_pull_request_reviews"] = dict(reviews)
    restrictions = payload.get("restrictions")
    if restrictions is not None:
        data["restrictions"] = {
            "users": [{"login": u} for u in restrictions.get("users", [])],
            "teams": [{"slug": t} for t in restrictions.get("teams", [])],
            "apps": [{"slug": a} for a in restrictions.get("apps", [])],
        }
    for flag in (
        "enforce_admins",
        "required_linear_history",
        "allow_force_pushes",
        "allow_deletions",
        "block_creations",
        "required_conversation_resolution",
        "lock_branch",
        "allow_fork_syncing",
    ):
        data[flag] = {"enabled": bool(payload.get(flag, False))}
    return data


@pytest.fixture
def fake_github():
    return FakeGitHub(branches=("main",))


@pytest.fixture
def settings():
    return Settings(api_url=API_URL, token=TOKEN, use_gh_cli=False)


@pytest.fixture
def client(settings, fake_github):
    with GitHubClient(settings, TOKEN, transport=fake_github.transport) as c:
        yield c


@pytest.fixture
def repo():
    return RepositoryId(owner="octo", name="demo")


@pytest.fixture
def cli_env():
    return {
        "GITHUB_TOKEN": TOKEN,
        "GH_TOKEN": "",
        "WARDEN_API_URL": API_URL,
        "WARDEN_USE_GH_CLI": "0",
        "WARDEN_TIMEOUT": "",
    }
