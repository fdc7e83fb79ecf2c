"""Session authenticator.

Credentials are looked up in order: the configured token (``GITHUB_TOKEN`` /
``GH_TOKEN``), then the GitHub CLI's credential store via ``gh auth token``.
Every token found is checked against ``GET /user``; a rejected one falls
through to the next source. With ``interactive=True`` an absent or rejected
credential triggers ``gh auth login`` before giving up.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Iterator

import httpx

from warden.config import Settings
from warden.errors import AuthError, CredentialsRejectedError
from warden.platform.client import GitHubClient

logger = logging.getLogger(__name__)

GH_TIMEOUT = 30


@dataclass(frozen=True)
class Session:
    """Validated credentials for one process. Never mutated after creation."""

    token: str = field(repr=False)
    login: str = ""
    source: str = ""  # env | gh | gh-login


def authenticate(
    settings: Settings,
    interactive: bool = False,
    transport: httpx.BaseTransport | None = None,
) -> Session:
    """Find credentials and validate them against the platform.

    A credential the platform rejects (expired or revoked) does not end the
    search: the next source is tried, up to ``gh auth login`` when
    ``interactive`` is set.

    Raises:
        AuthError: if no source yields a credential the platform accepts.
            No network call is made when no credential is found.
    """
    rejected = False
    tried: set[str] = set()
    for token, source in _candidate_tokens(settings, interactive):
        if token in tried:
            continue
        tried.add(token)
        with GitHubClient(settings, token, transport=transport) as client:
            try:
                login = client.get_authenticated_user()
            except CredentialsRejectedError:
                logger.warning("Credentials from %s were rejected, trying the next source", source)
                rejected = True
                continue
        logger.info("Authenticated as %s (credentials from %s)", login or "<unknown>", source)
        return Session(token=token, login=login, source=source)

    if rejected:
        raise CredentialsRejectedError()
    raise AuthError("no valid credentials")


def _candidate_tokens(settings: Settings, interactive: bool) -> Iterator[tuple[str, str]]:
    """Yield ``(token, source)`` pairs, consulting each source only when needed."""
    if settings.token:
        yield settings.token, "env"

    if not settings.use_gh_cli or shutil.which("gh") is None:
        logger.debug("GitHub CLI credential lookup disabled or gh not installed")
        return

    token = _gh_token(settings.host)
    if token:
        yield token, "gh"

    if interactive:
        logger.warning("No accepted GitHub credentials, running: gh auth login")
        result = subprocess.run(["gh", "auth", "login", "--hostname", settings.host])
        if result.returncode == 0:
            token = _gh_token(settings.host)
            if token:
                yield token, "gh-login"


def _gh_token(host: str) -> str:
    """Ask the GitHub CLI for its stored token; empty string if it has none."""
    try:
        result = subprocess.run(
            ["gh", "auth", "token", "--hostname", host],
            capture_output=True,
            text=True,
            timeout=GH_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("gh auth token failed: %s", e)
        return ""
    if result.returncode != 0:
        logger.debug("gh auth token exited %s: %s", result.returncode, result.stderr.strip())
        return ""
    return result.stdout.strip()
