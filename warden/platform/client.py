"""GitHub REST client for branch and branch-protection endpoints.

Every call has a bounded timeout and is issued exactly once; there is no
retry layer. Responses are mapped onto the error taxonomy in
``warden.errors`` so callers never see raw HTTP errors.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from warden import __version__
from warden.config import Settings
from warden.errors import ApplicationError, AuthError, CredentialsRejectedError, TransientApiError
from warden.utils.git_ops import RepositoryId

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


class GitHubClient:
    """Thin synchronous wrapper around ``httpx.Client``.

    Use as a context manager so the connection pool is closed::

        with GitHubClient(settings, token) as client:
            client.branch_exists(repo, "main")
    """

    def __init__(
        self,
        settings: Settings,
        token: str,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._client = httpx.Client(
            base_url=settings.api_url,
            timeout=settings.timeout,
            transport=transport,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": API_VERSION,
                "User-Agent": f"warden/{__version__}",
            },
        )

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # -- low level -----------------------------------------------------------

    def _send(self, method: str, path: str, branch: str, **kwargs) -> httpx.Response:
        logger.debug("%s %s", method, path)
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientApiError(branch, None, f"timed out after {self.settings.timeout}s") from e
        except httpx.HTTPError as e:
            raise TransientApiError(branch, None, str(e)) from e
        logger.debug("%s %s -> %s", method, path, response.status_code)
        return response

    @staticmethod
    def _branch_path(repo: RepositoryId, branch: str) -> str:
        return f"/repos/{repo.owner}/{repo.name}/branches/{quote(branch)}"

    # -- endpoints -------------------------------------------------------------

    def get_authenticated_user(self) -> str:
        """Return the login behind the token.

        Raises:
            CredentialsRejectedError: if the platform answers 401.
            AuthError: on any other failure to confirm the token.
        """
        try:
            response = self._client.get("/user")
        except httpx.HTTPError as e:
            raise AuthError(f"could not reach {self.settings.api_url}: {e}") from e
        if response.status_code == 401:
            raise CredentialsRejectedError()
        if response.is_error:
            raise AuthError(f"credential check failed ({response.status_code}): {response.text[:200]}")
        try:
            body = response.json()
        except ValueError as e:
            raise AuthError(f"credential check returned an unreadable body: {response.text[:200]}") from e
        return str(body.get("login", "")) if isinstance(body, dict) else ""

    def branch_exists(self, repo: RepositoryId, branch: str) -> bool:
        """A 404 is a successful ``False``; any other error is transient."""
        response = self._send("GET", self._branch_path(repo, branch), branch)
        if response.status_code == 404:
            return False
        if response.is_success:
            return True
        raise TransientApiError(branch, response.status_code, response.text)

    def set_protection(self, repo: RepositoryId, branch: str, payload: dict[str, Any]) -> dict:
        """Replace the branch's protection with ``payload`` and return the new state."""
        response = self._send(
            "PUT", self._branch_path(repo, branch) + "/protection", branch, json=payload
        )
        if response.is_success:
            return _json_object(response, branch)
        if response.status_code == 422:
            raise ApplicationError(branch, validation_detail=_validation_detail(response))
        if response.status_code == 403:
            raise ApplicationError(branch, reason="forbidden")
        if response.status_code == 404:
            raise ApplicationError(branch, reason="not found or insufficient admin rights")
        raise TransientApiError(branch, response.status_code, response.text)

    def get_protection(self, repo: RepositoryId, branch: str) -> dict | None:
        """Current protection, or ``None`` when the branch is not protected."""
        response = self._send("GET", self._branch_path(repo, branch) + "/protection", branch)
        if response.status_code == 404:
            return None
        if response.is_success:
            return _json_object(response, branch)
        raise TransientApiError(branch, response.status_code, response.text)


def _json_object(response: httpx.Response, branch: str) -> dict:
    """Decode a success body; anything but a JSON object is an API error."""
    try:
        body = response.json()
    except ValueError as e:
        raise TransientApiError(branch, response.status_code, response.text) from e
    if not isinstance(body, dict):
        raise TransientApiError(branch, response.status_code, response.text)
    return body


def _validation_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(body, list):
        body = {"errors": body}
    elif not isinstance(body, dict):
        return str(body)[:500]
    message = body.get("message") or "validation failed"
    errors = body.get("errors") or []
    if not isinstance(errors, list):
        errors = [errors]
    details = [_error_text(e) for e in errors]
    if details:
        return f"{message}: {'; '.join(details)}"
    return str(message)


def _error_text(error) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)
