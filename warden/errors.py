"""Error taxonomy.

Fatal errors (``AuthError``, ``ResolutionError``, ``ValidationError``) abort a
run before any branch is touched. ``BranchError`` subclasses are scoped to a
single branch: the runner records them and moves on.
"""

from __future__ import annotations


class WardenError(Exception):
    """Base class for every error raised by warden."""


class AuthError(WardenError):
    """No usable credentials for the hosting platform."""

    def __init__(self, reason: str = "no valid credentials"):
        super().__init__(reason)
        self.reason = reason


class CredentialsRejectedError(AuthError):
    """The platform answered 401 for a credential; another source may still work."""

    def __init__(self, reason: str = "no valid credentials: token rejected"):
        super().__init__(reason)


class ResolutionError(WardenError):
    """The target repository could not be determined."""


class ValidationError(WardenError):
    """A policy or governance spec is malformed."""

    def __init__(self, issues: list[str], source: str = ""):
        self.issues = list(issues)
        self.source = source
        prefix = f"{source}: " if source else ""
        super().__init__(prefix + "; ".join(self.issues))


class BranchError(WardenError):
    """An error confined to one branch."""

    def __init__(self, branch: str, message: str):
        super().__init__(f"{branch}: {message}")
        self.branch = branch


class TransientApiError(BranchError):
    """Unexpected API response or transport failure (timeouts, 5xx, rate limits)."""

    def __init__(self, branch: str, status_code: int | None = None, body: str = ""):
        status = status_code if status_code is not None else "no response"
        super().__init__(branch, f"API error ({status}): {body[:200]}")
        self.status_code = status_code
        self.body = body


class ApplicationError(BranchError):
    """The platform refused to apply a protection policy."""

    def __init__(self, branch: str, reason: str = "", validation_detail: str = ""):
        super().__init__(branch, validation_detail or reason)
        self.reason = reason or "validation failed"
        self.validation_detail = validation_detail
