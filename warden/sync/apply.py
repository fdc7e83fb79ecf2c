"""Branch existence check and policy application."""

from __future__ import annotations

import logging

from warden.platform.client import GitHubClient
from warden.platform.payload import decode_protection, to_payload
from warden.policy.models import ProtectionPolicy
from warden.utils.git_ops import RepositoryId

logger = logging.getLogger(__name__)


def branch_exists(client: GitHubClient, repo: RepositoryId, branch: str) -> bool:
    """Return whether ``branch`` exists.

    Raises:
        TransientApiError: on any response other than found / not found.
    """
    exists = client.branch_exists(repo, branch)
    logger.debug("Branch %s on %s exists: %s", branch, repo, exists)
    return exists


def apply_policy(
    client: GitHubClient,
    repo: RepositoryId,
    branch: str,
    policy: ProtectionPolicy,
) -> ProtectionPolicy:
    """Replace the branch's protection with ``policy``.

    The complete desired state is sent every time, so applying the same policy
    again is a no-op on the platform side.

    Returns:
        The applied policy as reported back by the platform.

    Raises:
        ApplicationError: if the platform rejects the policy or access is denied.
        TransientApiError: on any other failure, including a response body
            that cannot be decoded.
    """
    logger.info("Applying protection to %s on %s", branch, repo)
    response = client.set_protection(repo, branch, to_payload(policy))
    return decode_protection(response, branch)
