"""Hosting platform access (GitHub REST API)."""

from warden.platform.client import GitHubClient
from warden.platform.payload import decode_protection, from_protection, to_payload

__all__ = ["GitHubClient", "decode_protection", "from_protection", "to_payload"]
