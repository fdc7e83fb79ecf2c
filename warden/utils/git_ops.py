"""Git operations — resolve which hosted repository a run targets."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from git import InvalidGitRepositoryError, NoSuchPathError, Repo

from warden.config import DEFAULT_HOST
from warden.errors import ResolutionError

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"^(?P<owner>[A-Za-z0-9_.-]+)/(?P<name>[A-Za-z0-9_.-]+)$")
_URL_RES = (
    # https://host/owner/name(.git), optionally with credentials in front of the host
    re.compile(r"^https?://(?:[^@/]+@)?(?P<host>[^/:]+)(?::\d+)?/(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$"),
    # ssh://git@host(:port)/owner/name(.git)
    re.compile(r"^ssh://(?:[^@/]+@)?(?P<host>[^/:]+)(?::\d+)?/(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$"),
    # git@host:owner/name(.git)
    re.compile(r"^(?:[^@/]+@)?(?P<host>[^/:]+):(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$"),
)


@dataclass(frozen=True)
class RepositoryId:
    """Owner and name of a hosted repository."""

    owner: str
    name: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.slug


@dataclass(frozen=True)
class WorkingContext:
    """Where to look for the target repository.

    ``slug`` (``owner/name`` or a remote URL) wins over ``path``; ``path`` is a
    local checkout whose remotes are inspected.
    """

    path: Path | None = None
    slug: str = ""


def parse_remote_url(url: str, host: str = DEFAULT_HOST) -> RepositoryId:
    """Parse a git remote URL pointing at ``host``.

    Raises:
        ResolutionError: if the URL is not recognised or points elsewhere.
    """
    url = url.strip()
    for pattern in _URL_RES:
        match = pattern.match(url)
        if match:
            if match.group("host").lower() != host.lower():
                raise ResolutionError(
                    f"remote {url!r} does not point at the supported host {host}"
                )
            return RepositoryId(owner=match.group("owner"), name=match.group("name"))
    raise ResolutionError(f"unrecognised remote URL: {url!r}")


def resolve_repository(context: WorkingContext, host: str = DEFAULT_HOST) -> RepositoryId:
    """Determine the target repository from an explicit working context.

    Raises:
        ResolutionError: if no repository can be determined.
    """
    if context.slug:
        match = _SLUG_RE.match(context.slug.strip())
        if match:
            return RepositoryId(owner=match.group("owner"), name=match.group("name"))
        return parse_remote_url(context.slug, host)

    if context.path is None:
        raise ResolutionError("no repository given and no working directory to inspect")

    url = _get_remote_url(Path(context.path))
    repo = parse_remote_url(url, host)
    logger.info("Resolved %s from remote %s", repo, url)
    return repo


def _get_remote_url(repo_path: Path) -> str:
    """Return the ``origin`` remote URL (else the first remote) for a local repo."""
    try:
        repo = Repo(repo_path, search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError):
        raise ResolutionError(f"not a git repository: {repo_path}")

    if not repo.remotes:
        raise ResolutionError(f"no git remote configured in {repo.working_tree_dir or repo_path}")

    names = [r.name for r in repo.remotes]
    remote = repo.remotes["origin"] if "origin" in names else repo.remotes[0]
    return remote.url
