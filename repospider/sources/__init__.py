"""Repository sources."""

from .base import RepositorySource
from .cloner import GitCloner, classify_clone_failure
from .github import GitHubSearch, GitHubSource
from .local import LocalSource, find_repositories, parse_remote_url

__all__ = [
    "GitCloner",
    "GitHubSearch",
    "GitHubSource",
    "LocalSource",
    "RepositorySource",
    "classify_clone_failure",
    "find_repositories",
    "parse_remote_url",
]
