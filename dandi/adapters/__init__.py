"""Outbound adapters."""

from dandi.adapters.github import GitHubAdapter, RepoData, RepoRef, parse_github_url

__all__ = [
    "GitHubAdapter",
    "RepoData",
    "RepoRef",
    "parse_github_url",
]
