"""Summarization orchestration.

Ties the GitHub adapter to a summarizer and shapes the repository payload
returned to callers. Metering is not done here: callers meter only after
``summarize()`` returned normally.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from dandi.adapters.github import GitHubAdapter, RepoData, RepoRef, parse_github_url
from dandi.errors import (
    NotFoundError,
    ServiceUnavailableError,
    UpstreamFailureError,
    ValidationError,
)
from dandi.services.summarizer import FallbackSummarizer, RepoAnalysis, Summarizer

logger = structlog.get_logger()

LLM_NOT_CONFIGURED_MESSAGE = (
    "OpenAI API key not configured. Please set DANDI_LLM__API_KEY in your environment."
)


def calculate_language_percentages(languages: dict[str, int]) -> list[dict[str, Any]]:
    """Share of bytes per language, one decimal, largest first."""
    total = sum(languages.values())
    if total == 0:
        return []

    entries = [
        {"name": name, "bytes": size, "percentage": round(size / total * 100, 1)}
        for name, size in languages.items()
    ]
    entries.sort(key=lambda e: e["percentage"], reverse=True)
    return entries


def build_repository_payload(data: RepoData) -> dict[str, Any]:
    info = data.info or {}
    license_info = info.get("license")
    release = data.latest_release

    return {
        "name": info.get("name"),
        "fullName": info.get("full_name"),
        "description": info.get("description"),
        "url": info.get("html_url"),
        "websiteUrl": info.get("homepage") or None,
        "stars": info.get("stargazers_count"),
        "forks": info.get("forks_count"),
        "watchers": info.get("watchers_count"),
        "openIssues": info.get("open_issues_count"),
        "contributors": data.contributors_count,
        "primaryLanguage": info.get("language"),
        "languages": (
            calculate_language_percentages(data.languages) if data.languages is not None else None
        ),
        "topics": info.get("topics") or [],
        "license": (
            {
                "key": license_info.get("key"),
                "name": license_info.get("name"),
                "spdxId": license_info.get("spdx_id"),
                "url": license_info.get("url"),
            }
            if license_info
            else None
        ),
        "defaultBranch": info.get("default_branch"),
        "size": info.get("size"),
        "archived": info.get("archived"),
        "visibility": info.get("visibility"),
        "createdAt": info.get("created_at"),
        "updatedAt": info.get("updated_at"),
        "pushedAt": info.get("pushed_at"),
        "latestVersion": release.get("tag_name") if release else None,
        "latestRelease": (
            {
                "version": release.get("tag_name"),
                "name": release.get("name"),
                "publishedAt": release.get("published_at"),
                "url": release.get("html_url"),
                "isPrerelease": bool(release.get("prerelease")),
            }
            if release
            else None
        ),
    }


def build_demo_repository_payload(info: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": info.get("name"),
        "fullName": info.get("full_name"),
        "description": info.get("description"),
        "url": info.get("html_url"),
        "stars": info.get("stargazers_count"),
        "forks": info.get("forks_count"),
        "language": info.get("language"),
        "topics": info.get("topics") or [],
        "createdAt": info.get("created_at"),
        "updatedAt": info.get("updated_at"),
    }


@dataclass
class SummaryResult:
    repository: dict[str, Any]
    analysis: RepoAnalysis
    ai_powered: bool = True


def require_repo_ref(github_url: str | None, invalid_message: str) -> RepoRef:
    """Parse a request's repository URL.

    Raises:
        ValidationError: If the URL is missing or not a GitHub repository URL
    """
    if not github_url:
        raise ValidationError("Missing required field: githubUrl")
    ref = parse_github_url(github_url)
    if ref is None:
        raise ValidationError(invalid_message)
    return ref


class SummarizationService:
    """Fetches repository metadata and summarizes it."""

    def __init__(self, github: GitHubAdapter, summarizer: Summarizer | None) -> None:
        self._github = github
        self._summarizer = summarizer
        self._fallback = FallbackSummarizer()
        self._log = logger.bind(service="summarization")

    async def summarize(self, github_url: str | None) -> SummaryResult:
        """Full summary for the metered endpoint.

        Raises:
            ValidationError: Missing or unparsable URL
            NotFoundError: Repository missing or private
            ServiceUnavailableError: No summarizer configured
            UpstreamFailureError: Summarizer failed or timed out
        """
        ref = require_repo_ref(
            github_url,
            "Invalid GitHub repository URL. Format: https://github.com/owner/repo",
        )

        data = await self._github.fetch_all(ref)
        if data.info is None:
            raise NotFoundError(
                "Failed to fetch repository information. "
                "Repository may not exist or is private."
            )

        if self._summarizer is None:
            raise ServiceUnavailableError(LLM_NOT_CONFIGURED_MESSAGE)

        analysis = await self._summarizer.summarize(data.info, data.readme)
        self._log.info("summarization.completed", repo=ref.full_name)
        return SummaryResult(
            repository=build_repository_payload(data),
            analysis=analysis,
            ai_powered=self._summarizer.ai_powered,
        )

    async def summarize_demo(self, github_url: str | None) -> SummaryResult:
        """Reduced summary for the demo endpoint.

        Falls back to a metadata-only summary when no model is configured or
        the model fails.
        """
        ref = require_repo_ref(
            github_url,
            "Invalid GitHub URL format. Expected: https://github.com/owner/repository",
        )

        info = await self._github.fetch_repo_info(ref)
        if info is None:
            raise NotFoundError("Repository not found or not accessible")
        readme = await self._github.fetch_readme(ref)

        summarizer = self._summarizer or self._fallback
        try:
            analysis = await summarizer.summarize(info, readme)
        except UpstreamFailureError as e:
            self._log.warning("summarizer.fallback", repo=ref.full_name, error=e.message)
            summarizer = self._fallback
            analysis = await summarizer.summarize(info, readme)

        return SummaryResult(
            repository=build_demo_repository_payload(info),
            analysis=analysis,
            ai_powered=summarizer.ai_powered,
        )
