"""GitHub REST adapter.

Fetches the repository metadata the summarizer works from:
- GET /repos/{owner}/{repo}: Repository info
- GET /repos/{owner}/{repo}/readme: README (base64)
- GET /repos/{owner}/{repo}/releases/latest, falling back to /tags
- GET /repos/{owner}/{repo}/contributors: Count via the Link header
- GET /repos/{owner}/{repo}/languages: Bytes per language

Secondary lookups are best-effort and return None on failure. Only the
repository info lookup decides whether the repository exists.
"""

from __future__ import annotations

import asyncio
import base64
import re
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from dandi.config import GitHubConfig, get_settings
from dandi.services.http import http_client_manager

logger = structlog.get_logger()

_GITHUB_URL_PATTERN = re.compile(r"github\.com/([^/]+)/([^/]+)")
_LAST_PAGE_PATTERN = re.compile(r'page=(\d+)>; rel="last"')


def _get_shared_client() -> httpx.AsyncClient | None:
    """Get shared HTTP client if available.

    Returns None if client manager is not initialized (e.g., in tests).
    """
    try:
        return http_client_manager.client
    except RuntimeError:
        return None


@dataclass(frozen=True)
class RepoRef:
    """Owner/name pair parsed from a repository URL."""

    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_github_url(url: str) -> RepoRef | None:
    """Extract owner and repository from a GitHub URL.

    Accepts anything containing ``github.com/<owner>/<repo>``; a trailing
    ``.git`` is stripped. Returns None when the URL does not match.
    """
    match = _GITHUB_URL_PATTERN.search(url or "")
    if match is None:
        return None

    owner, repo = match.group(1), match.group(2)
    repo = re.sub(r"\.git$", "", repo)
    if not owner or not repo:
        return None
    return RepoRef(owner=owner, repo=repo)


@dataclass
class RepoData:
    """Everything fetched for one repository."""

    info: dict[str, Any] | None
    readme: str | None = None
    latest_release: dict[str, Any] | None = None
    contributors_count: int | None = None
    languages: dict[str, int] | None = None


class GitHubAdapter:
    """HTTP adapter for the GitHub REST API."""

    def __init__(
        self,
        config: GitHubConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or get_settings().github
        self._base_url = self._config.api_url.rstrip("/")
        self._client = client
        self._log = logger.bind(adapter="github")

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": self._config.user_agent,
        }
        if self._config.token:
            headers["Authorization"] = f"Bearer {self._config.token}"
        return headers

    async def _get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response | None:
        """GET a path; None on transport errors or non-2xx responses."""
        url = f"{self._base_url}{path}"
        timeout = self._config.timeout_seconds

        try:
            client = self._client or _get_shared_client()
            if client is not None:
                response = await client.get(
                    url, params=params, headers=self._headers(), timeout=timeout
                )
            else:
                async with httpx.AsyncClient(trust_env=False) as temp_client:
                    response = await temp_client.get(
                        url, params=params, headers=self._headers(), timeout=timeout
                    )
        except httpx.TimeoutException:
            self._log.warning("github.timeout", path=path, timeout=timeout)
            return None
        except httpx.RequestError as e:
            self._log.warning("github.request_error", path=path, error=str(e))
            return None

        if response.status_code >= 400:
            self._log.info("github.request_failed", path=path, status=response.status_code)
            return None

        return response

    @staticmethod
    def _json(response: httpx.Response | None) -> Any:
        if response is None:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    async def fetch_repo_info(self, ref: RepoRef) -> dict[str, Any] | None:
        data = self._json(await self._get(f"/repos/{ref.full_name}"))
        return data if isinstance(data, dict) else None

    async def fetch_readme(self, ref: RepoRef) -> str | None:
        """Decoded README, truncated to ``readme_max_chars`` plus ``...``."""
        data = self._json(await self._get(f"/repos/{ref.full_name}/readme"))
        if not isinstance(data, dict) or not data.get("content"):
            return None

        try:
            content = base64.b64decode(data["content"]).decode("utf-8", errors="replace")
        except ValueError:
            self._log.warning("github.readme_decode_failed", repo=ref.full_name)
            return None

        max_chars = self._config.readme_max_chars
        if len(content) > max_chars:
            return content[:max_chars] + "..."
        return content

    async def fetch_latest_release(self, ref: RepoRef) -> dict[str, Any] | None:
        """Latest published release, or the newest tag dressed as one."""
        data = self._json(await self._get(f"/repos/{ref.full_name}/releases/latest"))
        if isinstance(data, dict):
            return data

        tags = self._json(
            await self._get(f"/repos/{ref.full_name}/tags", params={"per_page": 1})
        )
        if not isinstance(tags, list) or not tags:
            return None

        tag_name = tags[0].get("name")
        if not tag_name:
            return None
        return {
            "tag_name": tag_name,
            "name": tag_name,
            "published_at": None,
            "html_url": f"https://github.com/{ref.full_name}/releases/tag/{tag_name}",
            "prerelease": False,
            "draft": False,
        }

    async def fetch_contributors_count(self, ref: RepoRef) -> int | None:
        """Contributor count including anonymous contributors.

        With ``per_page=1`` the last page number in the Link header equals
        the total. Without pagination the body is counted directly.
        """
        response = await self._get(
            f"/repos/{ref.full_name}/contributors",
            params={"per_page": 1, "anon": "true"},
        )
        if response is None:
            return None

        link = response.headers.get("link")
        if link:
            match = _LAST_PAGE_PATTERN.search(link)
            if match:
                return int(match.group(1))

        contributors = self._json(response)
        return len(contributors) if isinstance(contributors, list) else None

    async def fetch_languages(self, ref: RepoRef) -> dict[str, int] | None:
        data = self._json(await self._get(f"/repos/{ref.full_name}/languages"))
        return data if isinstance(data, dict) else None

    async def fetch_all(self, ref: RepoRef) -> RepoData:
        """Fetch every lookup concurrently."""
        info, readme, release, contributors, languages = await asyncio.gather(
            self.fetch_repo_info(ref),
            self.fetch_readme(ref),
            self.fetch_latest_release(ref),
            self.fetch_contributors_count(ref),
            self.fetch_languages(ref),
        )
        self._log.debug(
            "github.fetched",
            repo=ref.full_name,
            found=info is not None,
            has_readme=readme is not None,
        )
        return RepoData(
            info=info,
            readme=readme,
            latest_release=release,
            contributors_count=contributors,
            languages=languages,
        )
