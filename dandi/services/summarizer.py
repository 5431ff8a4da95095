"""Repository summarizers.

- LangChainSummarizer: OpenAI chat model with structured output
- FallbackSummarizer: deterministic summary built from metadata only

Both produce a ``RepoAnalysis``. Model failures and timeouts surface as
``UpstreamFailureError`` so that callers never meter a failed summary.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any

import structlog
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from dandi.config import LLMConfig
from dandi.errors import UpstreamFailureError

logger = structlog.get_logger()


class RepoAnalysis(BaseModel):
    """Structured analysis of a repository (serialized in camelCase)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    purpose: str = Field(description="What the project does, in one or two sentences")
    features: list[str] = Field(description="Key features and capabilities")
    tech_stack: list[str] = Field(description="Languages, frameworks and tools used")
    target_audience: str = Field(description="Who would benefit from using it")
    summary: str = Field(description="A concise overview of at most 3-4 paragraphs")


SYSTEM_PROMPT = """You are a technical analyst who summarizes GitHub repositories.
Provide a concise, informative analysis that includes:
1. What the project does (main purpose)
2. Key features and capabilities
3. Technology stack used
4. Who would benefit from using it
Keep the summary to 3-4 paragraphs maximum."""


def build_repo_context(info: dict[str, Any], readme: str | None) -> str:
    topics = info.get("topics") or []
    lines = [
        f"Repository: {info.get('full_name')}",
        f"Description: {info.get('description') or 'No description provided'}",
        f"Primary Language: {info.get('language') or 'Not specified'}",
        f"Topics: {', '.join(topics) if topics else 'None'}",
        f"Stars: {info.get('stargazers_count', 0)}",
        f"Forks: {info.get('forks_count', 0)}",
    ]
    if readme:
        lines.append(f"\nREADME Content:\n{readme}")
    return "\n".join(lines)


class Summarizer(ABC):
    """Turns repository metadata into a ``RepoAnalysis``."""

    @property
    @abstractmethod
    def ai_powered(self) -> bool:
        ...

    @abstractmethod
    async def summarize(self, info: dict[str, Any], readme: str | None) -> RepoAnalysis:
        """Summarize one repository.

        Raises:
            UpstreamFailureError: If the summary could not be produced
        """
        ...


class LangChainSummarizer(Summarizer):
    """Summarizer backed by an OpenAI chat model via LangChain."""

    def __init__(self, config: LLMConfig, *, model: Any | None = None) -> None:
        self._config = config
        self._timeout = config.timeout_seconds
        if model is None:
            model = ChatOpenAI(
                model=config.model,
                temperature=config.temperature,
                api_key=config.api_key,
                base_url=config.base_url,
            )
        self._chain = model.with_structured_output(RepoAnalysis)
        self._log = logger.bind(component="summarizer", model=config.model)

    @property
    def ai_powered(self) -> bool:
        return True

    async def summarize(self, info: dict[str, Any], readme: str | None) -> RepoAnalysis:
        messages = [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(
                content=f"Please summarize this GitHub repository:\n{build_repo_context(info, readme)}"
            ),
        ]

        try:
            result = await asyncio.wait_for(self._chain.ainvoke(messages), timeout=self._timeout)
        except asyncio.TimeoutError:
            self._log.error("summarizer.timeout", timeout=self._timeout)
            raise UpstreamFailureError(
                f"Summarization timed out after {self._timeout:g} seconds"
            ) from None
        except Exception as e:
            self._log.error("summarizer.failed", error=str(e))
            raise UpstreamFailureError(f"Summarization failed: {e}") from e

        if isinstance(result, dict):
            result = RepoAnalysis.model_validate(result)
        return result


class FallbackSummarizer(Summarizer):
    """Metadata-only summary used by the demo when no model is available."""

    @property
    def ai_powered(self) -> bool:
        return False

    async def summarize(self, info: dict[str, Any], readme: str | None) -> RepoAnalysis:
        return fallback_analysis(info)


def fallback_analysis(info: dict[str, Any]) -> RepoAnalysis:
    language = info.get("language") or "Unknown"
    topics: list[str] = info.get("topics") or []
    description: str | None = info.get("description")
    stars = f"{info.get('stargazers_count', 0):,}"
    forks = f"{info.get('forks_count', 0):,}"

    if description:
        what = f"a project that {description.lower()}"
    else:
        what = f"a {language} repository"
    focus = f"The project focuses on {', '.join(topics[:3])}. " if topics else ""

    return RepoAnalysis(
        purpose=description or f"A {language} project hosted on GitHub.",
        features=[
            f"Written primarily in {language}",
            f"{stars} stars on GitHub",
            f"{forks} forks",
            f"Topics: {', '.join(topics[:3])}" if topics else "Open source project",
        ],
        tech_stack=[t for t in [language, *topics[:4]] if t],
        target_audience=(
            f"Developers interested in {language} and "
            f"{topics[0] if topics else 'open source'} projects."
        ),
        summary=(
            f"{info.get('full_name')} is {what}. With {stars} stars and {forks} forks, "
            f"it has gained attention in the developer community. {focus}"
            "This is a demo response - sign up for full AI-powered analysis."
        ),
    )
