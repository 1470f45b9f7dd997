"""Registry search models: queries, sort order, and filtering."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from agt.models.agent import AgentDescriptor


class SortField(Enum):
    DOWNLOADS = "downloads"
    RATING = "rating"
    NAME = "name"
    UPDATED = "updated"


@dataclass
class SearchQuery:
    """Query for searching the registry. All set filters must match."""

    text: str = ""
    category: str = ""
    tag: str = ""
    author: str = ""
    target: str = ""  # compatibility, e.g. "codex"
    language: str = ""  # only agents with content in this language
    sort_by: SortField = SortField.DOWNLOADS
    limit: int = 0  # 0 = unlimited

    def matches(self, agent: AgentDescriptor) -> bool:
        if self.text and not _matches_text(agent, self.text.lower()):
            return False

        if self.category and agent.category != self.category:
            return False

        if self.tag and not any(self.tag.lower() in t.lower() for t in agent.tags):
            return False

        if self.author and self.author.lower() not in agent.author.lower():
            return False

        if self.target and not agent.supports(self.target):
            return False

        if self.language and not agent.has_language(self.language):
            return False

        return True


@dataclass
class SearchResult:
    """Result of a registry search."""

    agents: list[AgentDescriptor] = field(default_factory=list)
    total_count: int = 0  # matches before the limit was applied
    query: SearchQuery = field(default_factory=SearchQuery)

    @property
    def truncated(self) -> bool:
        return self.total_count > len(self.agents)


def run_search(agents: list[AgentDescriptor], query: SearchQuery) -> SearchResult:
    """Filter, sort and limit *agents* according to *query*."""
    matched = [a for a in agents if query.matches(a)]
    matched = sort_agents(matched, query.sort_by)
    total = len(matched)
    if query.limit and query.limit > 0:
        matched = matched[: query.limit]
    return SearchResult(agents=matched, total_count=total, query=query)


def sort_agents(agents: list[AgentDescriptor], sort_by: SortField) -> list[AgentDescriptor]:
    if sort_by is SortField.RATING:
        return sorted(agents, key=lambda a: a.rating, reverse=True)
    if sort_by is SortField.NAME:
        return sorted(agents, key=lambda a: a.display_name)
    if sort_by is SortField.UPDATED:
        return sorted(agents, key=lambda a: _parse_timestamp(a.updated_at), reverse=True)
    return sorted(agents, key=lambda a: a.downloads, reverse=True)


def _matches_text(agent: AgentDescriptor, needle: str) -> bool:
    haystack = [agent.id, *agent.name.values(), *agent.description.values(), *agent.tags]
    return any(needle in value.lower() for value in haystack)


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    if not value:
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
