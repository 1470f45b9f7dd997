"""HTTP client for the agents registry.

The registry is a static tree of JSON indexes and markdown files::

    {url}/index/main.json                           catalog index (categories)
    {url}/index/categories/{category}.json          {"agents": [...]}
    {url}/agents/{author}/{id}/{id}_v{version}.md   agent content

Publishing goes to the AGTHub API (``api_url``), not the static registry.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

import httpx

from agt.errors import AgentNotFoundError, PublishError, RegistryUnavailableError
from agt.models.agent import AgentDescriptor
from agt.models.identity import AgentIdentity
from agt.registry.cache import TTLCache
from agt.registry.models import SearchQuery, SearchResult, run_search

if TYPE_CHECKING:
    from agt.publish.parser import AgentMetadata

logger = logging.getLogger(__name__)

_MAX_PARALLEL_FETCHES = 8


class RegistryClient:
    """Catalog reads (cached), content downloads and publish submission."""

    def __init__(
        self,
        base_url: str,
        api_url: str = "",
        cache_ttl: float = 300.0,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        cache: TTLCache | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.cache = cache or TTLCache(ttl=cache_ttl)
        self._transport = transport
        self._client: httpx.Client | None = None

    @classmethod
    def from_config(
        cls,
        config,
        transport: httpx.BaseTransport | None = None,
        base_url: str | None = None,
    ) -> RegistryClient:
        return cls(
            base_url=base_url or config.registry.url,
            api_url=config.api_url,
            cache_ttl=config.registry.cache_ttl,
            timeout=config.registry.timeout,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> RegistryClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _get(self, url: str) -> httpx.Response:
        logger.debug("GET %s", url)
        try:
            response = self._get_client().get(url)
        except httpx.HTTPError as e:
            raise RegistryUnavailableError(f"Failed to fetch {url}: {e}") from e
        return response

    def _get_json(self, url: str) -> Any:
        response = self._get(url)
        if response.status_code != 200:
            raise RegistryUnavailableError(
                f"Registry request {url} failed with status {response.status_code}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise RegistryUnavailableError(f"Registry returned invalid JSON from {url}") from e

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def catalog_index(self) -> dict:
        """The registry's main index (``categories``, ``totalAgents``, stats)."""
        return self.cache.get_or_fetch(
            "catalog", lambda: self._get_json(f"{self.base_url}/index/main.json")
        )

    def categories(self) -> list[str]:
        return list((self.catalog_index().get("categories") or {}).keys())

    def category_agents(self, category: str) -> list[AgentDescriptor]:
        def fetch() -> list[AgentDescriptor]:
            data = self._get_json(f"{self.base_url}/index/categories/{category}.json")
            return [AgentDescriptor.from_dict(d) for d in data.get("agents") or []]

        return self.cache.get_or_fetch(f"category:{category}", fetch)

    def all_agents(self) -> list[AgentDescriptor]:
        """Every agent across all categories, de-duplicated by ``author/id``.

        Categories are fetched in parallel; a category that cannot be fetched
        is logged and skipped.

        Raises:
            RegistryUnavailableError: no category could be fetched.
        """
        categories = self.categories()
        if not categories:
            return []

        def fetch(category: str) -> list[AgentDescriptor] | None:
            try:
                return self.category_agents(category)
            except RegistryUnavailableError as e:
                logger.warning("Skipping category %s: %s", category, e)
                return None

        workers = min(_MAX_PARALLEL_FETCHES, len(categories))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = [r for r in pool.map(fetch, categories) if r is not None]

        if not results:
            raise RegistryUnavailableError(
                f"Could not fetch any category index from {self.base_url}"
            )

        seen: set[str] = set()
        agents: list[AgentDescriptor] = []
        for batch in results:
            for agent in batch:
                if agent.key in seen:
                    continue
                seen.add(agent.key)
                agents.append(agent)
        return agents

    def search(self, query: SearchQuery) -> SearchResult:
        if query.category:
            agents = self.category_agents(query.category)
        else:
            agents = self.all_agents()
        return run_search(agents, query)

    def lookup(self, identity: AgentIdentity) -> AgentDescriptor | None:
        """Find the catalog entry for *identity*.

        With an author, ``(author, name)`` must match exactly. Without one,
        the first entry with a matching name wins.
        """
        agents = self.all_agents()

        if identity.author:
            for agent in agents:
                if agent.author == identity.author and agent.id == identity.name:
                    return agent
            return None

        matches = [a for a in agents if a.id == identity.name]
        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(
                "%s is published by several authors (%s); using %s. "
                "Use <author>/<name> to choose.",
                identity.name,
                ", ".join(a.author for a in matches),
                matches[0].key,
            )
        return matches[0]

    def clear_cache(self) -> None:
        self.cache.clear()

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def content_url(self, author: str, name: str, version: str) -> str:
        return f"{self.base_url}/agents/{author}/{name}/{name}_v{version}.md"

    def fetch_content(self, identity: AgentIdentity, version: str) -> bytes:
        """Download the markdown for one agent version.

        Raises:
            AgentNotFoundError: the registry has no file for that version.
            RegistryUnavailableError: network failure or unexpected status.
        """
        if not identity.author:
            raise AgentNotFoundError(f"Cannot download {identity.name}: author is unknown")

        url = self.content_url(identity.author, identity.name, version)
        response = self._get(url)
        if response.status_code == 404:
            raise AgentNotFoundError(f"Agent {identity.key} has no version {version}")
        if response.status_code != 200:
            raise RegistryUnavailableError(
                f"Download of {identity.key}@{version} failed with status {response.status_code}"
            )
        return response.content

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    def publish(
        self,
        metadata: AgentMetadata,
        content: bytes,
        token: str,
        update: bool = False,
    ) -> dict:
        """Submit an agent to the AGTHub publish endpoint.

        Returns the decoded JSON response body.
        """
        if not self.api_url:
            raise PublishError("No API URL configured for publishing")
        if not token:
            raise PublishError("Publishing requires a login token. Run 'agt login' first.")

        url = f"{self.api_url}/api/cli/publish"
        fields = metadata.to_fields()
        fields["update"] = "true" if update else "false"
        files = {"file": (f"{metadata.id}_v{metadata.version}.md", content, "text/markdown")}

        logger.debug("POST %s", url)
        try:
            response = self._get_client().post(
                url,
                data=fields,
                files=files,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise PublishError(f"Failed to reach {url}: {e}") from e

        if response.status_code >= 400:
            raise PublishError(error_message(response))
        try:
            return response.json()
        except ValueError:
            return {}


def error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"Request failed with status {response.status_code}"
