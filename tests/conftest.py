"""Shared fixtures: an in-memory registry served through httpx.MockTransport."""

from __future__ import annotations

import httpx
import pytest

REGISTRY_URL = "https://registry.test"
API_URL = "https://api.test"


def agent_entry(author: str, agent_id: str, version: str, category: str, **extra) -> dict:
    entry = {
        "id": agent_id,
        "author": author,
        "version": version,
        "category": category,
        "name": {"en": f"{agent_id.title()} Agent"},
        "description": {"en": f"{agent_id} by {author}"},
        "tags": [agent_id],
        "compatibility": {"claudeCode": {"minVersion": "1.0.0"}, "codex": True},
        "downloads": 0,
        "rating": 0,
        "updatedAt": "2025-01-01T00:00:00Z",
    }
    entry.update(extra)
    return entry


class FakeRegistry:
    """Static registry tree kept in memory.

    ``categories`` maps a category to its agent entries. Content is served
    for every ``(author, id, version)`` in ``published``. Setting ``down``
    makes every request fail at the network level.
    """

    def __init__(self):
        self.categories: dict[str, list[dict]] = {}
        self.published: set[tuple[str, str, str]] = set()
        self.calls: list[str] = []
        self.down = False

    def add(self, author: str, agent_id: str, version: str, category: str = "code-quality", **extra) -> dict:
        entry = agent_entry(author, agent_id, version, category, **extra)
        self.categories.setdefault(category, []).append(entry)
        self.published.add((author, agent_id, version))
        return entry

    def set_latest(self, author: str, agent_id: str, version: str) -> None:
        for entries in self.categories.values():
            for entry in entries:
                if entry["author"] == author and entry["id"] == agent_id:
                    entry["version"] = version
        self.published.add((author, agent_id, version))

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)
        if self.down:
            raise httpx.ConnectError("registry is down", request=request)

        if path == "/index/main.json":
            return httpx.Response(200, json={
                "categories": {name: {"count": len(a)} for name, a in self.categories.items()},
            })

        if path.startswith("/index/categories/"):
            name = path.rsplit("/", 1)[-1].removesuffix(".json")
            if name not in self.categories:
                return httpx.Response(404)
            return httpx.Response(200, json={"agents": self.categories[name]})

        if path.startswith("/agents/"):
            _, _, author, agent_id, filename = path.split("/", 4)
            version = filename.removeprefix(f"{agent_id}_v").removesuffix(".md")
            if (author, agent_id, version) in self.published:
                return httpx.Response(200, content=f"# {agent_id} {version}\n".encode())
            return httpx.Response(404)

        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def count(self, prefix: str) -> int:
        return sum(1 for call in self.calls if call.startswith(prefix))


@pytest.fixture
def fake_registry() -> FakeRegistry:
    registry = FakeRegistry()
    registry.add("acme", "reviewer", "2.0.0")
    registry.add("acme", "linter", "1.1.0")
    registry.add("bob", "formatter", "0.5.0")
    registry.add("acme", "deployer", "0.3.0", category="devops-deployment", compatibility={"codex": True})
    return registry


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Point ``~`` at a temporary directory."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    return home_dir
