"""Local file-based staging registry.

Used by ``agt publish`` when no login token is available. Agents are laid out
the same way as in the remote registry so the staging directory can be
submitted as a pull request::

    temp-publish/
        registry.json
        agents/<author>/<id>/metadata.json
        agents/<author>/<id>/v<version>.md
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from agt.errors import PublishError

if TYPE_CHECKING:
    from agt.publish.parser import AgentMetadata

DEFAULT_STAGING_DIR = "temp-publish"


@dataclass
class StagedAgent:
    """Where a staged agent ended up."""

    key: str
    metadata_path: Path
    content_path: Path


class LocalRegistry:
    """Staging registry maintained in a local directory."""

    INDEX_FILE = "registry.json"

    def __init__(self, registry_dir: str | Path = DEFAULT_STAGING_DIR):
        self.registry_dir = Path(registry_dir)
        self.index_path = self.registry_dir / self.INDEX_FILE

    def stage(
        self,
        metadata: AgentMetadata,
        content: bytes,
        update: bool = False,
    ) -> StagedAgent:
        """Stage an agent's metadata and content and record it in the index.

        Raises:
            PublishError: if the agent is already staged and *update* is False.
        """
        index = self._load_index()
        key = f"{metadata.author}/{metadata.id}"

        if key in index["agents"] and not update:
            raise PublishError(f"Agent {key} already exists. Use --update to update existing agent.")

        now = datetime.now(timezone.utc).isoformat()
        agent_dir = self.registry_dir / "agents" / metadata.author / metadata.id
        agent_dir.mkdir(parents=True, exist_ok=True)

        previous = index["agents"].get(key, {})
        entry = {
            **metadata.to_registry_entry(),
            "rating": previous.get("rating", 0),
            "downloads": previous.get("downloads", 0),
            "createdAt": previous.get("createdAt", now),
            "updatedAt": now,
        }

        metadata_path = agent_dir / "metadata.json"
        with open(metadata_path, "w") as f:
            json.dump(entry, f, indent=2, ensure_ascii=False)

        content_path = agent_dir / f"v{metadata.version}.md"
        content_path.write_bytes(content)

        index["agents"][key] = entry
        categories = index["categories"]
        categories[metadata.category] = categories.get(metadata.category, 0) + 1
        index["totalAgents"] = len(index["agents"])
        index["lastUpdated"] = now
        self._save_index(index)

        return StagedAgent(key=key, metadata_path=metadata_path, content_path=content_path)

    def get(self, key: str) -> dict | None:
        """Return the staged index entry for ``author/id``."""
        return self._load_index()["agents"].get(key)

    def list_all(self) -> list[dict]:
        return list(self._load_index()["agents"].values())

    def category_counts(self) -> dict[str, int]:
        return dict(self._load_index()["categories"])

    def _load_index(self) -> dict:
        if self.index_path.exists():
            with open(self.index_path) as f:
                index = json.load(f)
        else:
            index = {}
        index.setdefault("version", "1.0.0")
        index.setdefault("totalAgents", 0)
        index.setdefault("categories", {})
        index.setdefault("agents", {})
        return index

    def _save_index(self, index: dict):
        self.registry_dir.mkdir(parents=True, exist_ok=True)
        with open(self.index_path, "w") as f:
            json.dump(index, f, indent=2, ensure_ascii=False)
