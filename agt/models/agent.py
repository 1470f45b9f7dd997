"""Registry descriptors and local install records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# Supported install targets, in display order.
TARGETS = ("claude-code", "codex", "copilot")

# Registry compatibility keys -> target names.
_COMPAT_KEYS = {
    "claudeCode": "claude-code",
    "claude-code": "claude-code",
    "claude_code": "claude-code",
    "codex": "codex",
    "copilot": "copilot",
}

TARGET_LABELS = {
    "claude-code": "Claude",
    "codex": "Codex",
    "copilot": "Copilot",
}


def _localized(value: Any) -> dict[str, str]:
    """Normalize a localized field. Plain strings are treated as English."""
    if isinstance(value, str):
        return {"en": value} if value.strip() else {}
    if isinstance(value, dict):
        return {
            str(lang): text
            for lang, text in value.items()
            if isinstance(text, str) and text.strip()
        }
    return {}


def parse_compatibility(value: Any) -> frozenset[str]:
    if isinstance(value, dict):
        return frozenset(
            _COMPAT_KEYS.get(key, key) for key, spec in value.items() if spec
        )
    if isinstance(value, (list, tuple)):
        return frozenset(_COMPAT_KEYS.get(str(key), str(key)) for key in value)
    return frozenset()


@dataclass(frozen=True)
class AgentDescriptor:
    """Registry metadata for one agent, as of the fetch that produced it."""

    id: str
    author: str
    version: str
    category: str = ""
    tags: tuple[str, ...] = ()
    compatibility: frozenset[str] = frozenset()
    downloads: int = 0
    rating: float = 0.0
    name: dict[str, str] = field(default_factory=dict)
    description: dict[str, str] = field(default_factory=dict)
    updated_at: str = ""

    @property
    def key(self) -> str:
        return f"{self.author}/{self.id}"

    @property
    def display_name(self) -> str:
        return self.name.get("en") or next(iter(self.name.values()), self.id)

    @property
    def display_description(self) -> str:
        return self.description.get("en") or next(iter(self.description.values()), "")

    def has_language(self, language: str) -> bool:
        return bool(self.name.get(language) or self.description.get(language))

    def supports(self, target: str) -> bool:
        return target in self.compatibility

    @classmethod
    def from_dict(cls, data: dict) -> AgentDescriptor:
        return cls(
            id=data["id"],
            author=data.get("author", ""),
            version=str(data.get("version") or data.get("latest") or ""),
            category=data.get("category", ""),
            tags=tuple(data.get("tags") or ()),
            compatibility=parse_compatibility(data.get("compatibility")),
            downloads=int(data.get("downloads") or 0),
            rating=float(data.get("rating") or 0.0),
            name=_localized(data.get("name")),
            description=_localized(data.get("description")),
            updated_at=data.get("updatedAt", ""),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "author": self.author,
            "version": self.version,
            "category": self.category,
            "tags": list(self.tags),
            "compatibility": sorted(self.compatibility),
            "downloads": self.downloads,
            "rating": self.rating,
            "name": dict(self.name),
            "description": dict(self.description),
            "updatedAt": self.updated_at,
        }


@dataclass
class InstalledAgentRecord:
    """One installed agent for one target. Keyed by ``(id, target)``."""

    id: str
    version: str
    target: str
    path: str
    installed_at: str = ""

    def __post_init__(self):
        if not self.installed_at:
            self.installed_at = datetime.now(timezone.utc).isoformat()

    @property
    def key(self) -> tuple[str, str]:
        return (self.id, self.target)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "version": self.version,
            "target": self.target,
            "path": self.path,
            "installedAt": self.installed_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> InstalledAgentRecord:
        return cls(
            id=data["id"],
            version=data["version"],
            target=data["target"],
            path=data.get("path", ""),
            installed_at=data.get("installedAt", ""),
        )
