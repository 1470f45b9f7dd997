"""Agent file parsing.

An agent file is markdown with a YAML frontmatter block::

    ---
    id: code-reviewer
    version: 1.0.0
    category: code-quality
    name_en: Code Reviewer
    description_en: Reviews pull requests
    tags: [review, quality]
    ---

    # Code Reviewer
    ...

Localized fields may also be nested (``name: {en: ..., zh: ...}``). Markdown
header lines such as ``## Version: 1.0.0`` fill fields the frontmatter does
not set, and the first heading / paragraph are fallbacks for the English name
and description. Keys that are not recognised are kept in ``unknown_keys``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import frontmatter
import yaml

from agt.models.agent import parse_compatibility
from agt.publish.template import slugify

_YAML_HANDLER = frontmatter.YAMLHandler()

LANGUAGES = ("en", "zh", "ja", "vi")

_SCALAR_KEYS = ("id", "version", "category", "author", "license", "homepage")
_KNOWN_KEYS = (
    set(_SCALAR_KEYS)
    | {"name", "description", "tags", "compatibility"}
    | {f"name_{lang}" for lang in LANGUAGES}
    | {f"description_{lang}" for lang in LANGUAGES}
)


_LANGUAGE_LABELS = {
    "en": ("EN", "English"),
    "zh": ("ZH", "Chinese"),
    "ja": ("JA", "Japanese"),
    "vi": ("VI", "Vietnamese"),
}


def _header_pattern(*labels: str) -> re.Pattern[str]:
    alternatives = "|".join(labels)
    return re.compile(rf"^#+\s*(?:{alternatives}):\s*(.+)$", re.IGNORECASE | re.MULTILINE)


_HEADER_PATTERNS: dict[str, re.Pattern[str]] = {
    "id": _header_pattern("ID", "Agent ID", "AgentID"),
    "version": _header_pattern("Version"),
    "category": _header_pattern("Category"),
    "homepage": _header_pattern("Homepage", "URL", "Website"),
    "license": _header_pattern("License"),
}
for _lang, (_code, _word) in _LANGUAGE_LABELS.items():
    _HEADER_PATTERNS[f"name_{_lang}"] = _header_pattern(
        rf"Name \({_code}\)", rf"Name \({_word}\)", f"Name-{_code}", f"Name{_code}"
    )
    _HEADER_PATTERNS[f"description_{_lang}"] = _header_pattern(
        rf"Description \({_code}\)",
        rf"Description \({_word}\)",
        f"Description-{_code}",
        f"Description{_code}",
    )

_FIRST_HEADING_RE = re.compile(r"^#+\s*(.+)$", re.MULTILINE)
_FIRST_PARAGRAPH_RE = re.compile(r"^#+.+\n\n(.+)", re.MULTILINE)


@dataclass
class AgentMetadata:
    """Typed metadata extracted from an agent file."""

    id: str = ""
    version: str = ""
    category: str = ""
    author: str = ""
    names: dict[str, str] = field(default_factory=dict)
    descriptions: dict[str, str] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    license: str = ""
    homepage: str = ""
    compatibility: list[str] = field(default_factory=list)
    unknown_keys: list[str] = field(default_factory=list)
    parse_errors: list[str] = field(default_factory=list)

    @property
    def languages(self) -> list[str]:
        """Languages with both a name and a description."""
        return [lang for lang in LANGUAGES if self.names.get(lang) and self.descriptions.get(lang)]

    def to_fields(self) -> dict[str, str]:
        """Flat form fields for the publish endpoint."""
        fields = {
            "id": self.id,
            "version": self.version,
            "category": self.category,
            "author": self.author,
            "tags": ",".join(self.tags),
            "compatibility": ",".join(self.compatibility),
        }
        if self.license:
            fields["license"] = self.license
        if self.homepage:
            fields["homepage"] = self.homepage
        for lang, text in self.names.items():
            fields[f"name_{lang}"] = text
        for lang, text in self.descriptions.items():
            fields[f"description_{lang}"] = text
        return fields

    def to_registry_entry(self) -> dict:
        """Entry shape used by registry indexes."""
        return {
            "id": self.id,
            "author": self.author,
            "name": dict(self.names),
            "description": dict(self.descriptions),
            "category": self.category,
            "tags": list(self.tags),
            "compatibility": {target: True for target in self.compatibility},
            "version": self.version,
            "license": self.license,
        }


def split_frontmatter(content: str) -> tuple[str | None, str]:
    """Return ``(frontmatter, body)``; frontmatter is None when absent.

    The frontmatter is returned as raw text so a non-mapping document can
    be reported instead of silently discarded.
    """
    if not _YAML_HANDLER.detect(content):
        return None, content
    try:
        header, body = _YAML_HANDLER.split(content)
    except ValueError:
        return None, content
    return header.strip(), body


def parse_agent_file(content: str, filename: str | None = None) -> AgentMetadata:
    """Parse agent markdown into :class:`AgentMetadata`.

    Never raises; problems with the frontmatter are recorded in
    ``parse_errors`` for the validator to report. When no id is declared,
    one is derived from *filename*.
    """
    meta = AgentMetadata()
    header, body = split_frontmatter(content)

    if header is not None:
        try:
            data = yaml.safe_load(header)
        except yaml.YAMLError as e:
            meta.parse_errors.append(f"Invalid frontmatter YAML: {e}")
            data = None
        if data is not None and not isinstance(data, dict):
            meta.parse_errors.append("Frontmatter must be a mapping of key: value pairs")
        elif data:
            _apply_frontmatter(meta, data)

    _apply_headers(meta, body)

    if not meta.names.get("en"):
        heading = _FIRST_HEADING_RE.search(body)
        if heading:
            meta.names["en"] = heading.group(1).strip()

    if not meta.descriptions.get("en"):
        paragraph = _FIRST_PARAGRAPH_RE.search(body)
        if paragraph:
            meta.descriptions["en"] = paragraph.group(1).strip()[:200]

    if not meta.id and filename:
        meta.id = slugify(Path(filename).stem)

    return meta


def load_agent_file(path: str | Path) -> tuple[AgentMetadata, bytes]:
    """Read an agent file from disk; returns its metadata and raw bytes."""
    path = Path(path)
    raw = path.read_bytes()
    return parse_agent_file(raw.decode("utf-8"), filename=path.name), raw


def _apply_frontmatter(meta: AgentMetadata, data: dict[str, Any]) -> None:
    for key, value in data.items():
        key = str(key)
        if key not in _KNOWN_KEYS:
            meta.unknown_keys.append(key)
            continue
        if value is None:
            continue

        if key in _SCALAR_KEYS:
            setattr(meta, key, str(value).strip())
        elif key == "tags":
            meta.tags = _as_list(value)
        elif key == "compatibility":
            if isinstance(value, str):
                value = _as_list(value)
            meta.compatibility = sorted(parse_compatibility(value))
        elif key in ("name", "description"):
            target = meta.names if key == "name" else meta.descriptions
            if isinstance(value, dict):
                for lang, text in value.items():
                    if lang not in LANGUAGES:
                        meta.unknown_keys.append(f"{key}.{lang}")
                    elif text:
                        target[lang] = str(text).strip()
            else:
                target["en"] = str(value).strip()
        else:
            field_name, lang = key.rsplit("_", 1)
            target = meta.names if field_name == "name" else meta.descriptions
            target[lang] = str(value).strip()


def _apply_headers(meta: AgentMetadata, body: str) -> None:
    for key, pattern in _HEADER_PATTERNS.items():
        match = pattern.search(body)
        if not match:
            continue
        value = match.group(1).strip()
        if key in _SCALAR_KEYS:
            if not getattr(meta, key):
                setattr(meta, key, value)
        else:
            field_name, lang = key.rsplit("_", 1)
            target = meta.names if field_name == "name" else meta.descriptions
            target.setdefault(lang, value)


def _as_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [part.strip() for part in value.strip("[]").split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [str(value)]
