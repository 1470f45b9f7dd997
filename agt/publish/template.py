"""Starter agent file for ``agt init``."""

from __future__ import annotations

import re

import yaml

MAX_TAGS = 5


def slugify(text: str) -> str:
    """``"My Code Reviewer!"`` -> ``"my-code-reviewer"``."""
    slug = re.sub(r"[^a-z0-9\s-]", "", text.lower())
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def derive_tags(name: str, category: str = "") -> list[str]:
    """Tags from the longer words of the name, plus the category."""
    tags: list[str] = []
    for word in name.lower().split():
        word = re.sub(r"[^a-z0-9-]", "", word)
        if len(word) > 3 and word not in tags:
            tags.append(word)
    if category and category not in tags:
        tags.append(category)
    return tags[:MAX_TAGS]


def render_agent_template(
    name: str,
    description: str,
    category: str,
    version: str = "1.0.0",
    license: str = "MIT",
) -> str:
    metadata = {
        "id": slugify(name),
        "version": version,
        "category": category,
        "name_en": name,
        "description_en": description,
        "tags": derive_tags(name, category),
        "license": license,
    }
    frontmatter = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True)

    return f"""---
{frontmatter}---

# {name}

{description}

## Instructions

Describe how the agent should behave, step by step.

## Examples

Show a typical request and the response you expect.
"""
