"""Validator: check agent metadata before it is published.

Every problem is collected so the author sees them all in one pass.
Unknown frontmatter keys are warnings, not errors.
"""

from __future__ import annotations

import re

from agt.publish.parser import LANGUAGES, AgentMetadata

CATEGORIES = (
    "core-architecture",
    "web-programming",
    "systems-programming",
    "enterprise-programming",
    "ui-mobile",
    "specialized-platforms",
    "devops-deployment",
    "database-management",
    "incident-network",
    "code-quality",
    "testing-debugging",
    "performance-observability",
    "machine-learning",
    "data-analytics",
    "seo-content",
    "documentation",
    "business-finance",
    "marketing-sales",
    "support-legal",
    "specialized-domains",
)

VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")
ID_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def validate_metadata(meta: AgentMetadata) -> list[str]:
    """Return a list of issues found. Empty list means valid."""
    issues: list[str] = list(meta.parse_errors)

    if not meta.id:
        issues.append("Missing agent id (set 'id' in the frontmatter)")
    elif not ID_RE.match(meta.id):
        issues.append(
            f"Invalid id '{meta.id}'. Use lowercase letters, digits, '-' and '_'"
        )

    if not meta.version:
        issues.append("Missing version")
    elif not VERSION_RE.match(meta.version):
        issues.append(f"Invalid version '{meta.version}'. Expected MAJOR.MINOR.PATCH (e.g. 1.0.0)")

    if not meta.category:
        issues.append("Missing category")
    elif meta.category not in CATEGORIES:
        issues.append(f"Unknown category '{meta.category}'. Must be one of: {', '.join(CATEGORIES)}")

    if not meta.languages:
        issues.append(
            "At least one language needs both a name and a description "
            f"(name_<lang> / description_<lang>, lang in {', '.join(LANGUAGES)})"
        )

    return issues


def metadata_warnings(meta: AgentMetadata) -> list[str]:
    return [f"Unknown frontmatter key '{key}' is ignored" for key in meta.unknown_keys]
