"""Install locations for each target CLI."""

from __future__ import annotations

from pathlib import Path

from agt.errors import InvalidIdentityError

# Per-target agent directories, relative to the user's home.
TARGET_DIRS = {
    "claude-code": Path(".claude") / "agents",
    "codex": Path(".codex") / "agents",
    "copilot": Path(".copilot") / "agents",
}


def target_dir(target: str, home: Path) -> Path:
    return home / TARGET_DIRS.get(target, Path(f".{target}") / "agents")


def _check_part(label: str, value: str) -> None:
    if not value or "/" in value or "\\" in value or ".." in value:
        raise InvalidIdentityError(f"Unsafe {label} for an install path: {value!r}")


def install_path(
    target: str,
    author: str | None,
    name: str,
    version: str,
    home: Path | None = None,
) -> Path:
    """Deterministic file path for one agent version, e.g.
    ``~/.claude/agents/acme_reviewer_v2.0.0.md``.

    Raises:
        InvalidIdentityError: a part contains a path separator or ``..``.
    """
    home = home if home is not None else Path.home()
    author = author or "unknown"
    for label, value in (("author", author), ("name", name), ("version", version)):
        _check_part(label, value)
    filename = f"{author}_{name}_v{version}.md"
    return target_dir(target, home) / filename
