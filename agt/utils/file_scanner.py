"""File scanner: discover agent markdown files under a directory."""

from pathlib import Path

# Directories to always skip
SKIP_DIRS = {
    "__pycache__", "node_modules", "venv", "dist", "build",
    "target", "vendor", "coverage", "temp-publish",
}

# Repository documents that are never agent definitions
SKIP_FILES = {"readme.md", "changelog.md", "license.md", "contributing.md"}

AGENT_SUFFIX = ".md"


def scan_agent_files(root: str | Path) -> list[Path]:
    """Recursively find agent files under *root*, in sorted order.

    Hidden directories (``.git``, ``.venv``, ...) and build output
    directories are skipped. A single file path is returned as-is.
    """
    root = Path(root)
    if root.is_file():
        return [root]
    if not root.is_dir():
        return []

    files = []
    for item in root.rglob(f"*{AGENT_SUFFIX}"):
        if item.is_file() and _should_include(item.relative_to(root)):
            files.append(item)
    return sorted(files)


def _should_include(relative: Path) -> bool:
    for part in relative.parts[:-1]:
        if part.startswith(".") or part in SKIP_DIRS:
            return False
    return relative.name.lower() not in SKIP_FILES
