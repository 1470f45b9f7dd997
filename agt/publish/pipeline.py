"""Publish pipeline: parse, validate, then publish remotely or stage locally.

With a login token the agent goes to the AGTHub publish endpoint. Without
one it is staged into a local registry directory that mirrors the remote
layout.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from agt.errors import AgtError, ValidationError
from agt.publish.parser import AgentMetadata, load_agent_file
from agt.publish.validator import metadata_warnings, validate_metadata
from agt.registry.client import RegistryClient
from agt.registry.local_registry import DEFAULT_STAGING_DIR, LocalRegistry
from agt.utils.file_scanner import scan_agent_files

logger = logging.getLogger(__name__)

DEFAULT_AUTHOR = "anonymous"


@dataclass
class PreparedAgent:
    """An agent file that passed validation."""

    path: Path
    metadata: AgentMetadata
    content: bytes
    warnings: list[str] = field(default_factory=list)


@dataclass
class PublishOutcome:
    path: Path
    key: str
    version: str
    remote: bool
    location: str = ""

    @property
    def description(self) -> str:
        where = "AGTHub" if self.remote else self.location
        return f"Published {self.key}@{self.version} to {where}"


@dataclass
class DirectoryReport:
    """Result of publishing every agent file under a directory."""

    invalid: list[ValidationError] = field(default_factory=list)
    published: list[PublishOutcome] = field(default_factory=list)
    failed: list[tuple[Path, AgtError]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.published)

    @property
    def failure_count(self) -> int:
        return len(self.invalid) + len(self.failed)

    @property
    def exit_code(self) -> int:
        return 1 if self.failure_count and not self.success_count else 0


class PublishPipeline:
    def __init__(
        self,
        registry: RegistryClient | None = None,
        token: str = "",
        default_author: str = "",
        staging_dir: str | Path = DEFAULT_STAGING_DIR,
    ):
        self.registry = registry
        self.token = token
        self.default_author = default_author
        self.staging = LocalRegistry(staging_dir)

    @property
    def remote(self) -> bool:
        return bool(self.token and self.registry is not None)

    def prepare(self, path: str | Path) -> PreparedAgent:
        """Parse and validate one agent file.

        Raises:
            ValidationError: with every issue found in the file.
        """
        path = Path(path)
        try:
            metadata, content = load_agent_file(path)
        except (OSError, UnicodeDecodeError) as e:
            raise ValidationError(str(path), [f"Cannot read file: {e}"]) from e

        issues = validate_metadata(metadata)
        if issues:
            raise ValidationError(str(path), issues)

        if not metadata.author:
            metadata.author = self.default_author or DEFAULT_AUTHOR

        warnings = metadata_warnings(metadata)
        for warning in warnings:
            logger.warning("%s: %s", path, warning)
        return PreparedAgent(path=path, metadata=metadata, content=content, warnings=warnings)

    def publish(self, prepared: PreparedAgent, update: bool = False) -> PublishOutcome:
        meta = prepared.metadata
        key = f"{meta.author}/{meta.id}"

        if self.remote:
            self.registry.publish(meta, prepared.content, self.token, update=update)
            logger.debug("Published %s@%s remotely", key, meta.version)
            return PublishOutcome(path=prepared.path, key=key, version=meta.version, remote=True)

        staged = self.staging.stage(meta, prepared.content, update=update)
        logger.debug("Staged %s at %s", key, staged.content_path)
        return PublishOutcome(
            path=prepared.path,
            key=key,
            version=meta.version,
            remote=False,
            location=str(self.staging.registry_dir),
        )

    def publish_file(self, path: str | Path, update: bool = False) -> PublishOutcome:
        return self.publish(self.prepare(path), update=update)

    def publish_directory(
        self,
        root: str | Path,
        update: bool = False,
        on_invalid: Callable[[ValidationError], None] | None = None,
        on_published: Callable[[PublishOutcome], None] | None = None,
        on_failed: Callable[[Path, AgtError], None] | None = None,
    ) -> DirectoryReport:
        """Validate every ``.md`` file under *root*, then publish the valid ones.

        All validation errors are reported before anything is published.
        A failure on one file does not stop the others.
        """
        report = DirectoryReport()
        prepared: list[PreparedAgent] = []

        for path in scan_agent_files(root):
            try:
                prepared.append(self.prepare(path))
            except ValidationError as e:
                report.invalid.append(e)
                if on_invalid:
                    on_invalid(e)

        for agent in prepared:
            try:
                outcome = self.publish(agent, update=update)
            except AgtError as e:
                report.failed.append((agent.path, e))
                if on_failed:
                    on_failed(agent.path, e)
            else:
                report.published.append(outcome)
                if on_published:
                    on_published(outcome)

        return report
