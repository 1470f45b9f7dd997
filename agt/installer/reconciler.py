"""Install / uninstall / update reconciliation.

Brings the local install state into agreement with a requested action
against the registry. A single install runs through::

    resolve -> catalog lookup -> version decision -> conflict check
            -> fetch -> write file -> record

and stops at the first failure with a typed :class:`~agt.errors.AgtError`.
The content file is always written before the manifest record, so a record
never points at a file that was not written.

Batch operations process their items one after another. A failing item is
captured in the :class:`BatchResult` and the batch moves on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable

from agt.errors import (
    AgentNotFoundError,
    AgtError,
    AlreadyInstalledError,
    NotInstalledError,
)
from agt.installer.paths import install_path
from agt.installer.state_store import InstalledStateStore
from agt.models.agent import InstalledAgentRecord
from agt.models.identity import AgentIdentity, resolve, split_record_id
from agt.registry.client import RegistryClient

logger = logging.getLogger(__name__)


@dataclass
class InstallOptions:
    """Decisions for an install, all supplied up front."""

    version: str | None = None
    target: str | None = None
    force: bool = False
    dry_run: bool = False


class InstallAction(Enum):
    INSTALLED = "installed"
    REINSTALLED = "reinstalled"
    PLANNED = "planned"  # dry run


@dataclass
class InstallOutcome:
    action: InstallAction
    agent_id: str
    version: str
    target: str
    path: Path
    record: InstalledAgentRecord | None = None
    previous_version: str | None = None

    @property
    def description(self) -> str:
        if self.action is InstallAction.PLANNED:
            verb = "reinstall" if self.previous_version else "install"
            return f"Would {verb} {self.agent_id}@{self.version} to {self.target} ({self.path})"
        if self.action is InstallAction.REINSTALLED:
            return (
                f"Reinstalled {self.agent_id}@{self.version} to {self.target} "
                f"(was {self.previous_version})"
            )
        return f"Installed {self.agent_id}@{self.version} to {self.target}"


@dataclass
class UpdateCandidate:
    record: InstalledAgentRecord
    latest_version: str


@dataclass
class ItemResult:
    """Outcome of one item in a batch."""

    ref: str
    ok: bool
    message: str = ""
    error: AgtError | None = None
    outcome: Any = None


@dataclass
class BatchResult:
    items: list[ItemResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[ItemResult]:
        return [i for i in self.items if i.ok]

    @property
    def failed(self) -> list[ItemResult]:
        return [i for i in self.items if not i.ok]

    @property
    def exit_code(self) -> int:
        """1 if a single-item batch failed or every item failed, else 0."""
        if not self.items:
            return 0
        return 1 if not self.succeeded else 0


@dataclass
class UpdatePlan:
    """Installed agents split by whether the registry has a newer version."""

    candidates: list[UpdateCandidate] = field(default_factory=list)
    current: list[InstalledAgentRecord] = field(default_factory=list)
    not_installed: list[ItemResult] = field(default_factory=list)


ItemCallback = Callable[[ItemResult], None]


class Reconciler:
    """Orchestrates identity resolution, registry lookup, file placement
    and manifest updates."""

    def __init__(
        self,
        registry: RegistryClient,
        store: InstalledStateStore,
        default_target: str = "claude-code",
        home: Path | None = None,
    ):
        self.registry = registry
        self.store = store
        self.default_target = default_target
        self.home = home if home is not None else Path.home()

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    def install(self, ref: str, options: InstallOptions | None = None) -> InstallOutcome:
        options = options or InstallOptions()
        identity = resolve(ref)
        target = options.target or self.default_target

        descriptor = self.registry.lookup(identity)
        if descriptor is None:
            raise AgentNotFoundError(f"Agent {identity.key} not found")
        resolved = AgentIdentity(name=descriptor.id, author=descriptor.author)

        version = options.version or identity.version or descriptor.version
        if not version:
            raise AgentNotFoundError(f"Agent {resolved.key} has no published version")

        path = install_path(target, resolved.author, resolved.name, version, self.home)
        existing = self.store.get(resolved.key, target)

        if options.dry_run:
            return InstallOutcome(
                action=InstallAction.PLANNED,
                agent_id=resolved.key,
                version=version,
                target=target,
                path=path,
                previous_version=existing.version if existing else None,
            )

        if existing and not options.force:
            raise AlreadyInstalledError(resolved.key, target, existing.version)

        if descriptor.compatibility and not descriptor.supports(target):
            logger.warning(
                "%s does not declare compatibility with %s; installing anyway",
                resolved.key,
                target,
            )

        content = self.registry.fetch_content(resolved, version)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

        record = InstalledAgentRecord(
            id=resolved.key,
            version=version,
            target=target,
            path=str(path),
        )
        self.store.upsert(record)

        if existing and existing.path and Path(existing.path) != path:
            # The old versioned file would otherwise linger untracked.
            Path(existing.path).unlink(missing_ok=True)

        logger.debug("Recorded %s@%s for %s at %s", record.id, version, target, path)

        return InstallOutcome(
            action=InstallAction.REINSTALLED if existing else InstallAction.INSTALLED,
            agent_id=resolved.key,
            version=version,
            target=target,
            path=path,
            record=record,
            previous_version=existing.version if existing else None,
        )

    def install_many(
        self,
        refs: Iterable[str],
        options: InstallOptions | None = None,
        on_item: ItemCallback | None = None,
    ) -> BatchResult:
        return self._run_batch(
            refs,
            lambda ref: self.install(ref, options),
            lambda outcome: outcome.description,
            on_item,
        )

    # ------------------------------------------------------------------
    # Uninstall
    # ------------------------------------------------------------------

    def uninstall(self, ref: str, target: str | None = None) -> InstalledAgentRecord:
        """Remove an installed agent's file and manifest record.

        Raises:
            NotInstalledError: no record exists for the agent and target.
        """
        identity = resolve(ref)
        target = target or self.default_target

        record = self._find_installed(identity, target)
        if record is None:
            raise NotInstalledError(f"Agent {identity.key} is not installed for {target}")

        if record.path:
            Path(record.path).unlink(missing_ok=True)
        self.store.remove(record.id, record.target)
        logger.debug("Removed %s from %s", record.id, target)
        return record

    def uninstall_many(
        self,
        refs: Iterable[str],
        target: str | None = None,
        on_item: ItemCallback | None = None,
    ) -> BatchResult:
        return self._run_batch(
            refs,
            lambda ref: self.uninstall(ref, target),
            lambda record: f"Uninstalled {record.id} from {record.target}",
            on_item,
        )

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def check_updates(self, refs: Iterable[str] | None = None) -> UpdatePlan:
        """Compare installed versions with the registry's latest versions.

        With *refs*, only matching installed agents are checked; refs that
        match nothing installed are reported in ``not_installed``.

        Raises:
            RegistryUnavailableError: the catalog cannot be read and nothing
                is cached.
        """
        plan = UpdatePlan()
        installed = self.store.list()

        if refs:
            selected: list[InstalledAgentRecord] = []
            for ref in refs:
                try:
                    identity = resolve(ref)
                except AgtError as e:
                    plan.not_installed.append(ItemResult(ref=ref, ok=False, message=str(e), error=e))
                    continue
                matches = [r for r in installed if _matches(identity, r)]
                if not matches:
                    err = NotInstalledError(f"Agent {identity.key} is not installed")
                    plan.not_installed.append(ItemResult(ref=ref, ok=False, message=str(err), error=err))
                for record in matches:
                    if record not in selected:
                        selected.append(record)
        else:
            selected = installed

        for record in selected:
            author, name = split_record_id(record.id)
            descriptor = self.registry.lookup(AgentIdentity(name=name, author=author))
            if descriptor is None:
                logger.warning("Agent %s is no longer in the registry", record.id)
                continue
            if descriptor.version and descriptor.version != record.version:
                plan.candidates.append(UpdateCandidate(record=record, latest_version=descriptor.version))
            else:
                plan.current.append(record)

        return plan

    def apply_updates(
        self,
        plan: UpdatePlan,
        on_item: ItemCallback | None = None,
    ) -> BatchResult:
        """Reinstall every candidate at its latest version with force."""
        result = BatchResult(items=list(plan.not_installed))
        for item in plan.not_installed:
            if on_item:
                on_item(item)

        by_ref = {c.record.id + "\0" + c.record.target: c for c in plan.candidates}
        batch = self._run_batch(
            list(by_ref),
            lambda key: self._update_one(by_ref[key]),
            lambda outcome: (
                f"Updated {outcome.agent_id} to {outcome.version} ({outcome.target})"
            ),
            on_item,
            display=lambda key: by_ref[key].record.id,
        )
        result.items.extend(batch.items)
        return result

    def _update_one(self, candidate: UpdateCandidate) -> InstallOutcome:
        return self.install(
            candidate.record.id,
            InstallOptions(
                version=candidate.latest_version,
                target=candidate.record.target,
                force=True,
            ),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def installed(self) -> list[InstalledAgentRecord]:
        return self.store.list()

    def _find_installed(self, identity: AgentIdentity, target: str) -> InstalledAgentRecord | None:
        matches = [r for r in self.store.list() if r.target == target and _matches(identity, r)]
        if len(matches) > 1:
            logger.warning(
                "%s matches several installed agents (%s); using %s",
                identity.name,
                ", ".join(r.id for r in matches),
                matches[0].id,
            )
        return matches[0] if matches else None

    @staticmethod
    def _run_batch(
        items: Iterable[str],
        action: Callable[[str], Any],
        describe: Callable[[Any], str],
        on_item: ItemCallback | None,
        display: Callable[[str], str] | None = None,
    ) -> BatchResult:
        result = BatchResult()
        for item in items:
            ref = display(item) if display else item
            try:
                outcome = action(item)
            except AgtError as e:
                entry = ItemResult(ref=ref, ok=False, message=str(e), error=e)
            else:
                entry = ItemResult(ref=ref, ok=True, message=describe(outcome), outcome=outcome)
            result.items.append(entry)
            if on_item:
                on_item(entry)
        return result


def _matches(identity: AgentIdentity, record: InstalledAgentRecord) -> bool:
    """Whether *record* is the installed unit *identity* refers to."""
    author, name = split_record_id(record.id)
    if identity.author:
        return identity.author == author and identity.name == name
    return identity.name == name
