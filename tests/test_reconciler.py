"""Tests for install / uninstall / update reconciliation."""

from pathlib import Path

import pytest

from agt.errors import (
    AgentNotFoundError,
    AlreadyInstalledError,
    InvalidIdentityError,
    NotInstalledError,
    RegistryUnavailableError,
)
from agt.installer import InstalledStateStore, InstallOptions, Reconciler
from agt.installer.paths import install_path
from agt.installer.reconciler import InstallAction
from agt.registry.client import RegistryClient

from conftest import REGISTRY_URL


@pytest.fixture
def reconciler(fake_registry, tmp_path) -> Reconciler:
    registry = RegistryClient(REGISTRY_URL, transport=fake_registry.transport, cache_ttl=0)
    store = InstalledStateStore(tmp_path / "state" / "installed.json")
    return Reconciler(registry, store, home=tmp_path / "home")


# --- Install ---


def test_install_writes_file_and_record(reconciler, tmp_path):
    outcome = reconciler.install("acme/reviewer")

    expected = tmp_path / "home" / ".claude" / "agents" / "acme_reviewer_v2.0.0.md"
    assert outcome.action is InstallAction.INSTALLED
    assert outcome.path == expected
    assert expected.read_bytes() == b"# reviewer 2.0.0\n"

    records = reconciler.installed()
    assert len(records) == 1
    assert records[0].id == "acme/reviewer"
    assert records[0].version == "2.0.0"
    assert records[0].target == "claude-code"
    assert records[0].path == str(expected)


def test_install_by_name_only(reconciler):
    outcome = reconciler.install("linter")
    assert outcome.agent_id == "acme/linter"


def test_install_pinned_version(reconciler, fake_registry):
    fake_registry.published.add(("acme", "reviewer", "1.0.0"))
    outcome = reconciler.install("acme/reviewer@1.0.0")
    assert outcome.version == "1.0.0"
    assert outcome.path.name == "acme_reviewer_v1.0.0.md"


def test_version_option_overrides_reference(reconciler, fake_registry):
    fake_registry.published.add(("acme", "reviewer", "1.5.0"))
    outcome = reconciler.install("acme/reviewer@1.0.0", InstallOptions(version="1.5.0"))
    assert outcome.version == "1.5.0"


def test_install_to_other_target(reconciler, tmp_path):
    outcome = reconciler.install("acme/deployer", InstallOptions(target="codex"))
    assert outcome.path == tmp_path / "home" / ".codex" / "agents" / "acme_deployer_v0.3.0.md"
    assert reconciler.installed()[0].target == "codex"


def test_second_install_without_force_fails(reconciler):
    reconciler.install("acme/reviewer")
    with pytest.raises(AlreadyInstalledError) as exc:
        reconciler.install("acme/reviewer")
    assert "--force" in str(exc.value)
    assert len(reconciler.installed()) == 1


def test_force_reinstall_keeps_single_record(reconciler):
    reconciler.install("acme/reviewer")
    outcome = reconciler.install("acme/reviewer", InstallOptions(force=True))

    assert outcome.action is InstallAction.REINSTALLED
    assert outcome.previous_version == "2.0.0"
    assert len(reconciler.installed()) == 1


def test_install_unknown_agent(reconciler):
    with pytest.raises(AgentNotFoundError):
        reconciler.install("acme/nothing")
    assert reconciler.installed() == []


def test_install_missing_version_leaves_no_record(reconciler):
    with pytest.raises(AgentNotFoundError):
        reconciler.install("acme/reviewer@9.9.9")
    assert reconciler.installed() == []


def test_dry_run_changes_nothing(reconciler, tmp_path):
    outcome = reconciler.install("acme/reviewer", InstallOptions(dry_run=True))

    assert outcome.action is InstallAction.PLANNED
    assert not outcome.path.exists()
    assert reconciler.installed() == []
    assert not (tmp_path / "state" / "installed.json").exists()


def test_dry_run_reports_existing_install(reconciler):
    reconciler.install("acme/reviewer")
    outcome = reconciler.install("acme/reviewer", InstallOptions(dry_run=True))
    assert outcome.previous_version == "2.0.0"
    assert "reinstall" in outcome.description


def test_reinstall_at_new_version_removes_old_file(reconciler, fake_registry):
    fake_registry.published.add(("acme", "reviewer", "1.0.0"))
    old = reconciler.install("acme/reviewer@1.0.0")
    new = reconciler.install("acme/reviewer", InstallOptions(force=True))

    assert not old.path.exists()
    assert new.path.exists()


def test_failed_manifest_write_keeps_previous_file(reconciler, fake_registry, monkeypatch):
    fake_registry.published.add(("acme", "reviewer", "1.0.0"))
    old = reconciler.install("acme/reviewer@1.0.0")

    def fail(records):
        raise OSError("disk full")

    monkeypatch.setattr(reconciler.store, "_write", fail)
    with pytest.raises(OSError):
        reconciler.install("acme/reviewer", InstallOptions(force=True))

    record = reconciler.store.get("acme/reviewer", "claude-code")
    assert record.version == "1.0.0"
    assert Path(record.path).exists()
    assert old.path.exists()



def test_install_rejects_unsafe_registry_id(reconciler, fake_registry):
    fake_registry.add("acme", "..", "1.0.0")
    with pytest.raises(InvalidIdentityError):
        reconciler.install("acme/..")
    assert reconciler.installed() == []


@pytest.mark.parametrize(
    "author, name, version",
    [("acme", "../../evil", "1.0.0"), ("ac/me", "reviewer", "1.0.0"), ("acme", "reviewer", "../1")],
)
def test_install_path_rejects_traversal(tmp_path, author, name, version):
    with pytest.raises(InvalidIdentityError):
        install_path("claude-code", author, name, version, tmp_path)

# --- Batch ---


def test_batch_continues_past_failures(reconciler):
    result = reconciler.install_many(["acme/reviewer", "acme/missing", "acme/linter"])

    assert [i.ok for i in result.items] == [True, False, True]
    assert isinstance(result.failed[0].error, AgentNotFoundError)
    assert result.exit_code == 0
    assert {r.id for r in reconciler.installed()} == {"acme/reviewer", "acme/linter"}


def test_batch_all_failed_exit_code(reconciler):
    result = reconciler.install_many(["acme/missing", "bad/"])
    assert result.exit_code == 1


def test_single_item_failure_exit_code(reconciler):
    assert reconciler.install_many(["acme/missing"]).exit_code == 1


def test_batch_calls_item_callback(reconciler):
    seen = []
    reconciler.install_many(["acme/reviewer", "acme/missing"], on_item=seen.append)
    assert [item.ref for item in seen] == ["acme/reviewer", "acme/missing"]


def test_records_for_batch_have_distinct_keys(reconciler):
    reconciler.install_many(["acme/reviewer", "acme/linter"])
    keys = [r.key for r in reconciler.installed()]
    assert len(keys) == len(set(keys)) == 2


# --- Uninstall ---


def test_uninstall_removes_file_and_record(reconciler):
    outcome = reconciler.install("acme/reviewer")
    record = reconciler.uninstall("acme/reviewer")

    assert record.id == "acme/reviewer"
    assert not outcome.path.exists()
    assert reconciler.installed() == []


def test_uninstall_by_name_only(reconciler):
    reconciler.install("acme/reviewer")
    reconciler.uninstall("reviewer")
    assert reconciler.installed() == []


def test_uninstall_with_missing_file(reconciler):
    outcome = reconciler.install("acme/reviewer")
    outcome.path.unlink()
    reconciler.uninstall("acme/reviewer")
    assert reconciler.installed() == []


def test_uninstall_not_installed(reconciler):
    with pytest.raises(NotInstalledError):
        reconciler.uninstall("acme/reviewer")


def test_uninstall_only_touches_requested_target(reconciler):
    reconciler.install("acme/reviewer")
    reconciler.install("acme/reviewer", InstallOptions(target="codex"))
    reconciler.uninstall("acme/reviewer", target="codex")

    assert [r.target for r in reconciler.installed()] == ["claude-code"]


def test_uninstall_many_reports_each_item(reconciler):
    reconciler.install("acme/reviewer")
    result = reconciler.uninstall_many(["acme/reviewer", "acme/linter"])
    assert [i.ok for i in result.items] == [True, False]
    assert result.exit_code == 0


# --- Update ---


def test_check_updates_finds_newer_version(reconciler, fake_registry):
    reconciler.install("acme/reviewer")
    reconciler.install("acme/linter")
    fake_registry.set_latest("acme", "reviewer", "2.1.0")

    plan = reconciler.check_updates()
    assert [(c.record.id, c.latest_version) for c in plan.candidates] == [("acme/reviewer", "2.1.0")]
    assert [r.id for r in plan.current] == ["acme/linter"]


def test_apply_updates_installs_latest(reconciler, fake_registry):
    reconciler.install("acme/reviewer")
    fake_registry.set_latest("acme", "reviewer", "2.1.0")

    result = reconciler.apply_updates(reconciler.check_updates())
    assert result.exit_code == 0

    records = reconciler.installed()
    assert len(records) == 1
    assert records[0].version == "2.1.0"
    assert Path(records[0].path).name == "acme_reviewer_v2.1.0.md"


def test_update_keeps_target(reconciler, fake_registry):
    reconciler.install("acme/deployer", InstallOptions(target="codex"))
    fake_registry.set_latest("acme", "deployer", "0.4.0")

    reconciler.apply_updates(reconciler.check_updates())
    record = reconciler.installed()[0]
    assert record.target == "codex"
    assert record.version == "0.4.0"


def test_check_updates_for_named_agents(reconciler, fake_registry):
    reconciler.install("acme/reviewer")
    reconciler.install("acme/linter")
    fake_registry.set_latest("acme", "reviewer", "2.1.0")
    fake_registry.set_latest("acme", "linter", "1.2.0")

    plan = reconciler.check_updates(["linter", "acme/ghost"])
    assert [c.record.id for c in plan.candidates] == ["acme/linter"]
    assert [i.ref for i in plan.not_installed] == ["acme/ghost"]


def test_update_of_uninstalled_agent_fails(reconciler):
    plan = reconciler.check_updates(["acme/reviewer"])
    result = reconciler.apply_updates(plan)
    assert result.exit_code == 1
    assert isinstance(result.items[0].error, NotInstalledError)


def test_nothing_to_update(reconciler):
    reconciler.install("acme/reviewer")
    plan = reconciler.check_updates()
    assert plan.candidates == []
    assert reconciler.apply_updates(plan).items == []


def test_check_updates_with_registry_down_raises(reconciler, fake_registry, tmp_path):
    reconciler.install("acme/reviewer")
    fake_registry.down = True

    fresh = Reconciler(
        RegistryClient(REGISTRY_URL, transport=fake_registry.transport),
        InstalledStateStore(tmp_path / "state" / "installed.json"),
        home=tmp_path / "home",
    )
    with pytest.raises(RegistryUnavailableError):
        fresh.check_updates()


def test_check_updates_skips_agents_removed_from_registry(reconciler, fake_registry):
    reconciler.install("acme/reviewer")
    fake_registry.categories["code-quality"] = [
        a for a in fake_registry.categories["code-quality"] if a["id"] != "reviewer"
    ]
    plan = reconciler.check_updates()
    assert plan.candidates == []
    assert plan.current == []
