"""Tests for the installed-agent manifest."""

import json
import tempfile
from pathlib import Path

from agt.installer.state_store import InstalledStateStore
from agt.models.agent import InstalledAgentRecord


def _record(agent_id="acme/reviewer", version="1.0.0", target="claude-code") -> InstalledAgentRecord:
    return InstalledAgentRecord(
        id=agent_id,
        version=version,
        target=target,
        path=f"/tmp/{agent_id.replace('/', '_')}_v{version}.md",
    )


def test_missing_manifest_is_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = InstalledStateStore(Path(tmpdir) / "installed.json")
        assert store.list() == []
        assert store.get("acme/reviewer", "claude-code") is None


def test_upsert_persists_record():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "agents" / "installed.json"
        store = InstalledStateStore(path)
        store.upsert(_record())

        data = json.loads(path.read_text())
        assert len(data) == 1
        assert data[0]["id"] == "acme/reviewer"
        assert data[0]["target"] == "claude-code"
        assert "installedAt" in data[0]


def test_upsert_replaces_same_key():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = InstalledStateStore(Path(tmpdir) / "installed.json")
        store.upsert(_record(version="1.0.0"))
        store.upsert(_record(version="2.0.0"))

        records = store.list()
        assert len(records) == 1
        assert records[0].version == "2.0.0"


def test_same_agent_different_targets():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = InstalledStateStore(Path(tmpdir) / "installed.json")
        store.upsert(_record(target="claude-code"))
        store.upsert(_record(target="codex"))

        assert len(store.list()) == 2
        assert store.get("acme/reviewer", "codex").target == "codex"


def test_upsert_moves_record_to_end():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = InstalledStateStore(Path(tmpdir) / "installed.json")
        store.upsert(_record("acme/a"))
        store.upsert(_record("acme/b"))
        store.upsert(_record("acme/a", version="1.1.0"))

        assert [r.id for r in store.list()] == ["acme/b", "acme/a"]


def test_remove():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = InstalledStateStore(Path(tmpdir) / "installed.json")
        store.upsert(_record("acme/a"))
        store.upsert(_record("acme/b"))

        assert store.remove("acme/a", "claude-code")
        assert [r.id for r in store.list()] == ["acme/b"]


def test_remove_missing_key_is_noop():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "installed.json"
        store = InstalledStateStore(path)
        store.upsert(_record())
        before = path.read_text()

        assert not store.remove("acme/other", "claude-code")
        assert path.read_text() == before


def test_corrupt_manifest_reads_as_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "installed.json"
        path.write_text("{not json")
        store = InstalledStateStore(path)
        assert store.list() == []


def test_non_array_manifest_reads_as_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "installed.json"
        path.write_text(json.dumps({"id": "acme/reviewer"}))
        assert InstalledStateStore(path).list() == []


def test_unreadable_manifest_reads_as_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "installed.json"
        path.mkdir()
        assert InstalledStateStore(path).list() == []


def test_upsert_over_corrupt_manifest_recovers():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "installed.json"
        path.write_text("garbage")
        store = InstalledStateStore(path)
        store.upsert(_record())

        assert len(json.loads(path.read_text())) == 1


def test_write_leaves_no_temp_files():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = InstalledStateStore(Path(tmpdir) / "installed.json")
        store.upsert(_record("acme/a"))
        store.upsert(_record("acme/b"))

        assert sorted(p.name for p in Path(tmpdir).iterdir()) == ["installed.json"]


def test_record_round_trip_keeps_timestamp():
    record = InstalledAgentRecord.from_dict({
        "id": "acme/reviewer",
        "version": "1.0.0",
        "target": "codex",
        "path": "/x.md",
        "installedAt": "2025-01-01T00:00:00+00:00",
    })
    assert record.installed_at == "2025-01-01T00:00:00+00:00"
    assert record.to_dict()["installedAt"] == "2025-01-01T00:00:00+00:00"
