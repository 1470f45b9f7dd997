"""Installed-agent manifest -- upsert logic for tracking installed agents.

The manifest is a single JSON array at ``~/.agents/installed.json``. Every
write rewrites the whole file: existing records with the same ``(id, target)``
are filtered out and the new record is appended, so there is never more than
one record per key. Writes go through a temp file and ``os.replace`` so a
concurrent reader never sees a truncated document; the last writer still wins.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from agt.errors import ManifestCorruptError
from agt.models.agent import InstalledAgentRecord

logger = logging.getLogger(__name__)


class InstalledStateStore:
    """Owns the on-disk manifest of installed agents."""

    def __init__(self, manifest_path: str | Path):
        self.path = Path(manifest_path)

    # -- query --------------------------------------------------------------

    def list(self) -> list[InstalledAgentRecord]:
        """Return all records in file order.

        A missing manifest is empty. A corrupt one is logged and treated as
        empty; this never raises.
        """
        try:
            return self._read()
        except ManifestCorruptError as e:
            logger.warning("Failed to read installed agents manifest: %s", e)
            return []

    def get(self, agent_id: str, target: str) -> InstalledAgentRecord | None:
        for record in self.list():
            if record.id == agent_id and record.target == target:
                return record
        return None

    # -- upsert -------------------------------------------------------------

    def upsert(self, record: InstalledAgentRecord) -> None:
        """Replace any record with the same ``(id, target)`` and persist."""
        records = [r for r in self.list() if r.key != record.key]
        records.append(record)
        self._write(records)

    # -- remove -------------------------------------------------------------

    def remove(self, agent_id: str, target: str) -> bool:
        """Drop the record for ``(id, target)``.

        Returns ``True`` if a record was removed. Removing a missing key
        leaves the manifest untouched.
        """
        records = self.list()
        remaining = [r for r in records if r.key != (agent_id, target)]
        if len(remaining) == len(records):
            return False
        self._write(remaining)
        return True

    # ======================================================================
    # Internal helpers
    # ======================================================================

    def _read(self) -> list[InstalledAgentRecord]:
        if not self.path.exists():
            return []

        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestCorruptError(f"Cannot read {self.path}: {e}") from e

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ManifestCorruptError(f"{self.path} is not valid JSON: {e}") from e

        if not isinstance(data, list):
            raise ManifestCorruptError(f"{self.path} must contain a JSON array")

        try:
            return [InstalledAgentRecord.from_dict(d) for d in data]
        except (KeyError, TypeError) as e:
            raise ManifestCorruptError(f"{self.path} has a malformed record: {e}") from e

    def _write(self, records: list[InstalledAgentRecord]) -> None:
        """Atomically replace the manifest with *records*."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([r.to_dict() for r in records], indent=2)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=".installed-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
