"""Agent identity parsing.

Reference strings come in three shapes::

    code-reviewer
    acme/code-reviewer
    acme/code-reviewer@1.2.0

The version is everything after the *last* ``@``, provided that ``@`` is
neither the first nor the final character. ``"reviewer@"`` therefore has no
version and its name keeps the trailing ``@``.
"""

from __future__ import annotations

from dataclasses import dataclass

from agt.errors import InvalidIdentityError


@dataclass(frozen=True)
class AgentIdentity:
    """A parsed agent reference. ``author`` is None for bare names."""

    name: str
    author: str | None = None
    version: str | None = None

    @property
    def key(self) -> str:
        """Canonical identity without version: ``author/name`` or ``name``."""
        if self.author:
            return f"{self.author}/{self.name}"
        return self.name

    @property
    def canonical(self) -> str:
        if self.version:
            return f"{self.key}@{self.version}"
        return self.key

    def __str__(self) -> str:
        return self.canonical


def resolve(ref: str) -> AgentIdentity:
    """Parse a reference string into an :class:`AgentIdentity`.

    Raises:
        InvalidIdentityError: for empty input or an empty author/name
            around the ``/`` separator.
    """
    if ref is None or not ref.strip():
        raise InvalidIdentityError("Agent reference must not be empty")

    raw = ref.strip()
    version: str | None = None

    at = raw.rfind("@")
    if 0 < at < len(raw) - 1:
        identity, version = raw[:at], raw[at + 1:]
    else:
        identity = raw

    if "/" in identity:
        author, name = identity.split("/", 1)
        if not author or not name:
            raise InvalidIdentityError(
                f"Invalid agent reference {ref!r}. Expected <author>/<name>[@version]."
            )
        return AgentIdentity(name=name, author=author, version=version)

    return AgentIdentity(name=identity, version=version)


def split_record_id(agent_id: str) -> tuple[str | None, str]:
    """Split a stored record id (``author/name`` or ``name``) into its parts."""
    if "/" in agent_id:
        author, name = agent_id.split("/", 1)
        return author, name
    return None, agent_id
