"""Error taxonomy for agt.

Per-agent errors (identity, lookup, conflicts) are caught at the batch
boundary in the reconciler; everything else propagates to the CLI.
"""

from __future__ import annotations


class AgtError(Exception):
    """Base class for all agt errors."""


class InvalidIdentityError(AgtError):
    """A reference string could not be parsed into an agent identity."""


class AgentNotFoundError(AgtError):
    """The registry has no agent (or no content) matching the request."""


class AlreadyInstalledError(AgtError):
    """The agent is already installed for the target and force was not set."""

    def __init__(self, agent_id: str, target: str, version: str):
        self.agent_id = agent_id
        self.target = target
        self.version = version
        super().__init__(
            f"Agent {agent_id}@{version} is already installed for {target}. "
            "Use --force to reinstall."
        )


class NotInstalledError(AgtError):
    """Uninstall or update was requested for an agent that is not installed."""


class RegistryUnavailableError(AgtError):
    """The registry could not be reached and no cached data was available."""


class ManifestCorruptError(AgtError):
    """The local installed-agent manifest could not be parsed."""


class ValidationError(AgtError):
    """An agent file failed publish-time validation.

    All violations are collected in ``issues`` before the error is raised.
    """

    def __init__(self, source: str, issues: list[str]):
        self.source = source
        self.issues = list(issues)
        super().__init__(f"{source}: {len(self.issues)} validation issue(s)")


class PublishError(AgtError):
    """Publishing or staging an agent failed."""


class ConfigError(AgtError):
    """The configuration file exists but cannot be read."""


class AuthError(AgtError):
    """The login flow was rejected by the server."""
