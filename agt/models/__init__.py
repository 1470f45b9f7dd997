"""Core data models: agent identities, registry descriptors and install records."""

from agt.models.agent import AgentDescriptor, InstalledAgentRecord
from agt.models.identity import AgentIdentity, resolve

__all__ = [
    "AgentDescriptor",
    "AgentIdentity",
    "InstalledAgentRecord",
    "resolve",
]
