"""agt: install, update and publish AI agent definitions from a remote registry."""

__version__ = "0.4.0"
