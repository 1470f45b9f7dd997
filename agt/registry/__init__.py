"""Registry: catalog access for agent definitions.

The registry layer provides:
- Catalog reads over HTTP with a time-boxed cache and stale fallback
- Discovery: search by text, category, tag, author, target and language
- Content downloads per agent version
- Publishing, remotely or into a local staging registry
"""
