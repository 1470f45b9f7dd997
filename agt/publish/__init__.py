"""Publishing: agent file parsing, validation and submission.

An agent file is parsed into typed metadata, validated with every issue
collected, then either submitted to AGTHub or staged into a local registry
directory when no login token is configured.
"""
