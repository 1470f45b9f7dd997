"""Authentication against the AGTHub API."""
