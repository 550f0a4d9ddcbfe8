"""Error types raised by provider adapters and absorbed by the search core."""

from __future__ import annotations


class ProviderUnavailable(RuntimeError):
    """A language-model or embedding call failed or timed out."""


class MalformedProviderOutput(ValueError):
    """A provider answered, but the payload could not be used."""
