"""Typed failures raised by the storage, oracle and fetch ports."""

from __future__ import annotations


class CampaignAgentError(Exception):
    """Base class for failures that end the current campaign step."""


class StorageError(CampaignAgentError):
    """Persistence is unavailable or rejected a write."""


class OracleError(CampaignAgentError):
    """The decision call failed or returned content outside the known shape."""


class FetchError(CampaignAgentError):
    """External content retrieval failed."""


class RecordNotFoundError(StorageError):
    """A campaign or task id is unknown to the store."""
