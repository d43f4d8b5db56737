"""Oracle and fetch adapters used by the step executor."""

from campaign_agent.tools.fetch import Fetcher, HttpFetcher, build_fetcher
from campaign_agent.tools.oracle import (
    DeterministicOracle,
    OpenAIOracle,
    Oracle,
    build_oracle,
    parse_reply,
)
from campaign_agent.tools.schemas import OracleDecision, Proposal

__all__ = [
    "DeterministicOracle",
    "Fetcher",
    "HttpFetcher",
    "OpenAIOracle",
    "Oracle",
    "OracleDecision",
    "Proposal",
    "build_fetcher",
    "build_oracle",
    "parse_reply",
]
