"""Strict Pydantic schemas for oracle proposals."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

ProposalType = Literal["fetch", "request_user_input", "no_op"]

# Proposal types that carry their payload in `argument`.
ARGUMENT_REQUIRED: frozenset[str] = frozenset({"fetch", "request_user_input"})


class StrictModel(BaseModel):
    """Base model for strict schema validation."""

    model_config = ConfigDict(extra="forbid")


class Proposal(StrictModel):
    """One oracle decision; unknown types are executed as no-ops."""

    type: str = Field(min_length=1)
    argument: str | None = None
    reason: str | None = None

    @model_validator(mode="after")
    def _require_argument(self) -> Proposal:
        if self.type in ARGUMENT_REQUIRED and not (self.argument or "").strip():
            raise ValueError(f"proposal type '{self.type}' requires an argument")
        return self


class OracleDecision(StrictModel):
    proposal: Proposal
    explanation: str | None = None


class OracleReply(BaseModel):
    """Flat JSON object the LLM is instructed to return; unknown keys are dropped."""

    model_config = ConfigDict(extra="ignore")

    action: str = Field(min_length=1)
    argument: str | None = None
    reason: str | None = None
    explanation: str | None = None

    def to_decision(self) -> OracleDecision:
        return OracleDecision(
            proposal=Proposal(type=self.action, argument=self.argument, reason=self.reason),
            explanation=self.explanation,
        )
