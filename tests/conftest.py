from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any

import pytest

from campaign_agent.runtime.loop import CampaignRunner
from campaign_agent.runtime.notifier import ChatMessage, Notifier
from campaign_agent.storage.memory import InMemoryCampaignStorage
from campaign_agent.storage.models import (
    Artifact,
    Campaign,
    CampaignStatus,
    CampaignTask,
    TaskStatus,
)
from campaign_agent.tools.schemas import OracleDecision, Proposal


def decision(
    proposal_type: str = "no_op",
    argument: str | None = None,
    explanation: str | None = None,
) -> OracleDecision:
    return OracleDecision(
        proposal=Proposal(type=proposal_type, argument=argument),
        explanation=explanation,
    )


class ScriptedOracle:
    """Test-only oracle returning queued decisions (or raising queued errors)."""

    def __init__(self, script: list[Any] | None = None) -> None:
        self.script = list(script or [])
        self.calls: list[tuple[str, list[Artifact]]] = []
        self.on_call: Callable[[], None] | None = None

    def propose(self, task_description: str, artifacts: list[Artifact]) -> OracleDecision:
        self.calls.append((task_description, list(artifacts)))
        if self.on_call is not None:
            self.on_call()
        if not self.script:
            return decision("no_op")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class StubFetcher:
    def __init__(self, responses: dict[str, str] | None = None) -> None:
        self.responses = dict(responses or {})
        self.error: Exception | None = None
        self.calls: list[str] = []

    def fetch(self, resource: str) -> str:
        self.calls.append(resource)
        if self.error is not None:
            raise self.error
        return self.responses.get(resource, "BODY")


class RecordingStorage(InMemoryCampaignStorage):
    """In-memory storage that also records every status write."""

    def __init__(self) -> None:
        super().__init__()
        self.campaign_status_writes: list[tuple[str, CampaignStatus]] = []
        self.task_status_writes: list[tuple[str, TaskStatus]] = []

    def set_campaign_status(self, campaign_id: str, status: CampaignStatus) -> None:
        self.campaign_status_writes.append((campaign_id, status))
        super().set_campaign_status(campaign_id, status)

    def set_task_status(self, task_id: str, status: TaskStatus) -> None:
        self.task_status_writes.append((task_id, status))
        super().set_task_status(task_id, status)


def seed_campaign(
    storage: InMemoryCampaignStorage,
    descriptions: list[str],
    *,
    status: CampaignStatus = "active",
) -> tuple[str, list[str]]:
    """Create a campaign with pending tasks in creation order."""
    base = datetime(2026, 1, 1, tzinfo=UTC)
    campaign_id = "campaign-1"
    storage.create_campaign(
        Campaign(
            campaign_id=campaign_id,
            name="Campaign-202601010000",
            status=status,
            created_at=base,
            updated_at=base,
        )
    )
    task_ids: list[str] = []
    for index, description in enumerate(descriptions):
        created_at = base + timedelta(seconds=index)
        task_id = f"task-{index + 1}"
        storage.create_task(
            campaign_id,
            CampaignTask(
                task_id=task_id,
                campaign_id=campaign_id,
                description=description,
                created_at=created_at,
                updated_at=created_at,
            ),
        )
        task_ids.append(task_id)
    return campaign_id, task_ids


def wait_for(predicate: Callable[[], bool], timeout_s: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def runtime() -> Iterator[SimpleNamespace]:
    storage = RecordingStorage()
    oracle = ScriptedOracle()
    fetcher = StubFetcher()
    notifier = Notifier()
    messages: list[ChatMessage] = []
    notifier.subscribe(messages.append)
    runner = CampaignRunner.from_ports(
        storage=storage,
        oracle=oracle,
        fetcher=fetcher,
        notifier=notifier,
        step_interval_s=0.0,
    )
    env = SimpleNamespace(
        storage=storage,
        oracle=oracle,
        fetcher=fetcher,
        notifier=notifier,
        messages=messages,
        runner=runner,
    )
    yield env
    runner.shutdown(timeout_s=2.0)


def texts(messages: list[ChatMessage], role: str | None = None) -> list[str]:
    return [item.content for item in messages if role is None or item.role == role]
