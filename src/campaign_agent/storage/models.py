"""Storage models shared by the runtime, the API and persistence backends."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

CampaignStatus = Literal["initializing", "active", "paused", "completed", "error"]
TaskStatus = Literal["pending", "in_progress", "done"]

# Statuses a task can be selected for execution from.
OPEN_TASK_STATUSES: tuple[TaskStatus, ...] = ("in_progress", "pending")


class Campaign(BaseModel):
    """Persisted campaign record."""

    campaign_id: str
    name: str
    status: CampaignStatus
    created_at: datetime
    updated_at: datetime


class CampaignTask(BaseModel):
    """One queued unit of work owned by a campaign."""

    task_id: str
    campaign_id: str
    description: str
    status: TaskStatus = "pending"
    created_at: datetime
    updated_at: datetime


class Artifact(BaseModel):
    """Append-only context record fed to the oracle."""

    # "user_message", "research", or any type a later oracle action introduces.
    type: str
    key: str
    content: str
    created_at: datetime | None = None


class CampaignState(BaseModel):
    """Everything the step executor reads at the start of a step."""

    campaign: Campaign
    # Ordered by creation; the executor treats this as the FIFO task queue.
    tasks: list[CampaignTask] = Field(default_factory=list)
    artifacts: list[Artifact] = Field(default_factory=list)

    def next_open_task(self) -> CampaignTask | None:
        for status in OPEN_TASK_STATUSES:
            for task in self.tasks:
                if task.status == status:
                    return task
        return None
