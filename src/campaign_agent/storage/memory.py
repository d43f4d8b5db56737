"""In-memory storage backend for tests and local runs."""

from __future__ import annotations

import threading
from datetime import UTC, datetime

from campaign_agent.errors import RecordNotFoundError, StorageError
from campaign_agent.storage.models import (
    Artifact,
    Campaign,
    CampaignState,
    CampaignStatus,
    CampaignTask,
    TaskStatus,
)


class InMemoryCampaignStorage:
    """Process-local implementation of the campaign storage interface."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._campaigns: dict[str, Campaign] = {}
        self._tasks: dict[str, CampaignTask] = {}
        self._artifacts: dict[str, list[Artifact]] = {}

    def migrate(self) -> None:
        return None

    def create_campaign(self, campaign: Campaign) -> None:
        with self._lock:
            if campaign.campaign_id in self._campaigns:
                raise StorageError(f"Campaign {campaign.campaign_id} already exists")
            self._campaigns[campaign.campaign_id] = campaign.model_copy(deep=True)
            self._artifacts[campaign.campaign_id] = []

    def create_task(self, campaign_id: str, task: CampaignTask) -> None:
        with self._lock:
            self._require_campaign(campaign_id)
            if task.task_id in self._tasks:
                raise StorageError(f"Task {task.task_id} already exists")
            self._tasks[task.task_id] = task.model_copy(update={"campaign_id": campaign_id})

    def append_artifact(self, campaign_id: str, artifact: Artifact) -> None:
        with self._lock:
            self._require_campaign(campaign_id)
            stored = artifact.model_copy(
                update={"created_at": artifact.created_at or datetime.now(UTC)}
            )
            self._artifacts[campaign_id].append(stored)

    def load_state(self, campaign_id: str) -> CampaignState:
        with self._lock:
            campaign = self._require_campaign(campaign_id)
            tasks = [
                task.model_copy(deep=True)
                for task in self._tasks.values()
                if task.campaign_id == campaign_id
            ]
            artifacts = [item.model_copy(deep=True) for item in self._artifacts[campaign_id]]
        # dict preserves insertion order; the sort keeps FIFO explicit.
        tasks.sort(key=lambda task: task.created_at)
        return CampaignState(
            campaign=campaign.model_copy(deep=True),
            tasks=tasks,
            artifacts=artifacts,
        )

    def set_task_status(self, task_id: str, status: TaskStatus) -> None:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                raise RecordNotFoundError(f"Task {task_id} does not exist")
            self._tasks[task_id] = current.model_copy(
                update={"status": status, "updated_at": datetime.now(UTC)}
            )

    def set_campaign_status(self, campaign_id: str, status: CampaignStatus) -> None:
        with self._lock:
            current = self._require_campaign(campaign_id)
            self._campaigns[campaign_id] = current.model_copy(
                update={"status": status, "updated_at": datetime.now(UTC)}
            )

    def _require_campaign(self, campaign_id: str) -> Campaign:
        current = self._campaigns.get(campaign_id)
        if current is None:
            raise RecordNotFoundError(f"Campaign {campaign_id} does not exist")
        return current
