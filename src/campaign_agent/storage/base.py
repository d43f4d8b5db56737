"""Storage interface for campaign, task and artifact records."""

from __future__ import annotations

from typing import Protocol

from campaign_agent.storage.models import (
    Artifact,
    Campaign,
    CampaignState,
    CampaignStatus,
    CampaignTask,
    TaskStatus,
)


class CampaignStorage(Protocol):
    """Each operation is atomic on its own; none spans several operations.

    Implementations raise ``StorageError`` on connectivity or constraint failures.
    """

    def migrate(self) -> None: ...

    def create_campaign(self, campaign: Campaign) -> None: ...

    def create_task(self, campaign_id: str, task: CampaignTask) -> None: ...

    def append_artifact(self, campaign_id: str, artifact: Artifact) -> None: ...

    def load_state(self, campaign_id: str) -> CampaignState: ...

    def set_task_status(self, task_id: str, status: TaskStatus) -> None: ...

    def set_campaign_status(self, campaign_id: str, status: CampaignStatus) -> None: ...
