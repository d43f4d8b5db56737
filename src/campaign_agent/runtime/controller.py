"""Campaign controller: map user instructions and pauses onto campaign records."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from campaign_agent.runtime.executor import StepExecutor, StepOutcome
from campaign_agent.runtime.notifier import Notifier
from campaign_agent.storage.base import CampaignStorage
from campaign_agent.storage.models import Artifact, Campaign, CampaignTask

logger = logging.getLogger(__name__)


class CampaignController:
    def __init__(
        self,
        *,
        storage: CampaignStorage,
        notifier: Notifier,
        executor: StepExecutor,
    ) -> None:
        self.storage = storage
        self.notifier = notifier
        self.executor = executor

    def handle_user_message(self, campaign_id: str | None, text: str) -> str:
        """Record an instruction as an artifact plus a pending task.

        Creates the campaign on the first instruction and returns its id.
        """
        if campaign_id is None:
            campaign_id = self._create_campaign()
        else:
            self._reactivate(campaign_id)

        self.storage.append_artifact(
            campaign_id,
            Artifact(type="user_message", key=str(uuid.uuid4()), content=text),
        )
        now = datetime.now(UTC)
        task = CampaignTask(
            task_id=str(uuid.uuid4()),
            campaign_id=campaign_id,
            description=f"Process: {text}",
            status="pending",
            created_at=now,
            updated_at=now,
        )
        self.storage.create_task(campaign_id, task)
        self.notifier.notify("system", "User instruction recorded.")
        logger.info(
            "campaign event=instruction_recorded campaign_id=%s task_id=%s",
            campaign_id,
            task.task_id,
        )
        return campaign_id

    def execute_one_step(self, campaign_id: str) -> StepOutcome:
        return self.executor.execute_one_step(campaign_id)

    def pause(self, campaign_id: str) -> None:
        self.storage.set_campaign_status(campaign_id, "paused")
        logger.info("campaign event=paused campaign_id=%s", campaign_id)

    def resume(self, campaign_id: str) -> None:
        self.storage.set_campaign_status(campaign_id, "active")
        logger.info("campaign event=resumed campaign_id=%s", campaign_id)

    def _create_campaign(self) -> str:
        now = datetime.now(UTC)
        campaign = Campaign(
            campaign_id=str(uuid.uuid4()),
            name=f"Campaign-{now:%Y%m%d%H%M}",
            status="active",
            created_at=now,
            updated_at=now,
        )
        self.storage.create_campaign(campaign)
        self.notifier.notify("system", f"Campaign created: {campaign.name}")
        logger.info(
            "campaign event=created campaign_id=%s name=%s",
            campaign.campaign_id,
            campaign.name,
        )
        return campaign.campaign_id

    def _reactivate(self, campaign_id: str) -> None:
        campaign = self.storage.load_state(campaign_id).campaign
        if campaign.status != "active":
            self.storage.set_campaign_status(campaign_id, "active")
