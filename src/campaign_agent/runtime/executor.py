"""Step executor: advance one campaign by exactly one unit of task progress.

Every step starts from a fresh ``load_state`` so a crash between two steps leaves
storage in a resumable state. Port failures (StorageError, OracleError, FetchError)
are not caught here; they end the step and surface to the runtime loop.
"""

from __future__ import annotations

import logging
from typing import Literal

from campaign_agent.runtime.notifier import Notifier
from campaign_agent.storage.base import CampaignStorage
from campaign_agent.storage.models import Artifact, CampaignState, CampaignTask
from campaign_agent.tools.fetch import Fetcher
from campaign_agent.tools.oracle import Oracle

logger = logging.getLogger(__name__)

# advanced: a task reached done and open tasks may remain.
# waiting: the oracle asked for user input; the campaign is paused.
# completed: the campaign has no open task left.
StepOutcome = Literal["advanced", "waiting", "completed"]


class StepExecutor:
    def __init__(
        self,
        *,
        storage: CampaignStorage,
        oracle: Oracle,
        fetcher: Fetcher,
        notifier: Notifier,
    ) -> None:
        self.storage = storage
        self.oracle = oracle
        self.fetcher = fetcher
        self.notifier = notifier

    def execute_one_step(self, campaign_id: str) -> StepOutcome:
        state = self.storage.load_state(campaign_id)
        task = state.next_open_task()
        if task is None:
            return self._complete(state)

        if task.status != "in_progress":
            self.storage.set_task_status(task.task_id, "in_progress")
        self.notifier.notify("system", f"Executing: {task.description}")
        logger.info(
            "campaign_step event=start campaign_id=%s task_id=%s resumed=%s",
            campaign_id,
            task.task_id,
            task.status == "in_progress",
        )

        decision = self.oracle.propose(task.description, state.artifacts)
        proposal = decision.proposal
        if decision.explanation:
            self.notifier.notify("agent", decision.explanation)

        if proposal.type == "request_user_input":
            self.storage.set_campaign_status(campaign_id, "paused")
            self.notifier.notify("agent", proposal.argument or "")
            self.notifier.notify("system", "Waiting for user input.")
            logger.info(
                "campaign_step event=waiting campaign_id=%s task_id=%s",
                campaign_id,
                task.task_id,
            )
            return "waiting"

        if proposal.type == "fetch":
            url = proposal.argument or ""
            content = self.fetcher.fetch(url)
            self.storage.append_artifact(
                campaign_id,
                Artifact(type="research", key=url, content=content),
            )
            logger.info(
                "campaign_step event=fetched campaign_id=%s url=%s chars=%d",
                campaign_id,
                url,
                len(content),
            )
        elif proposal.type != "no_op":
            logger.info(
                "campaign_step event=unknown_proposal campaign_id=%s type=%s",
                campaign_id,
                proposal.type,
            )

        self.storage.set_task_status(task.task_id, "done")
        self.notifier.notify("system", "Task completed.")
        logger.info(
            "campaign_step event=task_done campaign_id=%s task_id=%s proposal=%s",
            campaign_id,
            task.task_id,
            proposal.type,
        )

        if not _has_other_open_task(state, task):
            return self._complete(state)
        return "advanced"

    def _complete(self, state: CampaignState) -> StepOutcome:
        campaign = state.campaign
        if campaign.status == "completed":
            return "completed"
        self.storage.set_campaign_status(campaign.campaign_id, "completed")
        self.notifier.notify("system", "Campaign completed.")
        logger.info("campaign_step event=completed campaign_id=%s", campaign.campaign_id)
        return "completed"


def _has_other_open_task(state: CampaignState, current: CampaignTask) -> bool:
    return any(
        task.task_id != current.task_id and task.status != "done" for task in state.tasks
    )
