"""Storage backends and models."""

from campaign_agent.storage.base import CampaignStorage
from campaign_agent.storage.memory import InMemoryCampaignStorage
from campaign_agent.storage.models import Artifact, Campaign, CampaignState, CampaignTask
from campaign_agent.storage.postgres import PostgresCampaignStorage

__all__ = [
    "Artifact",
    "Campaign",
    "CampaignState",
    "CampaignStorage",
    "CampaignTask",
    "InMemoryCampaignStorage",
    "PostgresCampaignStorage",
]
