"""Campaign runtime: command loop, controller, step executor and notifications."""

from campaign_agent.runtime.commands import Command, Resume, Stop, UserMessage
from campaign_agent.runtime.controller import CampaignController
from campaign_agent.runtime.executor import StepExecutor, StepOutcome
from campaign_agent.runtime.loop import CampaignRunner, RuntimeState
from campaign_agent.runtime.notifier import ChatMessage, Notifier

__all__ = [
    "CampaignController",
    "CampaignRunner",
    "ChatMessage",
    "Command",
    "Notifier",
    "Resume",
    "RuntimeState",
    "StepExecutor",
    "StepOutcome",
    "Stop",
    "UserMessage",
]
