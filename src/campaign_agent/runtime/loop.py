"""Runtime loop: the single consumer of campaign commands.

The loop blocks on the command queue, dispatches each command to the campaign
controller, then drains steps one at a time while the runtime is running. After
every step it checks, without blocking, whether a command is waiting, so a Stop
or a new instruction is honored between steps rather than between campaigns.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Literal

from campaign_agent.errors import CampaignAgentError
from campaign_agent.runtime.commands import Command, Resume, Stop, UserMessage
from campaign_agent.runtime.controller import CampaignController
from campaign_agent.runtime.executor import StepExecutor
from campaign_agent.runtime.notifier import ChatMessage, Notifier
from campaign_agent.storage.base import CampaignStorage
from campaign_agent.tools.fetch import Fetcher
from campaign_agent.tools.oracle import Oracle

logger = logging.getLogger(__name__)

Phase = Literal["no_campaign", "running", "paused"]


@dataclass(frozen=True)
class RuntimeState:
    phase: Phase = "no_campaign"
    campaign_id: str | None = None


def on_user_message(state: RuntimeState, campaign_id: str) -> RuntimeState:
    # A fresh instruction resumes execution even when paused.
    return RuntimeState(phase="running", campaign_id=campaign_id)


def on_stop(state: RuntimeState) -> RuntimeState:
    if state.campaign_id is None:
        return state
    return replace(state, phase="paused")


def on_resume(state: RuntimeState) -> RuntimeState:
    if state.phase != "paused":
        return state
    return replace(state, phase="running")


def on_halt(state: RuntimeState) -> RuntimeState:
    """The campaign stopped advancing on its own (user input requested or step failed)."""
    return on_stop(state)


class CampaignRunner:
    """Owns the command queue and the run/pause state of one runtime instance."""

    def __init__(
        self,
        *,
        controller: CampaignController,
        notifier: Notifier,
        step_interval_s: float = 0.05,
        state: RuntimeState | None = None,
    ) -> None:
        self.controller = controller
        self.notifier = notifier
        self.step_interval_s = step_interval_s
        # None is the wake-up sentinel put by shutdown().
        self._commands: queue.Queue[Command | None] = queue.Queue()
        self._cancelled = threading.Event()
        self._start_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        # Seed with a persisted campaign id to pick up work after a restart.
        self._state = state or RuntimeState()

    @classmethod
    def from_ports(
        cls,
        *,
        storage: CampaignStorage,
        oracle: Oracle,
        fetcher: Fetcher,
        notifier: Notifier | None = None,
        step_interval_s: float = 0.05,
        state: RuntimeState | None = None,
    ) -> CampaignRunner:
        notifier = notifier or Notifier()
        executor = StepExecutor(
            storage=storage,
            oracle=oracle,
            fetcher=fetcher,
            notifier=notifier,
        )
        controller = CampaignController(storage=storage, notifier=notifier, executor=executor)
        return cls(
            controller=controller,
            notifier=notifier,
            step_interval_s=step_interval_s,
            state=state,
        )

    @property
    def state(self) -> RuntimeState:
        return self._state

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def subscribe(self, callback: Callable[[ChatMessage], None]) -> Callable[[], None]:
        return self.notifier.subscribe(callback)

    def start(self) -> None:
        with self._start_lock:
            if self._thread is not None:
                return
            self._thread = threading.Thread(
                target=self._run,
                name="campaign-runner",
                daemon=True,
            )
            self._thread.start()

    def submit(self, command: Command) -> None:
        self._commands.put(command)

    def send_user_message(self, text: str) -> None:
        self.notifier.notify("user", text)
        self.submit(UserMessage(text))

    def stop(self) -> None:
        self.submit(Stop())

    def resume(self) -> None:
        self.submit(Resume())

    def shutdown(self, timeout_s: float | None = 5.0) -> None:
        """Cancel the loop; an in-flight step finishes before the thread exits."""
        self._cancelled.set()
        self._commands.put(None)
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout_s)
            if thread.is_alive():
                logger.warning("runtime event=shutdown_timeout timeout_s=%s", timeout_s)

    def process(self, command: Command) -> RuntimeState:
        """Dispatch one command, then drain steps until paused, idle or interrupted."""
        try:
            self._state = self._dispatch(self._state, command)
        except Exception as exc:  # noqa: BLE001
            self._fail(exc, stage="command")
            return self._state
        self._drain()
        return self._state

    def _run(self) -> None:
        self.notifier.notify("system", "Agent runtime started.")
        logger.info("runtime event=started")
        while not self._cancelled.is_set():
            command = self._commands.get()
            if command is None or self._cancelled.is_set():
                break
            self.process(command)
        logger.info("runtime event=stopped phase=%s", self._state.phase)

    def _dispatch(self, state: RuntimeState, command: Command) -> RuntimeState:
        if isinstance(command, UserMessage):
            campaign_id = self.controller.handle_user_message(state.campaign_id, command.text)
            return on_user_message(state, campaign_id)

        if isinstance(command, Stop):
            if state.campaign_id is None:
                logger.info("runtime event=stop_ignored reason=no_campaign")
                return state
            if state.phase != "paused":
                self.controller.pause(state.campaign_id)
            self.notifier.notify("system", "Campaign paused.")
            return on_stop(state)

        if isinstance(command, Resume):
            if state.campaign_id is None or state.phase != "paused":
                logger.info("runtime event=resume_ignored phase=%s", state.phase)
                return state
            self.controller.resume(state.campaign_id)
            self.notifier.notify("system", "Campaign resumed.")
            return on_resume(state)

        raise TypeError(f"Unsupported command: {command!r}")

    def _drain(self) -> None:
        while self._state.phase == "running" and not self._cancelled.is_set():
            campaign_id = self._state.campaign_id
            if campaign_id is None:
                return
            try:
                outcome = self.controller.execute_one_step(campaign_id)
            except Exception as exc:  # noqa: BLE001
                self._fail(exc, stage="step")
                return

            if outcome == "waiting":
                self._state = on_halt(self._state)
                return
            if outcome == "completed":
                return
            if not self._commands.empty():
                return
            if self._cancelled.wait(self.step_interval_s):
                return

    def _fail(self, exc: Exception, *, stage: str) -> None:
        campaign_id = self._state.campaign_id
        if isinstance(exc, CampaignAgentError):
            logger.exception(
                "runtime event=%s_failed campaign_id=%s error_type=%s",
                stage,
                campaign_id,
                type(exc).__name__,
            )
        else:
            logger.exception(
                "runtime event=%s_failed_unexpected campaign_id=%s", stage, campaign_id
            )
        label = "Step" if stage == "step" else "Command"
        self.notifier.notify("system", f"{label} failed: {exc}")

        # A failed command already attempted its own write; only steps pause here.
        if stage != "step" or campaign_id is None or self._state.phase == "paused":
            return
        self._state = on_halt(self._state)
        try:
            self.controller.pause(campaign_id)
        except CampaignAgentError:
            logger.exception("runtime event=pause_after_failure_failed campaign_id=%s", campaign_id)
