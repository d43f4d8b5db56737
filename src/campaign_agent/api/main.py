"""FastAPI app entrypoint for campaign-agent."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field

from campaign_agent.config.settings import Settings, get_settings
from campaign_agent.errors import RecordNotFoundError, StorageError
from campaign_agent.runtime.loop import CampaignRunner
from campaign_agent.runtime.notifier import ChatMessage, Notifier
from campaign_agent.storage.base import CampaignStorage
from campaign_agent.storage.memory import InMemoryCampaignStorage
from campaign_agent.storage.models import CampaignState
from campaign_agent.storage.postgres import PostgresCampaignStorage
from campaign_agent.tools.fetch import Fetcher, build_fetcher
from campaign_agent.tools.oracle import Oracle, build_oracle


class SendMessageRequest(BaseModel):
    text: str = Field(min_length=1)


class CommandAccepted(BaseModel):
    accepted: bool = True


class RuntimeStatus(BaseModel):
    phase: str
    campaign_id: str | None = None


def _build_storage(settings: Settings) -> CampaignStorage:
    backend = settings.storage_backend.lower()
    if backend == "memory":
        return InMemoryCampaignStorage()
    if backend != "postgres":
        raise RuntimeError(f"Unsupported storage backend: {settings.storage_backend}")
    database_url = settings.resolved_database_url()
    if not database_url:
        raise RuntimeError(
            "Missing database URL. Set CAMPAIGN_AGENT_DATABASE_URL "
            "or CAMPAIGN_DATABASE_URL before starting the app."
        )
    return PostgresCampaignStorage(database_url)


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    storage_override: CampaignStorage | None,
    oracle_override: Oracle | None,
    fetcher_override: Fetcher | None,
) -> None:
    if not hasattr(app.state, "storage"):
        app.state.storage = storage_override or _build_storage(settings)
        app.state.storage.migrate()

    if not hasattr(app.state, "runner"):
        app.state.runner = CampaignRunner.from_ports(
            storage=app.state.storage,
            oracle=oracle_override or build_oracle(settings),
            fetcher=fetcher_override or build_fetcher(settings),
            notifier=Notifier(history_size=settings.message_history_size),
            step_interval_s=settings.step_interval_s,
        )
    app.state.runner.start()


def create_app(
    *,
    storage: CampaignStorage | None = None,
    oracle: Oracle | None = None,
    fetcher: Fetcher | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()

    def _ensure(app: FastAPI) -> None:
        _ensure_runtime_state(
            app,
            settings=settings,
            storage_override=storage,
            oracle_override=oracle,
            fetcher_override=fetcher,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure(app)
        try:
            yield
        finally:
            app.state.runner.shutdown()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    def _get_runner(request: Request) -> CampaignRunner:
        if not hasattr(request.app.state, "runner"):
            _ensure(request.app)
        return request.app.state.runner

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.post("/messages", status_code=202, response_model=CommandAccepted)
    def send_message(payload: SendMessageRequest, request: Request) -> CommandAccepted:
        _get_runner(request).send_user_message(payload.text)
        return CommandAccepted()

    @app.get("/messages", response_model=list[ChatMessage])
    def list_messages(
        request: Request,
        limit: int = Query(100, ge=1, le=1000),
    ) -> list[ChatMessage]:
        return _get_runner(request).notifier.history(limit)

    @app.post("/stop", status_code=202, response_model=CommandAccepted)
    def stop(request: Request) -> CommandAccepted:
        _get_runner(request).stop()
        return CommandAccepted()

    @app.post("/resume", status_code=202, response_model=CommandAccepted)
    def resume(request: Request) -> CommandAccepted:
        _get_runner(request).resume()
        return CommandAccepted()

    @app.get("/runtime", response_model=RuntimeStatus)
    def runtime_status(request: Request) -> RuntimeStatus:
        state = _get_runner(request).state
        return RuntimeStatus(phase=state.phase, campaign_id=state.campaign_id)

    @app.get("/campaigns/{campaign_id}", response_model=CampaignState)
    def get_campaign(campaign_id: str, request: Request) -> CampaignState:
        runner = _get_runner(request)
        try:
            return runner.controller.storage.load_state(campaign_id)
        except RecordNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Campaign not found") from exc
        except StorageError as exc:
            raise HTTPException(status_code=503, detail="Storage unavailable") from exc

    return app


app = create_app()
