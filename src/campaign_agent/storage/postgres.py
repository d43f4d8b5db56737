"""PostgreSQL-backed campaign storage with automatic table migration."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from campaign_agent.errors import RecordNotFoundError, StorageError
from campaign_agent.storage.models import (
    Artifact,
    Campaign,
    CampaignState,
    CampaignStatus,
    CampaignTask,
    TaskStatus,
)


class PostgresCampaignStorage:
    """Persist campaigns, tasks and artifacts in PostgreSQL."""

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("CAMPAIGN_AGENT_DATABASE_URL is required")
        self.database_url = database_url
        self._lock = threading.Lock()
        self._psycopg = self._load_psycopg()

    def migrate(self) -> None:
        with self._session() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS campaigns (
                    campaign_id UUID PRIMARY KEY,
                    name TEXT NOT NULL,
                    status TEXT NOT NULL,
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    task_id UUID PRIMARY KEY,
                    campaign_id UUID NOT NULL REFERENCES campaigns(campaign_id),
                    description TEXT NOT NULL,
                    status TEXT NOT NULL,
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tasks_campaign_created
                ON tasks(campaign_id, created_at)
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS artifacts (
                    artifact_id BIGSERIAL PRIMARY KEY,
                    campaign_id UUID NOT NULL REFERENCES campaigns(campaign_id),
                    type TEXT NOT NULL,
                    key TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_artifacts_campaign_id
                ON artifacts(campaign_id)
                """)

    def create_campaign(self, campaign: Campaign) -> None:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO campaigns (campaign_id, name, status, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s)
                """,
                (
                    campaign.campaign_id,
                    campaign.name,
                    campaign.status,
                    campaign.created_at,
                    campaign.updated_at,
                ),
            )

    def create_task(self, campaign_id: str, task: CampaignTask) -> None:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO tasks (
                    task_id,
                    campaign_id,
                    description,
                    status,
                    created_at,
                    updated_at
                ) VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (
                    task.task_id,
                    campaign_id,
                    task.description,
                    task.status,
                    task.created_at,
                    task.updated_at,
                ),
            )

    def append_artifact(self, campaign_id: str, artifact: Artifact) -> None:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO artifacts (campaign_id, type, key, content, created_at)
                VALUES (%s, %s, %s, %s, %s)
                """,
                (
                    campaign_id,
                    artifact.type,
                    artifact.key,
                    artifact.content,
                    artifact.created_at or datetime.now(tz=UTC),
                ),
            )

    def load_state(self, campaign_id: str) -> CampaignState:
        with self._session() as conn:
            campaign_row = conn.execute(
                "SELECT * FROM campaigns WHERE campaign_id::text = %s",
                (campaign_id,),
            ).fetchone()
            if campaign_row is None:
                raise RecordNotFoundError(f"Campaign {campaign_id} does not exist")
            task_rows = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE campaign_id::text = %s
                ORDER BY created_at ASC, task_id ASC
                """,
                (campaign_id,),
            ).fetchall()
            artifact_rows = conn.execute(
                """
                SELECT type, key, content, created_at
                FROM artifacts
                WHERE campaign_id::text = %s
                ORDER BY artifact_id ASC
                """,
                (campaign_id,),
            ).fetchall()

        return CampaignState(
            campaign=self._row_to_campaign(campaign_row),
            tasks=[self._row_to_task(row) for row in task_rows],
            artifacts=[
                Artifact(
                    type=row["type"],
                    key=row["key"],
                    content=row["content"],
                    created_at=self._parse_datetime(row["created_at"]),
                )
                for row in artifact_rows
            ],
        )

    def set_task_status(self, task_id: str, status: TaskStatus) -> None:
        self._update_status("tasks", "task_id", task_id, status)

    def set_campaign_status(self, campaign_id: str, status: CampaignStatus) -> None:
        self._update_status("campaigns", "campaign_id", campaign_id, status)

    def _update_status(self, table: str, id_column: str, record_id: str, status: str) -> None:
        with self._session() as conn:
            cursor = conn.execute(
                f"UPDATE {table} SET status = %s, updated_at = %s WHERE {id_column}::text = %s",
                (status, datetime.now(tz=UTC), record_id),
            )
            if cursor.rowcount == 0:
                label = table[:-1].capitalize()
                raise RecordNotFoundError(f"{label} {record_id} does not exist")

    @contextmanager
    def _session(self) -> Iterator[Any]:
        """Serialize access, commit on success and map driver failures to StorageError."""
        with self._lock:
            try:
                with self._connect() as conn:
                    yield conn
                    conn.commit()
            except self._psycopg.Error as exc:
                raise StorageError(f"PostgreSQL operation failed: {exc}") from exc

    def _connect(self) -> Any:
        from psycopg.rows import dict_row

        return self._psycopg.connect(self.database_url, row_factory=dict_row)

    @staticmethod
    def _load_psycopg() -> Any:
        try:
            import psycopg
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg

    @staticmethod
    def _parse_datetime(raw: Any) -> datetime:
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            return datetime.fromisoformat(raw)
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")

    @classmethod
    def _row_to_campaign(cls, row: Any) -> Campaign:
        return Campaign(
            campaign_id=str(row["campaign_id"]),
            name=row["name"],
            status=row["status"],
            created_at=cls._parse_datetime(row["created_at"]),
            updated_at=cls._parse_datetime(row["updated_at"]),
        )

    @classmethod
    def _row_to_task(cls, row: Any) -> CampaignTask:
        return CampaignTask(
            task_id=str(row["task_id"]),
            campaign_id=str(row["campaign_id"]),
            description=row["description"],
            status=row["status"],
            created_at=cls._parse_datetime(row["created_at"]),
            updated_at=cls._parse_datetime(row["updated_at"]),
        )
