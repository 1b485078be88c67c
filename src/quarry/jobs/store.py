"""
SQLite-backed job persistence.

Stores one row per research job keyed by id: lifecycle status and phase,
topic, budget, accumulated findings and sources, and the final report.
The scheduler writes through save_job_state() at phase transitions only.
"""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

import aiosqlite

from ..config import BudgetConfig
from .models import CycleRecord, Finding, JobStatus, Report, ResearchJob, Source

logger = logging.getLogger(__name__)


SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS jobs (
        id TEXT PRIMARY KEY,
        topic TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        phase TEXT NOT NULL DEFAULT 'created',
        budget JSON NOT NULL,
        plan_summary TEXT,
        findings JSON NOT NULL DEFAULT '[]',
        sources JSON NOT NULL DEFAULT '[]',
        cycles JSON NOT NULL DEFAULT '[]',
        report JSON,
        error TEXT,
        error_code TEXT,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL,
        research_started_at TIMESTAMP,
        completed_at TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status)",
    "CREATE INDEX IF NOT EXISTS idx_jobs_created ON jobs(created_at)",
]


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class JobStore:
    """Async SQLite store for research jobs."""

    def __init__(self, db_path: str | Path):
        """
        Initialize job store.

        Args:
            db_path: Path to SQLite database (use ':memory:' for in-memory)
        """
        self.db_path = str(db_path)
        self._initialized = False
        self._conn: aiosqlite.Connection | None = None  # Persistent connection for :memory:
        self._is_memory = self.db_path == ":memory:"

    async def initialize(self) -> None:
        """Create the schema. Call this before any operations."""
        if self._initialized:
            return

        if self._is_memory:
            self._conn = await aiosqlite.connect(self.db_path)
            db = self._conn
        else:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(self.db_path)

        try:
            for statement in SCHEMA_STATEMENTS:
                await db.execute(statement.strip())
            await db.commit()

            self._initialized = True
            logger.info(f"Initialized job store at {self.db_path}")
        finally:
            if not self._is_memory:
                await db.close()

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
        self._initialized = False

    @asynccontextmanager
    async def _get_db(self):
        """Context manager for database connections."""
        if not self._initialized:
            await self.initialize()

        if self._is_memory:
            yield self._conn
        else:
            async with aiosqlite.connect(self.db_path) as db:
                yield db

    async def create_job(
        self,
        topic: str,
        budget: BudgetConfig | None = None,
        status: JobStatus = "pending",
    ) -> ResearchJob:
        """
        Create and persist a new job.

        Args:
            topic: Research topic
            budget: Resource budget (defaults apply when None)
            status: Initial status ("questions" or "pending")

        Returns:
            The created ResearchJob
        """
        if status not in ("questions", "pending"):
            raise ValueError(f"New jobs start as 'questions' or 'pending', not {status!r}")

        job = ResearchJob(topic=topic, budget=budget or BudgetConfig(), status=status)

        async with self._get_db() as db:
            await db.execute(
                """
                INSERT INTO jobs (
                    id, topic, status, phase, budget, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job.id,
                    job.topic,
                    job.status,
                    job.phase,
                    job.budget.model_dump_json(),
                    _iso(job.created_at),
                    _iso(job.updated_at),
                ),
            )
            await db.commit()

        logger.debug(f"Created job {job.id}: {topic[:50]}")
        return job

    async def save_job_state(self, job: ResearchJob) -> None:
        """Persist the job's current state."""
        async with self._get_db() as db:
            cursor = await db.execute(
                """
                UPDATE jobs SET
                    status = ?, phase = ?, plan_summary = ?, findings = ?, sources = ?,
                    cycles = ?, report = ?, error = ?, error_code = ?, updated_at = ?,
                    research_started_at = ?, completed_at = ?
                WHERE id = ?
                """,
                (
                    job.status,
                    job.phase,
                    job.plan_summary,
                    json.dumps([f.model_dump(mode="json") for f in job.findings]),
                    json.dumps([s.model_dump(mode="json") for s in job.sources]),
                    json.dumps([c.model_dump(mode="json") for c in job.cycles]),
                    job.report.model_dump_json() if job.report else None,
                    job.error,
                    job.error_code,
                    _iso(job.updated_at),
                    _iso(job.research_started_at),
                    _iso(job.completed_at),
                    job.id,
                ),
            )
            if cursor.rowcount == 0:
                raise KeyError(f"Job {job.id} not found")
            await db.commit()

    async def load_job(self, job_id: str) -> ResearchJob | None:
        """Load a job by id, or None if it does not exist."""
        async with self._get_db() as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)) as cursor:
                row = await cursor.fetchone()

        return self._row_to_job(row) if row else None

    async def list_jobs(self, limit: int = 20) -> list[ResearchJob]:
        """Most recently created jobs first."""
        async with self._get_db() as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM jobs ORDER BY created_at DESC LIMIT ?", (limit,)
            ) as cursor:
                rows = await cursor.fetchall()

        return [self._row_to_job(row) for row in rows]

    @staticmethod
    def _row_to_job(row: aiosqlite.Row) -> ResearchJob:
        report = json.loads(row["report"]) if row["report"] else None
        return ResearchJob(
            id=row["id"],
            topic=row["topic"],
            budget=BudgetConfig.model_validate_json(row["budget"]),
            status=row["status"],
            phase=row["phase"],
            plan_summary=row["plan_summary"],
            findings=[Finding(**f) for f in json.loads(row["findings"])],
            sources=[Source(**s) for s in json.loads(row["sources"])],
            cycles=[CycleRecord(**c) for c in json.loads(row["cycles"])],
            report=Report(**report) if report else None,
            error=row["error"],
            error_code=row["error_code"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            research_started_at=(
                datetime.fromisoformat(row["research_started_at"])
                if row["research_started_at"]
                else None
            ),
            completed_at=(
                datetime.fromisoformat(row["completed_at"]) if row["completed_at"] else None
            ),
        )
