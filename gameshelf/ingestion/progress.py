"""Import job progress tracking.

An ImportJob row is the only channel through which a running batch reports
progress: the client polls GET /imports/{id} while the batch runs. Every
mutation here commits immediately so that other sessions see it.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gameshelf.db.models import ImportJob, utcnow

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("completed", "failed")


class ImportJobTracker:
    """Create and advance ImportJob rows (pending → running → completed | failed)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _save(self, job: ImportJob) -> ImportJob:
        job.updated_at = utcnow()
        await self.db.commit()
        return job

    async def create(
        self,
        user_id: int,
        job_type: str,
        total: int = 0,
        status: str = "running",
    ) -> ImportJob:
        now = utcnow()
        job = ImportJob(
            user_id=user_id,
            type=job_type,
            status=status,
            total=total,
            completed=0,
            created_at=now,
            updated_at=now,
        )
        self.db.add(job)
        await self.db.commit()
        await self.db.refresh(job)
        return job

    async def get_for_user(self, job_id: int, user_id: int) -> ImportJob | None:
        """Fetch a job, or None if it doesn't exist or belongs to someone else."""
        result = await self.db.execute(
            select(ImportJob).where(ImportJob.id == job_id, ImportJob.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def open(self, user_id: int, job_type: str, total: int, job_id: int | None = None) -> ImportJob:
        """
        Return a running job for a batch that is about to start.

        A job pre-created by the client is reused (its total is revised);
        otherwise, or if that job is unknown or already finished, a new one
        is created.
        """
        if job_id is not None:
            job = await self.get_for_user(job_id, user_id)
            if job is not None and job.status not in TERMINAL_STATUSES:
                return await self.start(job, total)
            logger.warning(f"Import job {job_id} not reusable for user {user_id}; creating a new one")
        return await self.create(user_id, job_type, total=total)

    async def start(self, job: ImportJob, total: int) -> ImportJob:
        """Move a pending job to running with its final item count."""
        if job.status in TERMINAL_STATUSES:
            raise ValueError(f"Import job {job.id} is already {job.status}")
        job.total = total
        job.status = "running"
        return await self._save(job)

    async def advance(self, job: ImportJob) -> ImportJob:
        """Count one more processed item, whatever its outcome."""
        # A failed item may have rolled the session back and expired the row
        await self.db.refresh(job)
        job.completed = (job.completed or 0) + 1
        return await self._save(job)

    async def complete(self, job: ImportJob) -> ImportJob:
        job.status = "completed"
        return await self._save(job)

    async def fail(self, job: ImportJob, error: str) -> ImportJob:
        job.status = "failed"
        job.error = error
        return await self._save(job)


async def fail_interrupted_jobs(db: AsyncSession) -> int:
    """
    Mark jobs left pending/running by a previous process as failed.

    Batches run inside the API process, so after a restart nothing will ever
    advance them again.
    """
    result = await db.execute(
        update(ImportJob)
        .where(ImportJob.status.in_(("pending", "running")))
        .values(status="failed", error="Interrupted by server restart", updated_at=utcnow())
    )
    await db.commit()
    if result.rowcount:
        logger.warning(f"Marked {result.rowcount} interrupted import jobs as failed")
    return result.rowcount


async def purge_finished_jobs(db: AsyncSession, retention_days: int = 30) -> int:
    """Delete completed/failed jobs not updated within the retention period."""
    cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
    result = await db.execute(
        delete(ImportJob).where(
            ImportJob.status.in_(TERMINAL_STATUSES),
            ImportJob.updated_at < cutoff,
        ).execution_options(synchronize_session=False)
    )
    await db.commit()

    deleted_count = result.rowcount
    if deleted_count > 0:
        logger.info(f"Import job cleanup: deleted {deleted_count} jobs older than {retention_days} days")
    else:
        logger.debug(f"Import job cleanup: no jobs older than {retention_days} days")
    return deleted_count
