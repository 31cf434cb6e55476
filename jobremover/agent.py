"""
SQL Server Agent job management against msdb.

SqlAgentJobServer wraps one live session on one instance. It answers
existence and lookup queries from msdb.dbo.sysjobs and performs the
destructive calls through the Agent stored procedures.
"""

import uuid
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import func, or_, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .database import AgentJob, get_engine, get_session
from .env import Settings
from .logger import get_logger
from .schema import Credential, InstanceRef, JobId, job_id_text

PURGE_HISTORY_SQL = text("EXEC msdb.dbo.sp_purge_jobhistory @job_id = :job_id")
DELETE_JOB_SQL = text(
    "EXEC msdb.dbo.sp_delete_job @job_id = :job_id, "
    "@delete_history = 0, @delete_unused_schedule = :delete_unused_schedule"
)


class JobServerError(Exception):
    """Raised when the job subsystem rejects an operation."""
    pass


class InstanceConnectionError(JobServerError):
    """Raised when an instance is unreachable or refuses the login."""

    def __init__(self, instance: InstanceRef, reason: str):
        self.instance = instance
        self.reason = reason
        super().__init__(f"Failed to connect to {instance}: {reason}")


def _job_filter(job_id: JobId):
    if isinstance(job_id, uuid.UUID):
        return AgentJob.job_id == str(job_id)
    # A GUID-shaped string may be a job name or a job_id.
    as_id = job_id_text(job_id)
    if as_id is not None:
        return or_(AgentJob.name == job_id, AgentJob.job_id == as_id)
    return AgentJob.name == job_id


class SqlAgentJobServer:
    """Job collection of one connected instance."""

    def __init__(self, session: Session, instance: InstanceRef):
        self.session = session
        self.instance = instance

    def job_exists(self, job_id: JobId) -> bool:
        count = (
            self.session.query(func.count(AgentJob.job_id))
            .filter(_job_filter(job_id))
            .scalar()
        )
        return bool(count)

    def get_job(self, job_id: JobId) -> Optional[AgentJob]:
        """Fetch a job handle; a name match wins over a job_id match."""
        jobs = self.session.query(AgentJob).filter(_job_filter(job_id)).all()
        for job in jobs:
            if job.name == job_id:
                return job
        return jobs[0] if jobs else None

    def list_jobs(self) -> List[AgentJob]:
        return self.session.query(AgentJob).order_by(AgentJob.name).all()

    def purge_history(self, job: AgentJob) -> None:
        """Delete all execution history of a job. Irreversible."""
        self._execute(PURGE_HISTORY_SQL, {"job_id": job.job_id}, "purge history of", job)

    def drop_job(self, job: AgentJob, keep_unused_schedules: bool) -> None:
        """
        Delete a job.

        Args:
            job: Handle returned by get_job
            keep_unused_schedules: True to retain schedules no other job
                uses, False to delete them along with the job
        """
        params = {
            "job_id": job.job_id,
            "delete_unused_schedule": 0 if keep_unused_schedules else 1,
        }
        self._execute(DELETE_JOB_SQL, params, "drop", job)

    def _execute(self, statement, params: dict, action: str, job: AgentJob) -> None:
        try:
            self.session.execute(statement, params)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise JobServerError(
                f"Failed to {action} job '{job.name}' on {self.instance}: {e}"
            ) from e


@contextmanager
def open_job_server(
    instance: InstanceRef,
    credential: Optional[Credential] = None,
    settings: Optional[Settings] = None,
) -> Iterator[SqlAgentJobServer]:
    """
    Connect to an instance and yield its job server.

    The connection is established eagerly so that unreachable instances
    and rejected logins surface here, and is released on exit.

    Raises:
        InstanceConnectionError: If the connection cannot be established
    """
    get_logger().debug(
        f"Connecting to {instance}",
        instance=str(instance),
        auth="sql" if credential else "integrated",
    )
    try:
        engine = get_engine(instance, credential, settings)
        connection = engine.connect()
    except (SQLAlchemyError, ImportError) as e:
        raise InstanceConnectionError(instance, str(e)) from e

    session = get_session(connection)
    try:
        yield SqlAgentJobServer(session, instance)
    finally:
        session.close()
        connection.close()
        engine.dispose()
