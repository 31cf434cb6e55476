"""
Pytest configuration and shared fixtures.
"""

import uuid
from contextlib import contextmanager
from typing import Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError

from jobremover.agent import InstanceConnectionError
from jobremover.database import MSDB_SCHEMA, AgentJob, Base, get_session
from jobremover.logger import StructuredLogger, reset_logger
from jobremover.schema import job_id_text


class FakeJob:
    def __init__(self, name: str, job_id: Optional[str] = None):
        self.name = name
        self.job_id = job_id or str(uuid.uuid4())
        self.enabled = 1


class FakeJobServer:
    """
    In-memory job collection for one instance.

    Every call is appended to ``calls`` as a tuple so tests can assert on
    order and arguments across instances.
    """

    def __init__(self, host: str, job_names: List[str], calls: list):
        self.host = host
        self.jobs: Dict[str, FakeJob] = {n: FakeJob(n) for n in job_names}
        self.calls = calls
        self.fail_exists: set = set()
        self.fail_get: set = set()
        self.vanish_on_get: set = set()
        self.fail_purge: set = set()
        self.fail_drop: set = set()
        self.fail_list = False

    def add_job(self, name: str, job_id: Optional[str] = None) -> FakeJob:
        self.jobs[name] = FakeJob(name, job_id)
        return self.jobs[name]

    def _key(self, job_id):
        """Name of the matching job: a name match first, then a job_id match."""
        if not isinstance(job_id, uuid.UUID) and job_id in self.jobs:
            return job_id
        as_id = str(job_id) if isinstance(job_id, uuid.UUID) else job_id_text(job_id)
        for job in self.jobs.values():
            if as_id is not None and job.job_id == as_id:
                return job.name
        return None

    def job_exists(self, job_id) -> bool:
        self.calls.append(("exists", self.host, str(job_id)))
        if str(job_id) in self.fail_exists:
            raise RuntimeError("lookup timed out")
        return self._key(job_id) in self.jobs

    def get_job(self, job_id):
        self.calls.append(("get", self.host, str(job_id)))
        if str(job_id) in self.fail_get:
            raise RuntimeError("handle unavailable")
        if str(job_id) in self.vanish_on_get:
            return None
        return self.jobs.get(self._key(job_id))

    def list_jobs(self) -> list:
        self.calls.append(("list", self.host))
        if self.fail_list:
            raise OperationalError("SELECT", {}, Exception("The SELECT permission was denied on the object 'sysjobs'"))
        return sorted(self.jobs.values(), key=lambda j: j.name)

    def purge_history(self, job) -> None:
        self.calls.append(("purge", self.host, job.name))
        if job.name in self.fail_purge:
            raise RuntimeError("purge refused")

    def drop_job(self, job, keep_unused_schedules: bool) -> None:
        self.calls.append(("drop", self.host, job.name, keep_unused_schedules))
        if job.name in self.fail_drop:
            raise RuntimeError("The DELETE statement conflicted with the REFERENCE constraint")
        del self.jobs[job.name]


class FakeConnector:
    """Connector that serves FakeJobServers by host; unknown hosts fail to connect."""

    def __init__(self):
        self.calls: list = []
        self.servers: Dict[str, FakeJobServer] = {}
        self.closed: List[str] = []
        self.fail_close: set = set()

    def add(self, host: str, job_names: List[str]) -> FakeJobServer:
        server = FakeJobServer(host, job_names, self.calls)
        self.servers[host] = server
        return server

    @contextmanager
    def __call__(self, instance, credential=None, settings=None):
        self.calls.append(("connect", instance.host))
        server = self.servers.get(instance.host)
        if server is None:
            raise InstanceConnectionError(instance, "Login timeout expired")
        try:
            yield server
        finally:
            self.closed.append(instance.host)
            if instance.host in self.fail_close:
                raise OperationalError("close", {}, Exception("Communication link failure"))

    def job_calls(self, host: str) -> list:
        return [c for c in self.calls if c[0] != "connect" and c[1] == host]


@pytest.fixture(autouse=True)
def _reset_global_logger():
    reset_logger()
    yield
    reset_logger()


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    """Logger with no handlers attached; metrics still tracked."""
    return StructuredLogger(name="jobremover-test", enable_console=False)


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def msdb_engine():
    """SQLite engine standing in for msdb, with msdb.dbo mapped to the default schema."""
    engine = create_engine(
        "sqlite://",
        execution_options={"schema_translate_map": {MSDB_SCHEMA: None}},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def msdb_session(msdb_engine):
    session = get_session(msdb_engine)
    session.add_all([
        AgentJob(job_id="0e5d1c1a-4f6b-4d6e-9a51-3c1f5b2d7a10", name="Job1", enabled=1),
        AgentJob(job_id="6f7a8b9c-1d2e-4f30-8a4b-5c6d7e8f9a0b", name="Job2", enabled=0),
        AgentJob(job_id="a1b2c3d4-e5f6-4a7b-8c9d-0e1f2a3b4c5d", name="Backup - Full", enabled=1),
    ])
    session.commit()
    yield session
    session.close()
