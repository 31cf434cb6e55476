"""
Data model for job removal batches.

Instances, credentials and the removal policy are supplied once per
invocation; results are accumulated per (instance, job) pair.
"""

import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

JobId = Union[str, uuid.UUID]

_INSTANCE = re.compile(
    r"^(?P<host>[^,:\\]+)(?:\\(?P<name>[^,:\\]+))?(?:[,:](?P<port>\d+))?$"
)


@dataclass(frozen=True)
class InstanceRef:
    """A SQL Server endpoint: host, optional named instance, optional port."""

    host: str
    instance_name: Optional[str] = None
    port: Optional[int] = None

    @property
    def server(self) -> str:
        if self.instance_name:
            return f"{self.host}\\{self.instance_name}"
        return self.host

    def __str__(self) -> str:
        if self.port:
            return f"{self.server},{self.port}"
        return self.server


@dataclass(frozen=True)
class Credential:
    username: str
    password: str = field(default="", repr=False)


@dataclass(frozen=True)
class RemovalPolicy:
    keep_history: bool = False
    keep_unused_schedules: bool = False

    def describe(self) -> str:
        history = "keep history" if self.keep_history else "purge history"
        schedules = (
            "keep unused schedules" if self.keep_unused_schedules else "delete unused schedules"
        )
        return f"{history}, {schedules}"


class Outcome(str, Enum):
    REMOVED = "removed"
    WOULD_REMOVE = "would_remove"
    SKIPPED = "skipped"
    NOT_FOUND = "not_found"
    CONNECTION_ERROR = "connection_error"
    RETRIEVAL_ERROR = "retrieval_error"
    DROP_ERROR = "drop_error"

    @property
    def is_error(self) -> bool:
        return self in (Outcome.CONNECTION_ERROR, Outcome.RETRIEVAL_ERROR, Outcome.DROP_ERROR)


@dataclass
class RemovalResult:
    """Outcome of one (instance, job) pair. ``job`` is None for connection errors."""

    instance: InstanceRef
    job: Optional[JobId]
    outcome: Outcome
    message: str = ""

    @property
    def is_error(self) -> bool:
        return self.outcome.is_error

    def as_dict(self) -> Dict[str, Any]:
        return {
            "instance": str(self.instance),
            "job": None if self.job is None else str(self.job),
            "outcome": self.outcome.value,
            "message": self.message,
        }


@dataclass
class BatchResult:
    results: List[RemovalResult] = field(default_factory=list)

    def add(self, result: RemovalResult) -> RemovalResult:
        self.results.append(result)
        return result

    def for_instance(self, instance: InstanceRef) -> List[RemovalResult]:
        return [r for r in self.results if r.instance == instance]

    @property
    def removed(self) -> List[RemovalResult]:
        return [r for r in self.results if r.outcome is Outcome.REMOVED]

    @property
    def errors(self) -> List[RemovalResult]:
        return [r for r in self.results if r.is_error]

    @property
    def warnings(self) -> List[RemovalResult]:
        return [r for r in self.results if r.outcome is Outcome.NOT_FOUND]

    @property
    def ok(self) -> bool:
        return not self.errors

    def counts(self) -> Dict[str, int]:
        counts = {o.value: 0 for o in Outcome}
        for r in self.results:
            counts[r.outcome.value] += 1
        return counts

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [r.as_dict() for r in self.results]


def parse_instance(value: str) -> InstanceRef:
    """
    Parse an instance string into an InstanceRef.

    Accepts ``host``, ``host\\INSTANCE``, ``host,port``, ``host:port`` and
    ``host\\INSTANCE,port``.

    Raises:
        ValueError: If the string is empty or malformed.
    """
    text = (value or "").strip()
    if not text:
        raise ValueError("Instance must be a non-empty string")

    m = _INSTANCE.match(text)
    if not m:
        raise ValueError(f"Invalid instance '{value}'")

    port = None
    if m.group("port"):
        port = int(m.group("port"))
        if not 0 < port < 65536:
            raise ValueError(f"Invalid port in instance '{value}'")
    return InstanceRef(host=m.group("host"), instance_name=m.group("name"), port=port)


def parse_job_id(value: JobId) -> JobId:
    """
    Normalize a job identifier.

    UUID objects are job ids. Strings stay strings, even GUID-shaped ones,
    since a job can be named with a GUID; lookups match those on both name
    and job_id (see job_id_text).
    """
    if isinstance(value, uuid.UUID):
        return value
    text = (value or "").strip()
    if not text:
        raise ValueError("Job name must be a non-empty string")
    return text


def job_id_text(value: str) -> Optional[str]:
    """Canonical job_id form of a GUID-shaped name, or None."""
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return None


def validate_request(instances: Iterable[Any], jobs: Iterable[Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    errors: List[str] = []
    instances = list(instances)
    jobs = list(jobs)

    if not instances:
        errors.append("At least one instance is required")
    if not jobs:
        errors.append("At least one job is required")

    for j in jobs:
        if isinstance(j, uuid.UUID):
            continue
        if not isinstance(j, str) or not j.strip():
            errors.append(f"Job '{j}' must be a non-empty string or UUID")

    return errors
