"""
Batch removal of SQL Server Agent jobs.

Each (instance, job) pair is processed in order: connect, check the job
exists, fetch its handle, optionally purge its history, then drop it.
Every failure becomes a RemovalResult and the batch moves on.
"""

from contextlib import ExitStack
from typing import Callable, ContextManager, Iterable, List, Optional

from .agent import open_job_server
from .env import Settings
from .logger import StructuredLogger, get_logger
from .schema import (
    BatchResult,
    Credential,
    InstanceRef,
    JobId,
    Outcome,
    RemovalPolicy,
    RemovalResult,
    parse_instance,
    parse_job_id,
    validate_request,
)

# (instance, credential, settings) -> context manager yielding a job server
Connector = Callable[[InstanceRef, Optional[Credential], Optional[Settings]], ContextManager]
# (instance, job, action) -> proceed?
ConfirmCallback = Callable[[InstanceRef, JobId, str], bool]


def describe_action(job: JobId, policy: RemovalPolicy) -> str:
    return f"remove job '{job}' ({policy.describe()})"


class JobRemover:
    """
    Removes Agent jobs across a batch of instances.

    Args:
        connect: Connector yielding a job server for one instance
        settings: Connection settings passed through to the connector
        logger: Structured logger (default: global logger)
        confirm: Optional callback asked before each destructive action
    """

    def __init__(
        self,
        connect: Connector = open_job_server,
        settings: Optional[Settings] = None,
        logger: Optional[StructuredLogger] = None,
        confirm: Optional[ConfirmCallback] = None,
    ):
        self.connect = connect
        self.settings = settings
        self.logger = logger or get_logger()
        self.confirm = confirm

    def remove_jobs(
        self,
        instances: Iterable,
        jobs: Iterable[JobId],
        policy: Optional[RemovalPolicy] = None,
        credential: Optional[Credential] = None,
        dry_run: bool = False,
    ) -> BatchResult:
        """
        Remove every job in ``jobs`` from every instance in ``instances``.

        Args:
            instances: InstanceRef objects or instance strings
            jobs: Job names or UUIDs
            policy: History and schedule retention (default: keep neither)
            credential: SQL login used for every instance
            dry_run: Report what would be removed without purging or dropping

        Returns:
            BatchResult with one entry per job per reachable instance and
            one connection_error entry per unreachable instance

        Raises:
            ValueError: If no instance or no job is given
        """
        instances = list(instances)
        jobs = list(jobs)
        errors = validate_request(instances, jobs)
        if errors:
            raise ValueError("; ".join(errors))

        instance_refs = [i if isinstance(i, InstanceRef) else parse_instance(i) for i in instances]
        job_ids = [parse_job_id(j) for j in jobs]
        policy = policy or RemovalPolicy()
        batch = BatchResult()

        for instance in instance_refs:
            self._process_instance(batch, instance, job_ids, policy, credential, dry_run)

        return batch

    def _process_instance(
        self,
        batch: BatchResult,
        instance: InstanceRef,
        jobs: List[JobId],
        policy: RemovalPolicy,
        credential: Optional[Credential],
        dry_run: bool,
    ) -> None:
        self.logger.record_instance_attempt()
        self.logger.debug(f"Attempting to connect to {instance}", instance=str(instance))
        connection = ExitStack()

        try:
            server = connection.enter_context(self.connect(instance, credential, self.settings))
        except Exception as e:
            self.logger.record_connection_failure()
            self.logger.error(
                f"Failure connecting to {instance}: {e}",
                instance=str(instance),
                error=str(e),
            )
            batch.add(RemovalResult(instance, None, Outcome.CONNECTION_ERROR, str(e)))
            return

        try:
            for job in jobs:
                batch.add(self._process_job(server, instance, job, policy, dry_run))
        finally:
            try:
                connection.close()
            except Exception as e:
                self.logger.warning(
                    f"Error while closing connection to {instance}: {e}",
                    instance=str(instance),
                )

    def _process_job(
        self,
        server,
        instance: InstanceRef,
        job: JobId,
        policy: RemovalPolicy,
        dry_run: bool,
    ) -> RemovalResult:
        context = {"instance": str(instance), "job": str(job)}

        try:
            exists = server.job_exists(job)
        except Exception as e:
            return self._failure(instance, job, Outcome.RETRIEVAL_ERROR,
                                 f"Failure looking up job: {e}", context)
        if not exists:
            self.logger.record_not_found()
            message = f"Job {job} doesn't exist on {instance}"
            self.logger.warning(message, **context)
            return RemovalResult(instance, job, Outcome.NOT_FOUND, message)

        try:
            handle = server.get_job(job)
        except Exception as e:
            return self._failure(instance, job, Outcome.RETRIEVAL_ERROR,
                                 f"Failure retrieving job: {e}", context)
        if handle is None:
            return self._failure(instance, job, Outcome.RETRIEVAL_ERROR,
                                 "Job disappeared between existence check and retrieval", context)

        action = describe_action(job, policy)

        if dry_run:
            self.logger.record_dry_run()
            message = f"Would {action} on {instance}"
            self.logger.info(message, **context)
            return RemovalResult(instance, job, Outcome.WOULD_REMOVE, message)

        confirmed = True
        if self.confirm is not None:
            try:
                confirmed = self.confirm(instance, job, action)
            except Exception as e:
                return self._failure(instance, job, Outcome.DROP_ERROR,
                                     f"Removal not confirmed, confirmation failed: {e}", context)
        if not confirmed:
            self.logger.record_skip()
            message = f"Skipped: {action} on {instance} was not confirmed"
            self.logger.info(message, **context)
            return RemovalResult(instance, job, Outcome.SKIPPED, message)

        try:
            if not policy.keep_history:
                self.logger.debug(f"Purging job history for {job}", **context)
                server.purge_history(handle)
            self.logger.debug(
                f"Dropping job {job}",
                keep_unused_schedules=policy.keep_unused_schedules,
                **context,
            )
            server.drop_job(handle, policy.keep_unused_schedules)
        except Exception as e:
            return self._failure(instance, job, Outcome.DROP_ERROR,
                                 f"Could not drop job: {e}", context)

        self.logger.record_removal()
        message = f"Removed job {job} from {instance}"
        self.logger.info(message, **context)
        return RemovalResult(instance, job, Outcome.REMOVED, message)

    def _failure(self, instance, job, outcome: Outcome, message: str, context: dict) -> RemovalResult:
        self.logger.record_error(outcome.value)
        self.logger.error(message, **context)
        return RemovalResult(instance, job, outcome, message)


def remove_jobs(
    instances: Iterable,
    jobs: Iterable[JobId],
    policy: Optional[RemovalPolicy] = None,
    credential: Optional[Credential] = None,
    dry_run: bool = False,
    **kwargs,
) -> BatchResult:
    """Convenience wrapper: build a JobRemover and run one batch."""
    remover = JobRemover(**kwargs)
    return remover.remove_jobs(instances, jobs, policy, credential=credential, dry_run=dry_run)
