import argparse
import getpass
import json
import os
import sys
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .agent import JobServerError, open_job_server
from .env import Settings, load_env
from .logger import configure_logger
from .remover import JobRemover
from .schema import (
    BatchResult,
    Credential,
    InstanceRef,
    JobId,
    RemovalPolicy,
    parse_instance,
    parse_job_id,
)


def split_values(values: Optional[List[str]]) -> List[str]:
    """Flatten repeated and comma-separated option values."""
    out: List[str] = []
    for v in values or []:
        out.extend(p.strip() for p in v.split(",") if p.strip())
    return out


def parse_instances(values: Optional[List[str]]) -> List[InstanceRef]:
    """Like split_values, but a digits-only piece is the port of the previous host."""
    names: List[str] = []
    for v in values or []:
        for piece in (p.strip() for p in v.split(",")):
            if not piece:
                continue
            if piece.isdigit() and names:
                names[-1] = f"{names[-1]},{piece}"
            else:
                names.append(piece)
    try:
        return [parse_instance(n) for n in names]
    except ValueError as e:
        raise SystemExit(str(e))


def resolve_credential(args: argparse.Namespace, settings: Settings) -> Optional[Credential]:
    user = args.sql_user or settings.sql_user
    if not user:
        return None
    password = os.getenv(args.password_env) if args.password_env else settings.sql_password
    if password is None:
        password = getpass.getpass(f"Password for {user}: ")
    return settings.default_credential(username=args.sql_user, password=password)


def prompt_confirm(instance: InstanceRef, job: JobId, action: str) -> bool:
    try:
        answer = input(f"Performing the operation \"{action}\" on target \"{instance}\". Continue? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _setup_logger(args: argparse.Namespace, settings: Settings):
    logger = configure_logger(
        level=settings.log_level,
        log_dir=settings.log_dir,
        enable_file=settings.log_dir is not None,
    )
    if getattr(args, "quiet", False):
        logger.set_console_level("WARNING")
    elif getattr(args, "verbose", False):
        logger.set_console_level("DEBUG")
    return logger


def print_batch(batch: BatchResult, fmt: str = "text", quiet: bool = False) -> None:
    if fmt == "json":
        print(json.dumps({"results": batch.to_dicts(), "counts": batch.counts()}, indent=2))
        return
    if not quiet:
        for r in batch.results:
            target = str(r.instance) if r.job is None else f"{r.instance}/{r.job}"
            print(f"[{r.outcome.value}] {target}: {r.message}")
    summary = " ".join(f"{k}={v}" for k, v in batch.counts().items())
    print(f"Done. {summary}")


def cmd_remove(args: argparse.Namespace) -> None:
    settings = Settings.from_env()
    logger = _setup_logger(args, settings)

    instances = parse_instances(args.instance)
    try:
        jobs = [parse_job_id(j) for j in split_values(args.job)]
    except ValueError as e:
        raise SystemExit(str(e))
    if not instances:
        raise SystemExit("No instances specified. Use -S/--instance.")
    if not jobs:
        raise SystemExit("No jobs specified. Use -j/--job.")

    policy = RemovalPolicy(
        keep_history=args.keep_history,
        keep_unused_schedules=args.keep_unused_schedules,
    )
    remover = JobRemover(
        connect=open_job_server,
        settings=settings,
        logger=logger,
        confirm=prompt_confirm if args.confirm and not args.dry_run else None,
    )
    batch = remover.remove_jobs(
        instances,
        jobs,
        policy,
        credential=resolve_credential(args, settings),
        dry_run=args.dry_run,
    )
    print_batch(batch, fmt=args.format, quiet=args.quiet)
    logger.log_metrics_summary()


def cmd_list(args: argparse.Namespace) -> None:
    settings = Settings.from_env()
    logger = _setup_logger(args, settings)
    credential = resolve_credential(args, settings)

    for instance in parse_instances(args.instance):
        try:
            with open_job_server(instance, credential, settings) as server:
                jobs = server.list_jobs()
        except (JobServerError, SQLAlchemyError) as e:
            logger.error(f"Failed to list jobs on {instance}: {e}", instance=str(instance), error=str(e))
            continue
        print(f"{instance}: {len(jobs)} jobs")
        for job in jobs:
            state = "enabled" if job.enabled else "disabled"
            print(f"  {job.name}  [{state}]  {job.job_id}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jobremover", description="Remove SQL Server Agent jobs across instances")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    def add_connection_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("-S", "--instance", action="append", required=True,
                       help="Target instance (host, host\\INSTANCE, host,port or host\\INSTANCE,port). Repeatable")
        p.add_argument("-U", "--sql-user", help="SQL login (or set JOBREMOVER_SQL_USER). Integrated auth if omitted")
        p.add_argument("--password-env", help="Environment variable holding the SQL password (default: JOBREMOVER_SQL_PASSWORD)")

    rm = subparsers.add_parser("remove", help="Remove one or more Agent jobs")
    add_connection_args(rm)
    rm.add_argument("-j", "--job", action="append", required=True,
                    help="Job name or job id. Repeatable or comma-separated")
    rm.add_argument("--keep-history", action="store_true", help="Keep the job's execution history")
    rm.add_argument("--keep-unused-schedules", action="store_true",
                    help="Keep schedules no other job uses")
    rm.add_argument("--dry-run", action="store_true", help="Report what would be removed without removing")
    rm.add_argument("--confirm", action="store_true", help="Prompt before each removal")
    rm.add_argument("--format", choices=["text", "json"], default="text", help="Output format (default: text)")
    verbosity = rm.add_mutually_exclusive_group()
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only print warnings, errors and the summary")
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Show connection attempts and SQL steps")
    rm.set_defaults(func=cmd_remove)

    lst = subparsers.add_parser("list", help="List Agent jobs on instances")
    add_connection_args(lst)
    lst.set_defaults(func=cmd_list)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    # Load .env if present (JOBREMOVER_SQL_USER, JOBREMOVER_ODBC_DRIVER, etc.)
    load_env()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help(sys.stderr)


if __name__ == "__main__":
    main()
