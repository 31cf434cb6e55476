"""
Structured logging system for jobremover.

Provides centralized logging with console and file outputs, log levels,
and metrics tracking for the final batch summary.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks removal metrics across a batch.
    """

    def __init__(
        self,
        name: str = "jobremover",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = False,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers.clear()
        self.logger.propagate = False

        self.metrics = {
            "instances_attempted": 0,
            "connection_failures": 0,
            "jobs_removed": 0,
            "jobs_not_found": 0,
            "dry_run_notices": 0,
            "jobs_skipped": 0,
            "errors_by_type": {},
        }

        self.console_handler: Optional[logging.Handler] = None
        if enable_console:
            self.console_handler = logging.StreamHandler(sys.stderr)
            self.console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            self.console_handler.setFormatter(console_formatter)
            self.logger.addHandler(self.console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"jobremover_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

        if not self.logger.handlers:
            self.logger.addHandler(logging.NullHandler())

    def set_console_level(self, level: str):
        """Change console verbosity (used by --quiet / --verbose)."""
        if self.console_handler is not None:
            self.console_handler.setLevel(getattr(logging, level.upper()))

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_instance_attempt(self):
        self.metrics["instances_attempted"] += 1

    def record_connection_failure(self):
        self.metrics["connection_failures"] += 1
        self.record_error("connection_error")

    def record_removal(self):
        self.metrics["jobs_removed"] += 1

    def record_not_found(self):
        self.metrics["jobs_not_found"] += 1

    def record_dry_run(self):
        self.metrics["dry_run_notices"] += 1

    def record_skip(self):
        self.metrics["jobs_skipped"] += 1

    def record_error(self, error_type: str):
        """Record a failure by kind."""
        if error_type not in self.metrics["errors_by_type"]:
            self.metrics["errors_by_type"][error_type] = 0
        self.metrics["errors_by_type"][error_type] += 1

    def get_metrics(self) -> dict:
        """Return current metrics."""
        metrics_copy = self.metrics.copy()
        metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])
        metrics_copy["total_errors"] = sum(metrics_copy["errors_by_type"].values())
        return metrics_copy

    def reset_metrics(self):
        for key, value in self.metrics.items():
            self.metrics[key] = {} if isinstance(value, dict) else 0

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Job Removal Summary ===")
        self.info(
            f"Instances: {metrics['instances_attempted']} attempted, "
            f"{metrics['connection_failures']} unreachable"
        )
        self.info(
            f"Jobs: {metrics['jobs_removed']} removed, "
            f"{metrics['jobs_not_found']} not found, "
            f"{metrics['dry_run_notices']} dry-run, "
            f"{metrics['jobs_skipped']} skipped"
        )

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "jobremover",
    level: str = "INFO",
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def configure_logger(**kwargs) -> StructuredLogger:
    """Replace the global logger, e.g. once CLI options are known."""
    global _global_logger
    _global_logger = StructuredLogger(**kwargs)
    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
