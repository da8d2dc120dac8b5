"""
Structured logging for TeamMatch.

Console and file output plus counters for ranking runs and backend
health. The matching core never logs; the service and repositories do.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks how many candidates were admitted or rejected and how the
    storage backend is behaving.
    """

    def __init__(
        self,
        name: str = "teammatch",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to stderr
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()
        self.logger.propagate = False

        self.metrics = self._empty_metrics()

        # Console goes to stderr so `--json` output on stdout stays clean
        if enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_handler.setFormatter(logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"teammatch_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.logger.addHandler(file_handler)

    @staticmethod
    def _empty_metrics() -> dict:
        return {
            "backend_calls": 0,
            "backend_failures": 0,
            "errors_by_type": {},
            "rankings": 0,
            "candidates_considered": 0,
            "candidates_admitted": 0,
            "rejections_by_reason": {},
            "requests_sent": 0,
        }

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_backend_call(self):
        self.metrics["backend_calls"] += 1

    def record_backend_failure(self, error_type: str):
        self.metrics["backend_failures"] += 1
        errors = self.metrics["errors_by_type"]
        errors[error_type] = errors.get(error_type, 0) + 1

    def record_ranking(self):
        self.metrics["rankings"] += 1

    def record_candidate(self, admitted: bool, reason: Optional[str] = None):
        """Record one hard-filter decision."""
        self.metrics["candidates_considered"] += 1
        if admitted:
            self.metrics["candidates_admitted"] += 1
            return
        reasons = self.metrics["rejections_by_reason"]
        key = reason or "unknown"
        reasons[key] = reasons.get(key, 0) + 1

    def record_request_sent(self):
        self.metrics["requests_sent"] += 1

    def get_metrics(self) -> dict:
        """Return current metrics with the admission rate filled in."""
        metrics_copy = json.loads(json.dumps(self.metrics))
        considered = metrics_copy["candidates_considered"]
        metrics_copy["admission_rate"] = (
            round(metrics_copy["candidates_admitted"] / considered, 3) if considered else 0.0
        )
        return metrics_copy

    def log_metrics_summary(self):
        metrics = self.get_metrics()

        self.info("=== TeamMatch Session Metrics ===")
        self.info(f"Backend calls: {metrics['backend_calls']} ({metrics['backend_failures']} failed)")
        if metrics["rankings"]:
            self.info(
                f"Rankings: {metrics['rankings']}, candidates "
                f"{metrics['candidates_admitted']}/{metrics['candidates_considered']} admitted "
                f"({metrics['admission_rate'] * 100:.1f}%)"
            )

        if metrics["rejections_by_reason"]:
            self.info("Rejections:")
            for reason, count in metrics["rejections_by_reason"].items():
                self.info(f"  {reason} {count}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "teammatch",
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


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
