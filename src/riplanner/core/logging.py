"""Logging configuration for the planner and its pipeline audit trail"""

import logging
import logging.handlers
import json
import re
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
from contextlib import contextmanager
import threading
import uuid


# Extras attached by the pipeline stages and the AWS adapters
AUDIT_FIELDS = ('stage', 'key', 'before', 'after', 'service', 'region', 'account')


class StructuredFormatter(logging.Formatter):
    """JSON structured logging formatter"""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread_name": record.threadName,
        }

        for name in AUDIT_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if hasattr(record, 'operation'):
            log_data['operation'] = record.operation
            log_data['duration'] = getattr(record, 'duration', None)

        # Add exception info if present
        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        return json.dumps(log_data, default=str)


class SecurityFilter(logging.Filter):
    """Filter to redact credential-like values from logs"""

    SENSITIVE_PATTERNS = [
        'password', 'secret', 'token', 'access_key', 'secret_access_key',
        'session_token', 'credential', 'auth'
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact sensitive information from log records"""
        if not isinstance(record.msg, str):
            return True

        message = record.msg.lower()
        for pattern in self.SENSITIVE_PATTERNS:
            if pattern in message:
                record.msg = self._redact_message(record.msg, pattern)

        return True

    def _redact_message(self, message: str, pattern: str) -> str:
        """Redact sensitive values in message"""
        # Patterns to match key=value, key: value and "key": "value"
        patterns = [
            rf'"{pattern}"\s*:\s*"[^"]*"',
            rf'{pattern}["\']?\s*[:=]\s*["\']?[^"\'\s,}}]+',
        ]

        for p in patterns:
            message = re.sub(p, f'{pattern}=***REDACTED***', message, flags=re.IGNORECASE)

        return message


class AuditLogger:
    """Records every purchase attempt, successful or not"""

    def __init__(self, log_file: Optional[Path] = None):
        self.logger = logging.getLogger('riplanner.audit')
        self.logger.setLevel(logging.INFO)

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10485760,  # 10MB
                backupCount=10
            )
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)

    def log_purchase(self, service: str, region: str, resource_type: str, count: int,
                     result: str = "success", commitment_id: str = "",
                     details: Optional[Dict[str, Any]] = None):
        """Log a purchase event"""
        extra = {
            'service': service,
            'region': region,
            'key': resource_type,
            'after': count,
            'commitment_id': commitment_id,
            'result': result,
            'details': details or {},
        }

        if result == "success":
            self.logger.info(f"Audit: purchased {count}x {resource_type} ({service}/{region})", extra=extra)
        else:
            self.logger.warning(
                f"Audit: purchase of {count}x {resource_type} ({service}/{region}) {result}",
                extra=extra
            )


class PerformanceLogger:
    """Times pipeline stages and collaborator lookups"""

    def __init__(self):
        self.logger = logging.getLogger('riplanner.performance')
        self._timers = {}
        self._lock = threading.Lock()

    @contextmanager
    def timer(self, operation: str, **kwargs):
        """Context manager to time operations"""
        start_time = datetime.utcnow()
        timer_id = str(uuid.uuid4())

        with self._lock:
            self._timers[timer_id] = {
                'operation': operation,
                'start_time': start_time,
                **kwargs
            }

        try:
            yield timer_id
        finally:
            end_time = datetime.utcnow()
            duration = (end_time - start_time).total_seconds()

            with self._lock:
                self._timers.pop(timer_id, None)

            self.logger.debug(
                f"Performance: {operation} completed in {duration:.3f}s",
                extra={
                    'operation': operation,
                    'duration': duration,
                    **kwargs
                }
            )

    @property
    def active_timers(self) -> int:
        with self._lock:
            return len(self._timers)


class LoggerManager:
    """Centralized logger management"""

    def __init__(self):
        self.audit_logger = AuditLogger()
        self.performance_logger = PerformanceLogger()

    def setup_logging(self,
                      level: str = "INFO",
                      log_file: Optional[Path] = None,
                      structured: bool = False,
                      console: bool = True,
                      audit_file: Optional[Path] = None,
                      console_handler: Optional[logging.Handler] = None):
        """Setup application-wide logging configuration"""

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, level.upper()))

        # Remove existing handlers
        root_logger.handlers = []

        if console:
            handler = console_handler or logging.StreamHandler(sys.stderr)
            if structured:
                handler.setFormatter(StructuredFormatter())
            elif console_handler is None:
                handler.setFormatter(
                    logging.Formatter(
                        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
                    )
                )
            handler.addFilter(SecurityFilter())
            root_logger.addHandler(handler)

        if log_file:
            log_file = Path(log_file)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10485760,  # 10MB
                backupCount=5
            )
            if structured:
                file_handler.setFormatter(StructuredFormatter())
            else:
                file_handler.setFormatter(
                    logging.Formatter(
                        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
                    )
                )
            file_handler.addFilter(SecurityFilter())
            root_logger.addHandler(file_handler)

        self.audit_logger = AuditLogger(Path(audit_file) if audit_file else None)

        # Configure third-party loggers
        logging.getLogger('boto3').setLevel(logging.WARNING)
        logging.getLogger('botocore').setLevel(logging.WARNING)
        logging.getLogger('urllib3').setLevel(logging.WARNING)


# Global logger manager instance
logger_manager = LoggerManager()


def setup_logging(**kwargs):
    """Setup logging for the application"""
    logger_manager.setup_logging(**kwargs)


def get_audit_logger() -> AuditLogger:
    """Get audit logger instance"""
    return logger_manager.audit_logger


def get_performance_logger() -> PerformanceLogger:
    """Get performance logger instance"""
    return logger_manager.performance_logger
