"""
Light World CLI - Centralized Logging Configuration
Plain text logs by default, JSON structured logs with log_format="json".

Logs go to a rotating file under ~/.lightworld/logs. The terminal belongs to
the interactive prompts, so console logging is only enabled with --verbose.
"""

import logging
import sys
import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from contextvars import ContextVar

from lightworld.config import CLIConfig


# Context variables for tracing one recovery attempt / one account
session_id_var: ContextVar[str] = ContextVar('session_id', default='')
user_email_var: ContextVar[str] = ContextVar('user_email', default='')


def get_session_id() -> str:
    """Get current recovery session ID from context"""
    return session_id_var.get() or ''


def set_session_id(session_id: str) -> None:
    """Set recovery session ID in context"""
    session_id_var.set(session_id)


def get_user_email() -> str:
    return user_email_var.get() or ''


def set_user_email(email: str) -> None:
    user_email_var.set(email)


def generate_session_id() -> str:
    """Generate a short unique session ID"""
    return str(uuid.uuid4())[:8]


_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'message', 'taskName', 'session_id', 'user_email',
}


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.
    One object per line, easy to grep or ship to a log aggregator.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        session_id = get_session_id()
        if session_id:
            log_data["session_id"] = session_id

        user_email = get_user_email()
        if user_email:
            log_data["user_email"] = user_email

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info) if record.exc_info[0] else None
            }

        # Extra fields passed via extra={...}
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith('_'):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ContextualFormatter(logging.Formatter):
    """Readable formatter that includes the session and user context"""

    def format(self, record: logging.LogRecord) -> str:
        record.session_id = get_session_id() or '-'
        record.user_email = get_user_email() or '-'

        return super().format(record)


class LightWorldLogger(logging.Logger):
    """
    Custom logger with convenience methods for structured logging
    """

    def log_request(self, method: str, path: str, status_code: Optional[int],
                    duration_ms: float, **kwargs) -> None:
        """Log HTTP request details (never the body)"""
        level = logging.INFO if status_code and status_code < 400 else logging.WARNING
        self.log(
            level,
            f"HTTP {method} {path} - {status_code or 'no response'} ({duration_ms:.2f}ms)",
            extra={
                "event_type": "http_request",
                "http_method": method,
                "http_path": path,
                "http_status": status_code,
                "duration_ms": duration_ms,
                **kwargs
            }
        )

    def log_auth_event(self, event: str, success: bool, user_email: str = None,
                       reason: str = None, **kwargs) -> None:
        """Log authentication events"""
        level = logging.INFO if success else logging.WARNING
        self.log(
            level,
            f"Auth {event}: {'success' if success else 'failed'}" +
            (f" - {user_email}" if user_email else "") +
            (f" - {reason}" if reason else ""),
            extra={
                "event_type": "auth",
                "auth_event": event,
                "auth_success": success,
                "failure_reason": reason,
                **kwargs
            }
        )

    def log_stage_change(self, previous: str, current: str, **kwargs) -> None:
        """Log a recovery flow stage transition"""
        self.info(
            f"Recovery stage {previous} -> {current}",
            extra={
                "event_type": "recovery_stage",
                "stage_from": previous,
                "stage_to": current,
                **kwargs
            }
        )

    def log_error_with_context(self, error: Exception, context: str = None,
                               **kwargs) -> None:
        """Log error with full context"""
        self.error(
            f"Error in {context}: {type(error).__name__}: {str(error)}",
            exc_info=True,
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_message": str(error),
                "error_context": context,
                **kwargs
            }
        )


def _get_logger() -> LightWorldLogger:
    logging.setLoggerClass(LightWorldLogger)
    base = logging.getLogger("lightworld")
    base.__class__ = LightWorldLogger  # Ensure it's our custom class
    if not base.handlers:
        base.addHandler(logging.NullHandler())
    return base


def setup_logging(config: CLIConfig) -> LightWorldLogger:
    """Attach handlers to the lightworld logger based on config"""
    logger.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
    logger.handlers.clear()
    logger.propagate = False

    if config.log_format == "json":
        file_formatter: logging.Formatter = JSONFormatter()
    else:
        file_formatter = ContextualFormatter(
            "%(asctime)s | %(levelname)-8s | "
            "[%(session_id)s] [%(user_email)s] | "
            "%(funcName)s:%(lineno)d | %(message)s"
        )

    if config.log_file:
        log_file = Path(config.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=5242880,  # 5MB
            backupCount=3
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    if config.verbose:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(ContextualFormatter("%(levelname)-8s | %(message)s"))
        logger.addHandler(console_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger.debug(
        "Logging initialized",
        extra={
            "log_level": config.log_level,
            "json_logging": config.log_format == "json",
            "api_base_url": config.api_base_url,
        }
    )

    return logger


# Create logger instance (silent until setup_logging attaches handlers)
logger: LightWorldLogger = _get_logger()


__all__ = [
    'logger',
    'setup_logging',
    'get_session_id',
    'set_session_id',
    'get_user_email',
    'set_user_email',
    'generate_session_id',
    'LightWorldLogger',
]
