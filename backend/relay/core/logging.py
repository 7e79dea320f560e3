"""
Structured logging for the relay.

Each domain writes through its own named logger (relay.api, relay.auth,
relay.socket, relay.server). Records are JSON lines in production and a
short human-readable line elsewhere; control API requests carry their
request_id in both forms.
"""
import json
import logging
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from relay.core.config import settings

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
request_start_var: ContextVar[Optional[float]] = ContextVar('request_start', default=None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def generate_request_id() -> str:
    return uuid.uuid4().hex[:8]


def configure_logging(level: Optional[str] = None) -> None:
    """Install a root handler once; repeated calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format='%(asctime)s %(levelname)s %(name)s %(message)s')
    root.setLevel((level or settings.LOG_LEVEL).upper())


class StructuredLogger:
    """Thin wrapper adding context fields to a stdlib logger."""

    def __init__(self, name: str, json_output: Optional[bool] = None):
        self.name = name
        self.logger = logging.getLogger(name)
        self.json_output = settings.APP_ENV == 'production' if json_output is None else json_output

    def _render(self, level: str, message: str, context: Dict[str, Any], error: Optional[Exception]) -> str:
        request_id = request_id_var.get()
        started = request_start_var.get()

        if self.json_output:
            record: Dict[str, Any] = {
                'timestamp': datetime.now(timezone.utc).isoformat(),
                'level': level,
                'logger': self.name,
                'message': message,
                'env': settings.APP_ENV,
            }
            if request_id:
                record['request_id'] = request_id
            if started:
                record['elapsed_ms'] = round((time.time() - started) * 1000, 2)
            if context:
                record['context'] = context
            if error is not None:
                record['error'] = {'type': type(error).__name__, 'message': str(error)}
            return json.dumps(record, default=str)

        line = f"[{request_id or '-'}] {message}"
        if context:
            line += f" | {context}"
        if error is not None:
            line += f" | error={type(error).__name__}: {error}"
        return line

    def _log(self, level: int, message: str, error: Optional[Exception] = None, **context) -> None:
        if not self.logger.isEnabledFor(level):
            return
        self.logger.log(level, self._render(logging.getLevelName(level), message, context, error))

    def debug(self, message: str, **context):
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context):
        self._log(logging.INFO, message, **context)

    def warning(self, message: str, **context):
        self._log(logging.WARNING, message, **context)

    def error(self, message: str, error: Optional[Exception] = None, **context):
        self._log(logging.ERROR, message, error=error, **context)


api_logger = StructuredLogger('relay.api')
auth_logger = StructuredLogger('relay.auth')
socket_logger = StructuredLogger('relay.socket')
server_logger = StructuredLogger('relay.server')

# Log-tap record kinds and the domain logger each one is written to
_KIND_LOGGERS = {
    'AUTH': auth_logger,
    'SOCKET': socket_logger,
    'SERVER': server_logger,
    'HTTP': api_logger,
}


def logger_for_kind(kind: str) -> StructuredLogger:
    """Domain logger for a log-tap record kind; unknown kinds go to relay.server."""
    return _KIND_LOGGERS.get(kind, server_logger)
