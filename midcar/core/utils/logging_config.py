"""
Logging setup for MidCar.

setup_logging() configures the 'midcar' logger tree once at startup: JSON
lines under gunicorn or PRODUCTION=true, one compact coloured line otherwise.
Structured fields travel on ``record.extra``, either from a LogContext block
(every record logged in the current request or thread while it is open) or
from log_with_context (a single record).
"""

import os
import sys
import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone

# Third-party loggers that are too chatty at INFO
_NOISY_LOGGERS = ('apscheduler', 'urllib3', 'pdfminer', 'fontTools')

_LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}

_context_fields = ContextVar('midcar_log_context', default={})


def _fields(record):
    return getattr(record, 'extra', None) or {}


def attach_context(record):
    """Handler filter: merge the open LogContext fields into the record."""
    active = _context_fields.get()
    if active:
        record.extra = {**active, **_fields(record)}
    return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, structured fields at the top level."""

    def format(self, record):
        entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(timespec='milliseconds'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'where': f'{record.module}.{record.funcName}:{record.lineno}',
        }
        entry.update(_fields(record))
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):

    def format(self, record):
        color = _LEVEL_COLORS.get(record.levelname, '')
        name = record.name.removeprefix('midcar.')
        line = f"{color}{record.levelname[0]}\033[0m {datetime.now():%H:%M:%S} {name}: {record.getMessage()}"
        fields = _fields(record)
        if fields:
            line += ' [' + ' '.join(f'{k}={v}' for k, v in fields.items()) + ']'
        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def setup_logging(level='INFO', json_format=None):
    """Configure the 'midcar' logger and return it.

    json_format=None picks JSON under PRODUCTION=true or a gunicorn
    SERVER_SOFTWARE, the coloured formatter otherwise.
    """
    if json_format is None:
        json_format = (os.environ.get('PRODUCTION', '').lower() == 'true'
                       or 'gunicorn' in os.environ.get('SERVER_SOFTWARE', ''))

    logger = logging.getLogger('midcar')
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_format else DevelopmentFormatter())
    handler.addFilter(attach_context)
    logger.addHandler(handler)
    logger.propagate = False

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


class LogContext:
    """Stamp fields on every record logged inside the block.

    Scoped to the current thread / request, so concurrent requests do not
    see each other's fields.

    Usage:
        with LogContext(import_file='polizas.xlsx', user_id=3):
            logger.info('Parsing started')
    """

    def __init__(self, **fields):
        self.fields = fields
        self._token = None

    def __enter__(self):
        self._token = _context_fields.set({**_context_fields.get(), **self.fields})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _context_fields.reset(self._token)
        return False


def log_with_context(logger, level, message, **fields):
    """Log one record carrying `fields` as structured extras."""
    logger.log(level, message, extra={'extra': fields}, stacklevel=2)
