"""
Structured JSON logging.

Every record is rendered as a single JSON object per line:

    {"timestamp": ..., "level": "info", "message": ..., "context": {...}, "error": {...}}

``context`` is present only when non-empty and ``error`` only when an
exception is attached. The minimum level comes from the ``LOG_LEVEL``
setting and is applied through Django's ``LOGGING`` dict config, so a call
below the threshold never reaches a handler.
"""
import json
import logging
import re
import traceback
from datetime import datetime, timezone


LEVEL_NAMES = {
    logging.CRITICAL: 'error',
    logging.ERROR: 'error',
    logging.WARNING: 'warn',
    logging.INFO: 'info',
    logging.DEBUG: 'debug',
}

LEVELS = {
    'error': logging.ERROR,
    'warn': logging.WARNING,
    'info': logging.INFO,
    'debug': logging.DEBUG,
}


def parse_level(name, default='info'):
    """Map an error/warn/info/debug name to a stdlib level number."""
    if isinstance(name, str) and name.strip().lower() in LEVELS:
        return LEVELS[name.strip().lower()]
    return LEVELS[default]


class PIIMasker:
    """
    Masks credentials and personal data before they reach the log stream.
    """

    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
    SECRET_PATTERN = re.compile(
        r'(password|token|secret|api[_-]?key|sessionid)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)',
        re.IGNORECASE,
    )

    SENSITIVE_FIELDS = {
        'password', 'password_hash', 'new_password',
        'token', 'access_token', 'refresh_token',
        'secret', 'secret_key', 'api_key',
        'sessionid', 'session_key', 'cookie',
    }

    @classmethod
    def mask_email(cls, text):
        if not isinstance(text, str):
            return text

        def mask_match(match):
            username, _, domain = match.group(0).partition('@')
            if len(username) > 1:
                username = username[0] + '*' * (len(username) - 1)
            return f"{username}@{domain}"

        return cls.EMAIL_PATTERN.sub(mask_match, text)

    @classmethod
    def mask_text(cls, text):
        if not isinstance(text, str):
            return text
        text = cls.SECRET_PATTERN.sub(r'\1: ********', text)
        return cls.mask_email(text)

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive keys and values."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if str(key).lower() in cls.SENSITIVE_FIELDS:
                masked[key] = '********' if value else value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, (list, tuple)):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict) else cls.mask_text(item)
                    for item in value
                ]
            else:
                masked[key] = cls.mask_text(value)
        return masked


class MaxLevelFilter(logging.Filter):
    """
    Passes records at or below ``level``.

    Pairs a stdout handler (info/debug) with a stderr handler (warn/error).
    """

    def __init__(self, level='INFO'):
        super().__init__()
        self.max_level = logging.getLevelName(level) if isinstance(level, str) else level

    def filter(self, record):
        return record.levelno <= self.max_level


class JSONFormatter(logging.Formatter):
    """
    Format log records as one JSON line.

    Structured context travels on the record as ``record.context`` (set by
    ``StructuredLogger``); plain ``logging`` calls from Django and third-party
    code are rendered with their ``extra`` keys folded into ``context``.
    """

    RESERVED_ATTRS = frozenset(
        logging.LogRecord('', 0, '', 0, '', (), None).__dict__.keys()
    ) | {'message', 'asctime', 'context'}

    def format(self, record):
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec='milliseconds').replace('+00:00', 'Z'),
            'level': LEVEL_NAMES.get(record.levelno, record.levelname.lower()),
            'message': PIIMasker.mask_text(record.getMessage()),
        }

        context = self._collect_context(record)
        if context:
            log_data['context'] = PIIMasker.mask_dict(context)

        if record.exc_info and record.exc_info[1] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            log_data['error'] = {
                'name': exc_type.__name__,
                'message': PIIMasker.mask_text(str(exc_value)),
                'stack': PIIMasker.mask_text(
                    ''.join(traceback.format_exception(exc_type, exc_value, exc_tb))
                ),
            }

        return json.dumps(log_data, default=str)

    def _collect_context(self, record):
        context = dict(getattr(record, 'context', None) or {})
        for key, value in record.__dict__.items():
            if key in self.RESERVED_ATTRS or key.startswith('_'):
                continue
            context.setdefault(key, value)
        return context


class StructuredLogger:
    """
    Thin error/warn/info/debug facade over a stdlib logger.

    ``context`` is an optional mapping attached to the line; ``exc`` is an
    optional exception whose name, message and traceback are rendered under
    ``error``. Emission is synchronous.
    """

    def __init__(self, logger):
        self._logger = logger

    @property
    def name(self):
        return self._logger.name

    def is_enabled_for(self, level_name):
        return self._logger.isEnabledFor(parse_level(level_name))

    def error(self, message, context=None, exc=None):
        self._log(logging.ERROR, message, context, exc)

    def warn(self, message, context=None, exc=None):
        self._log(logging.WARNING, message, context, exc)

    def info(self, message, context=None):
        self._log(logging.INFO, message, context)

    def debug(self, message, context=None):
        self._log(logging.DEBUG, message, context)

    def _log(self, level, message, context=None, exc=None):
        if not self._logger.isEnabledFor(level):
            return
        exc_info = (type(exc), exc, exc.__traceback__) if exc is not None else None
        self._logger.log(
            level,
            message,
            exc_info=exc_info,
            extra={'context': dict(context) if context else {}},
        )


def get_logger(name):
    """Return the structured logger for ``name`` (usually ``__name__``)."""
    return StructuredLogger(logging.getLogger(name))
