"""
Tests for structured logging and PII masking.
"""
import io
import json
import logging
from django.test import SimpleTestCase
from apps.core.logging import (
    JSONFormatter,
    MaxLevelFilter,
    PIIMasker,
    StructuredLogger,
    get_logger,
    parse_level,
)


class ListHandler(logging.Handler):
    """Collects formatted lines in memory."""

    def __init__(self):
        super().__init__()
        self.setFormatter(JSONFormatter())
        self.lines = []

    def emit(self, record):
        self.lines.append(json.loads(self.format(record)))


class PIIMaskerTestCase(SimpleTestCase):
    """Test PII masking functionality."""

    def test_mask_email_addresses(self):
        text = "Contact user@example.com or admin@test.org"
        masked = PIIMasker.mask_email(text)

        self.assertIn("u***@example.com", masked)
        self.assertNotIn("user@example.com", masked)
        self.assertIn("a****@test.org", masked)

    def test_mask_secrets_in_text(self):
        text = 'password="hunter2" and token=abc123'
        masked = PIIMasker.mask_text(text)

        self.assertNotIn("hunter2", masked)
        self.assertNotIn("abc123", masked)
        self.assertIn("password: ********", masked)

    def test_mask_dict_sensitive_fields(self):
        data = {
            'email': 'john@example.com',
            'new_password': 'Correct-Horse-42',
            'nested': {'token': 'abc', 'count': 3},
            'items': [{'secret': 'x'}, 'jane@example.com'],
        }
        masked = PIIMasker.mask_dict(data)

        self.assertEqual(masked['email'], 'j***@example.com')
        self.assertEqual(masked['new_password'], '********')
        self.assertEqual(masked['nested'], {'token': '********', 'count': 3})
        self.assertEqual(masked['items'], [{'secret': '********'}, 'j***@example.com'])


class StructuredLoggerTestCase(SimpleTestCase):
    """Test the JSON line shape and the level threshold."""

    def setUp(self):
        self.stdlib_logger = logging.getLogger('apps.tests.structured')
        self.stdlib_logger.propagate = False
        self.handler = ListHandler()
        self.stdlib_logger.handlers = [self.handler]
        self.stdlib_logger.setLevel(logging.INFO)
        self.logger = StructuredLogger(self.stdlib_logger)

    def tearDown(self):
        self.stdlib_logger.handlers = []

    def test_info_line(self):
        self.logger.info("Workflow created", {'workflow_id': 'w1'})

        line = self.handler.lines[0]
        self.assertEqual(set(line), {'timestamp', 'level', 'message', 'context'})
        self.assertEqual(line['level'], 'info')
        self.assertEqual(line['message'], 'Workflow created')
        self.assertEqual(line['context'], {'workflow_id': 'w1'})
        self.assertTrue(line['timestamp'].endswith('Z'))

    def test_context_and_error_are_optional(self):
        self.logger.warn("Plain")

        self.assertEqual(set(self.handler.lines[0]), {'timestamp', 'level', 'message'})
        self.assertEqual(self.handler.lines[0]['level'], 'warn')

    def test_error_carries_exception(self):
        try:
            raise KeyError('missing')
        except KeyError as exc:
            self.logger.error("Lookup failed", {'key': 'missing'}, exc)

        error = self.handler.lines[0]['error']
        self.assertEqual(error['name'], 'KeyError')
        self.assertIn('missing', error['message'])
        self.assertIn('Traceback', error['stack'])

    def test_below_threshold_is_dropped(self):
        self.logger.debug("Too chatty", {'n': 1})

        self.assertEqual(self.handler.lines, [])
        self.assertFalse(self.logger.is_enabled_for('debug'))
        self.assertTrue(self.logger.is_enabled_for('error'))

    def test_debug_threshold_emits_one_line(self):
        stream = io.StringIO()
        stream_handler = logging.StreamHandler(stream)
        stream_handler.setFormatter(JSONFormatter())
        self.stdlib_logger.handlers = [stream_handler]
        self.stdlib_logger.setLevel(parse_level('debug'))

        self.logger.debug("Cache warmed", {'keys': 12})

        lines = stream.getvalue().splitlines()
        self.assertEqual(len(lines), 1)
        line = json.loads(lines[0])
        self.assertEqual(line['level'], 'debug')
        self.assertEqual(line['message'], 'Cache warmed')
        self.assertEqual(line['context'], {'keys': 12})

    def test_context_is_masked(self):
        self.logger.info("Signed in", {'email': 'someone@example.com', 'password': 'x'})

        context = self.handler.lines[0]['context']
        self.assertEqual(context['email'], 's******@example.com')
        self.assertEqual(context['password'], '********')

    def test_plain_logging_extra_is_folded_into_context(self):
        self.stdlib_logger.warning("Legacy call", extra={'path': '/v1/health'})

        self.assertEqual(self.handler.lines[0]['context'], {'path': '/v1/health'})

    def test_get_logger(self):
        self.assertEqual(get_logger('apps.workflows').name, 'apps.workflows')


class LevelTestCase(SimpleTestCase):

    def test_parse_level(self):
        self.assertEqual(parse_level('warn'), logging.WARNING)
        self.assertEqual(parse_level(' DEBUG '), logging.DEBUG)
        self.assertEqual(parse_level('verbose'), logging.INFO)
        self.assertEqual(parse_level(None, default='error'), logging.ERROR)

    def test_max_level_filter(self):
        record_filter = MaxLevelFilter('INFO')
        info = logging.LogRecord('x', logging.INFO, '', 0, 'm', (), None)
        warning = logging.LogRecord('x', logging.WARNING, '', 0, 'm', (), None)

        self.assertTrue(record_filter.filter(info))
        self.assertFalse(record_filter.filter(warning))
