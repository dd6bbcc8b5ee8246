"""Unit tests for core.utils.logging_config (formatters and structured extras)."""
import sys
import os
import json
import logging

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'midcar'))

import pytest

from core.utils.logging_config import (
    JSONFormatter, DevelopmentFormatter, LogContext, log_with_context, attach_context,
)


class _ListHandler(logging.Handler):

    def __init__(self):
        super().__init__()
        self.records = []
        self.addFilter(attach_context)

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def capture():
    logger = logging.getLogger('midcar.tests.logging')
    handler = _ListHandler()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield logger, handler.records
    logger.removeHandler(handler)


class TestStructuredExtras:

    def test_log_context_stamps_records_inside_block(self, capture):
        logger, records = capture
        with LogContext(import_file='polizas.xlsx', user_id=3):
            logger.info('Parsing started')
        logger.info('After')

        assert records[0].extra == {'import_file': 'polizas.xlsx', 'user_id': 3}
        assert getattr(records[1], 'extra', None) is None

    def test_nested_contexts_merge(self, capture):
        logger, records = capture
        with LogContext(user_id=3):
            with LogContext(import_file='a.pdf'):
                logger.info('inner')
            logger.info('outer')
        assert records[0].extra == {'user_id': 3, 'import_file': 'a.pdf'}
        assert records[1].extra == {'user_id': 3}

    def test_log_with_context(self, capture):
        logger, records = capture
        with LogContext(user_id=7):
            log_with_context(logger, logging.INFO, 'Insurance import finished', new=2, errors=0)
        assert records[0].getMessage() == 'Insurance import finished'
        assert records[0].extra == {'user_id': 7, 'new': 2, 'errors': 0}
        assert records[0].funcName == 'test_log_with_context'

    def test_disabled_level_is_skipped(self, capture):
        logger, records = capture
        logger.setLevel(logging.WARNING)
        log_with_context(logger, logging.INFO, 'quiet', new=1)
        assert records == []


class TestFormatters:

    def _record(self, **extra):
        record = logging.LogRecord('midcar.insurance.routes', logging.INFO, __file__, 10,
                                   'Preview %s', ('ok',), None)
        if extra:
            record.extra = extra
        return record

    def test_json_puts_fields_top_level(self):
        entry = json.loads(JSONFormatter().format(self._record(user_id=3, import_file='pólizas.xlsx')))
        assert entry['message'] == 'Preview ok'
        assert entry['level'] == 'INFO'
        assert entry['user_id'] == 3
        assert entry['import_file'] == 'pólizas.xlsx'

    def test_development_line(self):
        line = DevelopmentFormatter().format(self._record(user_id=3))
        assert 'insurance.routes: Preview ok' in line
        assert line.endswith('[user_id=3]')
