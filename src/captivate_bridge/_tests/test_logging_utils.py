from __future__ import annotations

import logging

from captivate_bridge.host import InstanceStatus, LoggingConsoleHost
from captivate_bridge.logging_utils import maybe_enable_debug_logger


def test_debug_logger_disabled_without_flags(monkeypatch):
    monkeypatch.delenv('CAPTIVATE_BRIDGE_DEBUG', raising=False)
    monkeypatch.delenv('CAPTIVATE_BRIDGE_TEST_DEBUG', raising=False)
    logger = logging.getLogger('captivate_bridge.tests.quiet')
    assert maybe_enable_debug_logger(logger, 'CAPTIVATE_BRIDGE_TEST_DEBUG') is False
    assert logger.handlers == []


def test_module_flag_attaches_single_local_handler(monkeypatch):
    monkeypatch.delenv('CAPTIVATE_BRIDGE_DEBUG', raising=False)
    monkeypatch.setenv('CAPTIVATE_BRIDGE_TEST_DEBUG', 'yes')
    logger = logging.getLogger('captivate_bridge.tests.verbose')
    try:
        assert maybe_enable_debug_logger(logger, 'CAPTIVATE_BRIDGE_TEST_DEBUG') is True
        assert maybe_enable_debug_logger(logger, 'CAPTIVATE_BRIDGE_TEST_DEBUG') is True
        local = [h for h in logger.handlers if getattr(h, '_captivate_bridge_local', False)]
        assert len(local) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)


def test_logging_console_host_records_state(caplog):
    host = LoggingConsoleHost()
    with caplog.at_level(logging.INFO, logger='captivate_bridge.host'):
        host.update_status(InstanceStatus.BAD_CONFIG, 'connection refused')
        host.set_definitions('actions', {'a': {}})
    host.check_feedbacks()

    assert host.status is InstanceStatus.BAD_CONFIG
    assert host.status_message == 'connection refused'
    assert host.definitions == {'actions': {'a': {}}}
    assert host.feedback_checks == 1
    assert 'connection refused' in caplog.text
