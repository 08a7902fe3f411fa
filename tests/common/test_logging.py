from __future__ import annotations

import logging

from jellysync.common import configure_logging, get_integration_logger


def test_configure_logging_sets_root_level() -> None:
    root = logging.getLogger()
    previous_level = root.level
    previous_handlers = list(root.handlers)
    try:
        configure_logging(level=logging.DEBUG, force=True)
        assert root.level == logging.DEBUG
        assert root.handlers
    finally:
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)


def test_integration_logger_is_namespaced_per_provider() -> None:
    logger = get_integration_logger("front")

    assert logger.name == "jellysync.integrations.front"
    assert logger.parent is logging.getLogger("jellysync.integrations")
