"""Shared logging helpers for jellysync."""

from __future__ import annotations

import logging

INTEGRATION_LOGGER_NAME = "jellysync.integrations"


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with sensible defaults.

    Parameters mirror ``logging.basicConfig`` with a simplified contract: we default
    to INFO level and a terse format suitable for worker output. Pass ``force=True``
    to reconfigure during tests or specialised entry points.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )


def get_integration_logger(provider: str) -> logging.Logger:
    """Return the logger handed to the adapter instance of ``provider``."""

    return logging.getLogger(f"{INTEGRATION_LOGGER_NAME}.{provider}")
