"""Shared Neo4j driver for the graph storage backend."""

from __future__ import annotations

import threading
from typing import Optional

from neo4j import AsyncDriver, AsyncGraphDatabase

from agent_memory.core.config import Settings, settings as default_settings

REQUIRED_NEO4J_SETTINGS = ("NEO4J_URI", "NEO4J_USERNAME", "NEO4J_PASSWORD")

_driver: AsyncDriver | None = None
_driver_lock = threading.Lock()


def get_neo4j_driver(app_settings: Optional[Settings] = None) -> AsyncDriver:
    """Process-wide AsyncDriver, created from settings on first use.

    Raises:
        ValueError: If the URI or credentials are not configured
    """
    global _driver
    if _driver is not None:
        return _driver

    app_settings = app_settings or default_settings
    with _driver_lock:
        if _driver is None:
            missing = [key for key in REQUIRED_NEO4J_SETTINGS if not getattr(app_settings, key)]
            if missing:
                raise ValueError(f"Neo4j backend is not configured, missing: {', '.join(missing)}")
            _driver = AsyncGraphDatabase.driver(
                app_settings.NEO4J_URI,
                auth=(app_settings.NEO4J_USERNAME, app_settings.NEO4J_PASSWORD),
                connection_timeout=60,
                max_transaction_retry_time=60,
                keep_alive=True,
            )
    return _driver


async def close_neo4j_driver() -> None:
    global _driver
    with _driver_lock:
        driver, _driver = _driver, None
    if driver is not None:
        await driver.close()
