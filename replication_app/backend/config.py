"""
Environment-driven settings for the replication tracker.

The database URL is resolved in :mod:`replication_app.backend.database`;
this module covers the remaining knobs: logging, the API and dashboard
ports, and the connection settings for the background job queue.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

DEFAULT_REDIS_URL = 'redis://127.0.0.1'


@dataclass(frozen=True)
class QueueSettings:
    """Connection settings for the Redis instance backing the job queue."""

    host: str
    port: int
    password: Optional[str] = None
    db: int = 0


def get_queue_settings() -> QueueSettings:
    """Parse ``REDIS_URL`` (or ``REDISTOGO_URL``) into queue settings."""
    url = os.getenv('REDIS_URL') or os.getenv('REDISTOGO_URL') or DEFAULT_REDIS_URL
    parsed = urlparse(url)
    db = 0
    path = (parsed.path or '').lstrip('/')
    if path.isdigit():
        db = int(path)
    return QueueSettings(
        host=parsed.hostname or '127.0.0.1',
        port=parsed.port or 6379,
        password=parsed.password,
        db=db,
    )


def get_api_host() -> str:
    return os.getenv('API_HOST', '0.0.0.0')


def get_api_port() -> int:
    return int(os.getenv('API_PORT', '8001'))


def get_dashboard_port() -> int:
    return int(os.getenv('DASHBOARD_PORT', '8000'))


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging from ``level`` or the ``LOG_LEVEL`` variable."""
    name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
