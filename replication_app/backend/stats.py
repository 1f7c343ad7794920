"""
Aggregate statistics over the stored records.

For each reported model the report gives the total row count and the
number of rows created and updated within the last day.  The report
is read-only and is served by the admin endpoint and shown on the
dashboard.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

import pandas as pd  # type: ignore
from sqlalchemy.orm import Session

from .models import REPORTED_MODELS, utcnow

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=1)


def get_stats(session: Session, model: Any, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Return ``{total, last_day: {created, updated}}`` for one model."""
    since = (now or utcnow()) - RECENT_WINDOW
    return {
        'total': session.query(model).count(),
        'last_day': {
            'created': session.query(model).filter(model.created_at > since).count(),
            'updated': session.query(model).filter(model.updated_at > since).count(),
        },
    }


def get_db_stats(
    session: Session,
    models: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Dict[str, Any]]:
    """Build the statistics report keyed by model name.

    Args:
        session: Open database session.
        models: Optional mapping of report key to model class; defaults
            to every reported model.
        now: Reference time for the one-day window (naive UTC).

    Returns:
        A dictionary such as ``{'studies': {'total': 3, 'last_day':
        {'created': 1, 'updated': 2}}, ...}``.
    """
    now = now or utcnow()
    models = models if models is not None else REPORTED_MODELS
    stats = {name: get_stats(session, model, now=now) for name, model in models.items()}
    logger.info(f"Computed database stats for {len(stats)} models")
    return stats


def stats_to_frame(stats: Mapping[str, Mapping[str, Any]]) -> pd.DataFrame:
    """Flatten a stats report into one DataFrame row per model."""
    rows = [
        {
            'model': name,
            'total': entry.get('total', 0),
            'created_last_day': entry.get('last_day', {}).get('created', 0),
            'updated_last_day': entry.get('last_day', {}).get('updated', 0),
        }
        for name, entry in stats.items()
    ]
    df = pd.DataFrame(rows, columns=['model', 'total', 'created_last_day', 'updated_last_day'])
    return df.set_index('model')
