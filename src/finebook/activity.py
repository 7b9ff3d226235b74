# ABOUTME: Bounded activity feed for the Finebook ledger
# ABOUTME: Records human-readable mutation events, newest first

import datetime as dt
import logging
import uuid

from finebook.types import Activity, ActivityType, Ledger

logger = logging.getLogger(__name__)

MAX_ACTIVITIES = 10


def new_id() -> str:
    return uuid.uuid4().hex


def record_activity(
    ledger: Ledger,
    description: str,
    activity_type: ActivityType,
    date: dt.datetime | None = None,
    amount: float | None = None,
) -> Activity:
    """
    Prepend an activity to the ledger feed, evicting the oldest beyond the cap.

    Args:
        ledger: Ledger whose feed is updated in place
        description: Human-readable event text
        activity_type: Kind of event
        date: When it happened (default: now, UTC)
        amount: Optional money amount involved

    Returns:
        The recorded Activity
    """
    activity = Activity(
        id=new_id(),
        description=description,
        type=activity_type,
        date=date or dt.datetime.now(dt.timezone.utc),
        amount=amount,
    )
    ledger.activities.insert(0, activity)
    del ledger.activities[MAX_ACTIVITIES:]

    logger.debug(f"Activity recorded: {description}")
    return activity
