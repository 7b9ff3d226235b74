# ABOUTME: Tests for the Finebook activity feed
# ABOUTME: Ordering and the ten-entry cap

import datetime as dt

from finebook.activity import MAX_ACTIVITIES, record_activity
from finebook.types import ActivityType, Ledger


class TestRecordActivity:
    """Test the bounded activity feed."""

    def test_newest_first(self):
        ledger = Ledger()
        record_activity(ledger, "first", ActivityType.MEMBER)
        record_activity(ledger, "second", ActivityType.FINE, amount=10)

        assert [a.description for a in ledger.activities] == ["second", "first"]
        assert ledger.activities[0].amount == 10
        assert ledger.activities[1].amount is None

    def test_capped_at_ten(self):
        ledger = Ledger()
        for i in range(MAX_ACTIVITIES + 5):
            record_activity(ledger, f"event {i}", ActivityType.PAYMENT)

        assert len(ledger.activities) == MAX_ACTIVITIES
        assert ledger.activities[0].description == "event 14"
        assert ledger.activities[-1].description == "event 5"

    def test_ids_are_unique(self):
        ledger = Ledger()
        for _ in range(5):
            record_activity(ledger, "x", ActivityType.CATEGORY)
        assert len({a.id for a in ledger.activities}) == 5

    def test_explicit_date(self):
        when = dt.datetime(2025, 9, 1, 18, 30, tzinfo=dt.timezone.utc)
        activity = record_activity(Ledger(), "x", activity_type=ActivityType.ICS, date=when)
        assert activity.date == when
        assert activity.type == ActivityType.ICS
