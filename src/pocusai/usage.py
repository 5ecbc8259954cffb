"""Aggregate usage counters for the administration dashboard."""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from .models import UsageCounters
from .storage import USAGE_COUNTERS_KEY, Storage

logger = logging.getLogger(__name__)

UNCATEGORIZED = "General Query"

SEED_TOPIC_COUNTS = {
    "Intussusception": 12,
    "Appendicitis": 8,
    "eFAST": 15,
    "Pneumothorax": 7,
    "Pneumonia": 5,
    "AAA": 4,
    "DVT": 9,
}
SEED_HOURLY_USAGE = {9: 5, 10: 12, 11: 8, 14: 15, 15: 10, 16: 6, 20: 4}
SEED_TOTAL_MESSAGES = 60


def seed_counters() -> UsageCounters:
    return UsageCounters(
        topic_counts=dict(SEED_TOPIC_COUNTS),
        hourly_usage=dict(SEED_HOURLY_USAGE),
        total_messages=SEED_TOTAL_MESSAGES,
    )


class UsageCounter:
    """Best-effort counters; concurrent writers may lose increments."""

    def __init__(self, storage: Storage, clock: Callable[[], datetime] = datetime.now):
        self.storage = storage
        # Local wall clock, used for the hour-of-day bucket.
        self._clock = clock

    def snapshot(self) -> UsageCounters:
        """Returns the current counters, seeding them on first access."""
        raw = self.storage.get(USAGE_COUNTERS_KEY)
        if raw is not None:
            try:
                return UsageCounters.model_validate(raw)
            except ValidationError as e:
                logger.warning("Stored usage counters are invalid, reseeding: %s", e)

        counters = seed_counters()
        self.storage.set(USAGE_COUNTERS_KEY, counters.to_record())
        return counters

    def record_event(self, topic: Optional[str] = None) -> None:
        counters = self.snapshot()
        now = self._clock()
        hour = now.hour

        counters.total_messages += 1
        counters.last_active = now.astimezone(timezone.utc)
        counters.hourly_usage[hour] = counters.hourly_usage.get(hour, 0) + 1
        label = topic or UNCATEGORIZED
        counters.topic_counts[label] = counters.topic_counts.get(label, 0) + 1

        self.storage.set(USAGE_COUNTERS_KEY, counters.to_record())
