"""Business-day ticket ("token") numbering for POS orders.

A business day starts at ``business_day_start_hour`` local time (06:00 by
default); an order placed at 05:30 still belongs to the previous day.

Two numbering modes:

* ``scan`` counts the store's POS orders created since the boundary and
  adds one. Two acceptances running at the same time can read the same
  count and hand out the same ticket.
* ``sequence`` keeps one ``TicketSequence`` row per store and business day
  and increments it under a row lock, so concurrent acceptances are
  serialized. The row is seeded from a scan the first time a day is
  seen, so orders created by other tools earlier that day still count.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderhub.core.config import settings
from orderhub.models.order import Order, TicketSequence
from orderhub.models.store import Store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BusinessDay:
    day: date
    starts_at: datetime  # UTC


def store_zone(store: Optional[Store]) -> ZoneInfo:
    """The store's own zone, else the configured platform zone."""
    if store is not None and store.timezone:
        try:
            return ZoneInfo(store.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                f"Store {store.id} has unknown timezone '{store.timezone}', using {settings.timezone}"
            )
    return ZoneInfo(settings.timezone)


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def business_day(moment: datetime, zone: ZoneInfo, start_hour: Optional[int] = None) -> BusinessDay:
    """Business day containing *moment* and the UTC instant it started."""
    if start_hour is None:
        start_hour = settings.business_day_start_hour
    local = as_utc(moment).astimezone(zone)
    day = local.date()
    if local.time() < time(start_hour):
        day -= timedelta(days=1)
    starts_at = datetime.combine(day, time(start_hour), tzinfo=zone)
    return BusinessDay(day=day, starts_at=starts_at.astimezone(timezone.utc))


class TicketAllocator:
    """Hands out the next ticket number for a store."""

    def __init__(self, db: Session, mode: Optional[str] = None):
        self.db = db
        self.mode = mode or settings.ticket_numbering

    def count_since(self, store_id: int, since: datetime) -> int:
        return self.db.query(func.count(Order.id)).filter(
            Order.store_id == store_id,
            Order.created_at >= since,
        ).scalar() or 0

    def next_number(self, store: Store, now: datetime) -> int:
        """Allocate a ticket inside the caller's transaction."""
        window = business_day(now, store_zone(store))
        if self.mode == "scan":
            return self.count_since(store.id, window.starts_at) + 1
        return self._next_from_sequence(store.id, window)

    def _lock_sequence(self, store_id: int, day: date) -> Optional[TicketSequence]:
        return self.db.query(TicketSequence).filter(
            TicketSequence.store_id == store_id,
            TicketSequence.business_day == day,
        ).with_for_update().first()

    def _next_from_sequence(self, store_id: int, window: BusinessDay) -> int:
        sequence = self._lock_sequence(store_id, window.day)
        if sequence is None:
            seed = self.count_since(store_id, window.starts_at)
            try:
                with self.db.begin_nested():
                    sequence = TicketSequence(
                        store_id=store_id, business_day=window.day, last_number=seed
                    )
                    self.db.add(sequence)
                    self.db.flush()
            except IntegrityError:
                # Another acceptance opened the day first; use its row
                sequence = self._lock_sequence(store_id, window.day)
                if sequence is None:
                    raise
        sequence.last_number += 1
        self.db.flush()
        return sequence.last_number
