"""Aggregator configuration: per-store platform connections and their stats."""

import logging
from datetime import datetime, time, timezone
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderhub.core.errors import ConflictingMapping, InvalidState, NotFound
from orderhub.db.base import utcnow
from orderhub.models.aggregator import (
    Aggregator, AggregatorOrder, AggregatorOrderStatus, AggregatorStatus,
)
from orderhub.models.store import Store
from orderhub.schemas.aggregator import AggregatorCreate, AggregatorStats, AggregatorUpdate
from orderhub.services.mapping_store import CatalogMappingStore
from orderhub.services.ticketing import as_utc, store_zone

logger = logging.getLogger(__name__)


class AggregatorService:
    """Create, configure, enable and remove aggregator connections."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, aggregator_id: int) -> Aggregator:
        aggregator = self.db.get(Aggregator, aggregator_id)
        if not aggregator:
            raise NotFound("Aggregator", aggregator_id)
        return aggregator

    def list_by_store(self, store_id: int) -> List[Aggregator]:
        return self.db.query(Aggregator).filter(
            Aggregator.store_id == store_id
        ).order_by(Aggregator.platform).all()

    def get_by_platform(self, store_id: int, platform: str) -> Optional[Aggregator]:
        return self.db.query(Aggregator).filter(
            Aggregator.store_id == store_id,
            Aggregator.platform == platform,
        ).first()

    def find_for_webhook(self, platform: str, restaurant_id: str) -> Optional[Aggregator]:
        """Aggregator a platform's webhook belongs to, by the platform's outlet id."""
        return self.db.query(Aggregator).filter(
            Aggregator.platform == platform,
            Aggregator.restaurant_id == restaurant_id,
        ).first()

    def _ensure_restaurant_free(
        self, platform: str, restaurant_id: Optional[str], aggregator_id: Optional[int] = None
    ) -> None:
        """Refuse an outlet id another store already uses on this platform."""
        if not restaurant_id:
            return
        owner = self.find_for_webhook(platform, restaurant_id)
        if owner is not None and owner.id != aggregator_id:
            raise ConflictingMapping(
                f"Restaurant ID {restaurant_id} is already connected to {platform} aggregator {owner.id}"
            )

    def create(self, data: AggregatorCreate) -> Aggregator:
        """Create a disabled, inactive aggregator for (store, platform)."""
        if not self.db.get(Store, data.store_id):
            raise NotFound("Store", data.store_id)
        platform = data.platform.value
        if self.get_by_platform(data.store_id, platform) is not None:
            raise ConflictingMapping(f"Aggregator {platform} already exists for this store")

        credentials = data.credentials.model_dump(exclude_unset=True) if data.credentials else {}
        self._ensure_restaurant_free(platform, credentials.get("restaurant_id"))
        aggregator = Aggregator(
            store_id=data.store_id,
            platform=platform,
            is_enabled=False,
            status=AggregatorStatus.INACTIVE,
            webhook_url=data.webhook_url,
            **credentials,
        )
        try:
            self.db.add(aggregator)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictingMapping(f"Aggregator {platform} conflicts with an existing connection") from e
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(aggregator)
        logger.info(f"Created {platform} aggregator {aggregator.id} for store {data.store_id}")
        return aggregator

    def update(self, aggregator_id: int, data: AggregatorUpdate) -> Aggregator:
        """Apply only the fields present; credentials merge field by field."""
        aggregator = self.get(aggregator_id)
        platform = aggregator.platform
        changes = data.model_dump(exclude_unset=True)

        credentials = changes.pop("credentials", None) or {}
        if "restaurant_id" in credentials:
            self._ensure_restaurant_free(platform, credentials["restaurant_id"], aggregator.id)
        for key, value in credentials.items():
            setattr(aggregator, key, value)
        if "webhook_url" in changes:
            aggregator.webhook_url = changes["webhook_url"]
        if changes.get("status") is not None:
            aggregator.status = changes["status"]

        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictingMapping(f"Restaurant ID is already connected to another {platform} aggregator") from e
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(aggregator)
        return aggregator

    def toggle_enabled(self, aggregator_id: int) -> Aggregator:
        aggregator = self.get(aggregator_id)
        aggregator.is_enabled = not aggregator.is_enabled
        aggregator.status = AggregatorStatus.ACTIVE if aggregator.is_enabled else AggregatorStatus.INACTIVE
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(aggregator)
        logger.info(
            f"Aggregator {aggregator.id} ({aggregator.platform}) "
            f"{'enabled' if aggregator.is_enabled else 'disabled'}"
        )
        return aggregator

    def touch_last_sync(self, aggregator_id: int, now: Optional[datetime] = None) -> Aggregator:
        aggregator = self.get(aggregator_id)
        aggregator.last_sync_at = as_utc(now or utcnow())
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(aggregator)
        return aggregator

    def remove(self, aggregator_id: int) -> None:
        """Delete an aggregator and its mappings.

        Orders already received keep referencing their aggregator, so an
        aggregator with order history can only be disabled.
        """
        aggregator = self.get(aggregator_id)
        order_count = self.db.query(func.count(AggregatorOrder.id)).filter(
            AggregatorOrder.aggregator_id == aggregator.id
        ).scalar() or 0
        if order_count:
            raise InvalidState(
                f"Aggregator {aggregator.id} has {order_count} orders; disable it instead of removing it"
            )
        try:
            # Mappings go with it through the relationship cascade
            self.db.delete(aggregator)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Removed aggregator {aggregator_id}")

    def stats(self, aggregator_id: int, now: Optional[datetime] = None) -> AggregatorStats:
        aggregator = self.get(aggregator_id)
        mappings = CatalogMappingStore(self.db)

        zone = store_zone(self.db.get(Store, aggregator.store_id))
        local_day = as_utc(now or utcnow()).astimezone(zone).date()
        day_start = datetime.combine(local_day, time(0), tzinfo=zone).astimezone(timezone.utc)

        today = self.db.query(AggregatorOrder).filter(
            AggregatorOrder.aggregator_id == aggregator.id,
            AggregatorOrder.created_at >= day_start,
        )
        orders_today = today.count()
        pending_orders = today.filter(
            AggregatorOrder.status == AggregatorOrderStatus.PENDING
        ).count()

        total_items = mappings.count_item_mappings(aggregator.id)
        mapped_items = mappings.count_item_mappings(aggregator.id, linked=True)
        total_categories = mappings.count_category_mappings(aggregator.id)
        mapped_categories = mappings.count_category_mappings(aggregator.id, linked=True)

        return AggregatorStats(
            total_items=total_items,
            mapped_items=mapped_items,
            unmapped_items=total_items - mapped_items,
            total_categories=total_categories,
            mapped_categories=mapped_categories,
            unmapped_categories=total_categories - mapped_categories,
            orders_today=orders_today,
            pending_orders=pending_orders,
        )
