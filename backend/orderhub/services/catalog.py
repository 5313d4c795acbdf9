"""Read-only lookups against the store's POS catalog."""

from typing import Optional

from sqlalchemy.orm import Session

from orderhub.core.errors import InvalidState, NotFound
from orderhub.models.store import Counter, ItemVariation, MenuItem


def get_menu_item(db: Session, store_id: int, menu_item_id: int) -> MenuItem:
    item = db.get(MenuItem, menu_item_id)
    if not item or item.store_id != store_id:
        raise NotFound("Menu item", menu_item_id)
    return item


def get_variation(db: Session, menu_item: MenuItem, variation_id: int) -> ItemVariation:
    variation = db.get(ItemVariation, variation_id)
    if not variation or variation.menu_item_id != menu_item.id:
        raise NotFound("Item variation", variation_id)
    return variation


def get_counter(db: Session, store_id: int, counter_id: int) -> Counter:
    counter = db.get(Counter, counter_id)
    if not counter or counter.store_id != store_id:
        raise NotFound("Counter", counter_id)
    return counter


def check_pos_link(
    db: Session,
    store_id: int,
    pos_item_id: Optional[int],
    pos_variation_id: Optional[int],
) -> None:
    """Validate that a POS item / variation pair belongs to *store_id*."""
    if pos_item_id is None:
        if pos_variation_id is not None:
            raise InvalidState("A variation can only be mapped together with its POS item")
        return
    item = get_menu_item(db, store_id, pos_item_id)
    if pos_variation_id is not None:
        get_variation(db, item, pos_variation_id)
