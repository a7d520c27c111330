"""
Cart snapshot serialization and rehydration
"""
import math
from typing import Dict, Any, Optional

import structlog

from models.cart import CartState, CartLineItem, CartAddon, DeliveryType, generate_line_id
from .cart_selectors import clamp_tip

log = structlog.get_logger()

_DELIVERY_TYPES = {dt.value for dt in DeliveryType}


def serialize_cart_state(state: CartState) -> Dict[str, Any]:
    # Only the long-lived fields are persisted; promo, coupon, tip and payment are per visit
    return {
        "items": [item.to_dict() for item in state.items],
        "location_id": state.location_id,
        "delivery_type": state.delivery_type
    }


def _is_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value) and not math.isinf(value)


def _parse_addon(data) -> Optional[CartAddon]:
    if not isinstance(data, dict) or not _is_number(data.get("price")):
        return None
    return CartAddon(id=str(data.get("id", "")), name=str(data.get("name", "")), price=float(data["price"]))


def parse_line_item(data) -> Optional[CartLineItem]:
    """Build a line item from stored data, or None when the data is unusable."""
    if not isinstance(data, dict):
        return None

    product_id = data.get("product_id")
    if not product_id or not isinstance(product_id, str):
        return None
    if not _is_number(data.get("price")):
        return None

    quantity = data.get("quantity", 1)
    if not _is_number(quantity) or int(quantity) < 1:
        return None

    variant_price = data.get("variant_price")
    if variant_price is not None and not _is_number(variant_price):
        return None

    addons = []
    for raw_addon in data.get("addons") or []:
        addon = _parse_addon(raw_addon)
        if addon is None:
            return None
        addons.append(addon)

    spice_level = data.get("spice_level")
    if spice_level not in (1, 2, 3):
        spice_level = None

    variant_id = data.get("variant_id")
    item_id = data.get("id") or generate_line_id(product_id, variant_id, spice_level, addons)

    return CartLineItem(
        id=str(item_id),
        product_id=product_id,
        name=str(data.get("name", "")),
        price=float(data["price"]),
        quantity=int(quantity),
        addons=addons,
        variant_id=variant_id,
        variant_name=data.get("variant_name"),
        variant_price=float(variant_price) if variant_price is not None else None,
        spice_level=spice_level,
        notes=data.get("notes"),
        image=data.get("image")
    )


def rehydrate_cart_state(data: Any) -> CartState:
    """Rebuild a CartState from a stored snapshot.

    Malformed items are dropped, an unknown delivery type falls back to the
    default and a stored tip is clamped into its legal range.
    """
    state = CartState()
    if not isinstance(data, dict):
        return state

    for raw_item in data.get("items") or []:
        item = parse_line_item(raw_item)
        if item is None:
            log.warning("cart_item_dropped", item=raw_item if isinstance(raw_item, dict) else repr(raw_item))
            continue
        state.items.append(item)

    location_id = data.get("location_id")
    state.location_id = str(location_id) if location_id else None

    if data.get("delivery_type") in _DELIVERY_TYPES:
        state.delivery_type = data["delivery_type"]

    state.tip = clamp_tip(data.get("tip", 0))
    return state
