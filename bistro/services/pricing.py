"""Line and bill pricing.

Works on anything shaped like a menu item (``price``, ``variations`` and
``add_ons`` each carrying ``name``/``price``) and anything shaped like an
order (``items`` with ``total_price``), so ORM rows and plain objects are
priced the same way.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from bistro.errors import InvalidQuantity, InvalidSelection

DEFAULT_TAX_RATE = 0.10


def money(x) -> float:
    """Round to 2dp as float for storage and display."""
    if x is None:
        x = 0
    return float(Decimal(str(x)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class LinePrice:
    item_price: float
    add_on_price: float
    total_price: float


@dataclass(frozen=True)
class BillTotals:
    subtotal: float
    tax: float
    total: float


def resolve_item_price(menu_item, selected_variation: str | None = None) -> float:
    if not selected_variation:
        return float(menu_item.price)
    for v in menu_item.variations or []:
        if v.name == selected_variation:
            return float(v.price)
    raise InvalidSelection(
        f"Variation '{selected_variation}' is not available for {menu_item.name}"
    )


def resolve_add_on_price(menu_item, selected_add_ons: Iterable[str] = ()) -> float:
    # unknown add-on names are skipped, not rejected
    wanted = set(selected_add_ons or ())
    return sum(float(a.price) for a in (menu_item.add_ons or []) if a.name in wanted)


def compute_line_total(
    menu_item,
    quantity: int,
    selected_variation: str | None = None,
    selected_add_ons: Iterable[str] = (),
) -> LinePrice:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidQuantity(f"Quantity must be a positive integer, got {quantity!r}")

    item_price = resolve_item_price(menu_item, selected_variation)
    add_on_price = resolve_add_on_price(menu_item, selected_add_ons)
    return LinePrice(
        item_price=item_price,
        add_on_price=add_on_price,
        total_price=quantity * (item_price + add_on_price),
    )


def order_subtotal(order) -> float:
    return sum(float(line.total_price) for line in order.items)


def compute_bill_totals(orders, tax_rate: float = DEFAULT_TAX_RATE, discount: float = 0.0) -> BillTotals:
    subtotal = sum(order_subtotal(o) for o in orders)
    tax = subtotal * tax_rate
    # not clamped: callers reject discounts above subtotal + tax
    total = subtotal + tax - float(discount or 0)
    return BillTotals(subtotal=subtotal, tax=tax, total=total)
