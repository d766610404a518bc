import random
import time
import uuid

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from bistro.db import get_db
from bistro.deps import require_user, require_role, get_hub, get_dispatcher
from bistro.models.core import (
    DiningTable, MenuItem, Order, OrderItem, OrderStatus, ORDER_FLOW, TableStatus, User, UserRole,
)
from bistro.realtime import NotificationHub
from bistro.schemas.orders import OrderIn, AddItemsIn, OrderLineIn, StatusIn
from bistro.services.dispatch import PrintDispatcher
from bistro.services.pricing import compute_line_total, money
from bistro.services.printing import print_kitchen_ticket, ticket_line
from bistro.util.rows import order_row

router = APIRouter(prefix="/orders", tags=["orders"])

waiters = require_role(UserRole.WAITER, UserRole.ADMIN)


# --- helpers ---------------------------------------------------------------

def generate_order_number() -> str:
    stamp = str(int(time.time() * 1000))[-6:]
    return f"ORD-{stamp}{random.randint(0, 999):03d}"


def _get_order(db: Session, order_id: str) -> Order:
    o = db.get(Order, order_id)
    if not o:
        raise HTTPException(404, detail="Order not found")
    return o


def _get_table(db: Session, table_id: str) -> DiningTable:
    t = db.get(DiningTable, table_id)
    if not t or t.deleted_at is not None:
        raise HTTPException(404, detail="Table not found")
    return t


def _menu_item(db: Session, item_id: str) -> MenuItem:
    m = db.get(MenuItem, item_id)
    if not m or m.deleted_at is not None:
        raise HTTPException(404, detail=f"Menu item {item_id} not found")
    if not m.is_active:
        raise HTTPException(400, detail=f"{m.name} is not available")
    return m


def _price_line(db: Session, line: OrderLineIn, position: int = 0) -> OrderItem:
    """
    Build an order line with prices resolved from the menu.
    InvalidSelection / InvalidQuantity propagate and become a 400.
    """
    m = _menu_item(db, line.item_id)
    price = compute_line_total(m, line.quantity, line.selected_variation, line.add_ons)
    return OrderItem(
        item_id=m.id,
        menu_item=m,
        position=position,
        quantity=line.quantity,
        notes=(line.notes or "").strip() or None,
        selected_variation=line.selected_variation or None,
        add_ons=list(line.add_ons or []),
        item_price=price.item_price,
        add_on_price=price.add_on_price,
        total_price=price.total_price,
    )


def _same_config(a: OrderItem, b: OrderItem) -> bool:
    return (
        a.item_id == b.item_id
        and (a.selected_variation or None) == (b.selected_variation or None)
        and sorted(a.add_ons or []) == sorted(b.add_ons or [])
        and (a.notes or None) == (b.notes or None)
    )


async def _print_ticket(db: Session, dispatcher: PrintDispatcher, order: Order, lines=None) -> bool:
    # device I/O off the event loop; a failed print never fails the request
    return await run_in_threadpool(print_kitchen_ticket, db, dispatcher, order, lines)


# --- routes ----------------------------------------------------------------

@router.post("/", status_code=201)
async def create_order(
    body: OrderIn,
    db: Session = Depends(get_db),
    user: User = Depends(waiters),
    hub: NotificationHub = Depends(get_hub),
    dispatcher: PrintDispatcher = Depends(get_dispatcher),
):
    table = _get_table(db, body.table_id)
    lines = [_price_line(db, line, i) for i, line in enumerate(body.items)]

    order = Order(
        table_id=table.id,
        order_number=generate_order_number(),
        status=OrderStatus.PENDING,
        waiter_id=user.id,
        session_id=body.session_id or str(uuid.uuid4()),
        items=lines,
        total_amount=money(sum(l.total_price for l in lines)),
    )
    db.add(order)
    table.status = TableStatus.OCCUPIED
    db.commit()
    db.refresh(order)

    out = order_row(order)
    await hub.publish("newOrder", out)
    await hub.publish("tableStatusUpdate", {"table_id": table.id, "status": table.status.value})

    out["printed"] = await _print_ticket(db, dispatcher, order)
    return out


@router.post("/{order_id}/add-items")
async def add_items(
    order_id: str,
    body: AddItemsIn,
    db: Session = Depends(get_db),
    user: User = Depends(waiters),
    hub: NotificationHub = Depends(get_hub),
    dispatcher: PrintDispatcher = Depends(get_dispatcher),
):
    """
    Add lines to an open order. A line identical to an existing one (same
    item, variation, add-ons and notes) bumps that line's quantity instead.
    Only the added quantities go to the kitchen.
    """
    order = _get_order(db, order_id)
    if order.is_billed:
        raise HTTPException(400, detail="Cannot add items to a billed order")

    printed_lines = []
    for line in body.items:
        new = _price_line(db, line, position=len(order.items))
        existing = next((it for it in order.items if _same_config(it, new)), None)
        if existing is not None:
            qty = existing.quantity + new.quantity
            price = compute_line_total(existing.menu_item, qty, existing.selected_variation, existing.add_ons)
            existing.quantity = qty
            existing.item_price = price.item_price
            existing.add_on_price = price.add_on_price
            existing.total_price = price.total_price
            printed_lines.append(ticket_line(existing, quantity=new.quantity))
        else:
            order.items.append(new)
            printed_lines.append(ticket_line(new))

    order.total_amount = money(sum(float(it.total_price) for it in order.items))
    db.commit()
    db.refresh(order)

    out = order_row(order)
    await hub.publish("orderUpdated", out)
    out["printed"] = await _print_ticket(db, dispatcher, order, printed_lines)
    return out


@router.get("/")
def list_orders(
    status: str | None = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    q = db.query(Order)
    if status:
        try:
            q = q.filter(Order.status == OrderStatus(status))
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid status")
    rows = q.order_by(Order.created_at.desc()).limit(max(1, min(limit, 500))).all()
    return [order_row(o) for o in rows]


@router.get("/table/{table_id}")
def orders_by_table(
    table_id: str,
    status: str | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    q = db.query(Order).filter(Order.table_id == table_id)
    if status:
        try:
            q = q.filter(Order.status == OrderStatus(status))
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid status")
    return [order_row(o) for o in q.order_by(Order.created_at.desc()).all()]


@router.get("/table/{table_id}/active")
def active_order_for_table(table_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    # not billed and not served yet, so items can still be added
    o = (
        db.query(Order)
        .filter(Order.table_id == table_id, Order.is_billed.is_(False), Order.status != OrderStatus.SERVED)
        .order_by(Order.created_at.desc())
        .first()
    )
    if not o:
        raise HTTPException(404, detail="No active order found for this table")
    return order_row(o)


@router.get("/table/{table_id}/session/{session_id}")
def orders_by_session(table_id: str, session_id: str, db: Session = Depends(get_db),
                      user: User = Depends(require_user)):
    rows = (
        db.query(Order)
        .filter(Order.table_id == table_id, Order.session_id == session_id)
        .order_by(Order.created_at.desc())
        .all()
    )
    return [order_row(o) for o in rows]


@router.get("/{order_id}")
def get_order(order_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    return order_row(_get_order(db, order_id))


@router.put("/{order_id}/status")
async def update_status(
    order_id: str,
    body: StatusIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_role(UserRole.KITCHEN, UserRole.WAITER, UserRole.ADMIN)),
    hub: NotificationHub = Depends(get_hub),
):
    order = _get_order(db, order_id)
    new_status = OrderStatus(body.status)

    # workflow only moves forward
    if ORDER_FLOW.index(new_status) < ORDER_FLOW.index(order.status):
        raise HTTPException(
            400,
            detail=f"Cannot change status from {order.status.value} to {new_status.value}. "
                   "Status can only progress forward.",
        )
    if order.is_billed:
        raise HTTPException(400, detail="Cannot change status of billed orders")

    order.status = new_status
    table_update = None
    if new_status == OrderStatus.SERVED:
        db.flush()
        still_open = (
            db.query(Order)
            .filter(Order.table_id == order.table_id, Order.is_billed.is_(False),
                    Order.status != OrderStatus.SERVED)
            .count()
        )
        if still_open == 0:
            table = db.get(DiningTable, order.table_id)
            table.status = TableStatus.WAITING_FOR_BILL
            table_update = {"table_id": table.id, "status": table.status.value}
    db.commit()
    db.refresh(order)

    out = order_row(order)
    if table_update:
        await hub.publish("tableStatusUpdate", table_update)
    await hub.publish("orderStatusUpdate", out)
    return out


@router.post("/{order_id}/print")
async def print_order(
    order_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_role(UserRole.WAITER, UserRole.KITCHEN, UserRole.ADMIN)),
    dispatcher: PrintDispatcher = Depends(get_dispatcher),
):
    order = _get_order(db, order_id)
    return {"printed": await _print_ticket(db, dispatcher, order)}
