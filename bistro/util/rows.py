# JSON shapes returned by the API (and pushed over the socket).
from datetime import datetime

from bistro.models.core import (
    Bill, Customer, CreditTransaction, DiningTable, Expense, MenuItem, Order, OrderItem, Printer, User,
)


def _ts(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat()


def _val(enum_or_str):
    return getattr(enum_or_str, "value", enum_or_str)


def user_row(u: User) -> dict:
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "role": _val(u.role),
        "notification_settings": {"sound_enabled": bool(u.sound_enabled), "volume": u.volume},
        "created_at": _ts(u.created_at),
    }


def table_row(t: DiningTable) -> dict:
    return {"id": t.id, "table_number": t.table_number, "status": _val(t.status)}


def menu_row(m: MenuItem) -> dict:
    return {
        "id": m.id,
        "name": m.name,
        "price": float(m.price),
        "category": _val(m.category),
        "description": m.description,
        "is_active": bool(m.is_active),
        "variations": [{"name": v.name, "price": float(v.price)} for v in m.variations],
        "add_ons": [{"name": a.name, "price": float(a.price)} for a in m.add_ons],
        "created_at": _ts(m.created_at),
        "updated_at": _ts(m.updated_at),
    }


def order_item_row(it: OrderItem) -> dict:
    return {
        "id": it.id,
        "item_id": it.item_id,
        "name": it.menu_item.name if it.menu_item else "Unknown Item",
        "quantity": it.quantity,
        "notes": it.notes,
        "selected_variation": it.selected_variation,
        "add_ons": list(it.add_ons or []),
        "item_price": float(it.item_price),
        "add_on_price": float(it.add_on_price),
        "total_price": float(it.total_price),
    }


def order_row(o: Order) -> dict:
    return {
        "id": o.id,
        "order_number": o.order_number,
        "table_id": o.table_id,
        "table_number": o.table.table_number if o.table else None,
        "status": _val(o.status),
        "waiter_id": o.waiter_id,
        "waiter": o.waiter.name if o.waiter else None,
        "session_id": o.session_id,
        "items": [order_item_row(it) for it in o.items],
        "total_amount": float(o.total_amount or 0),
        "is_billed": bool(o.is_billed),
        "billed_at": _ts(o.billed_at),
        "bill_id": o.bill_id,
        "created_at": _ts(o.created_at),
        "updated_at": _ts(o.updated_at),
    }


def bill_row(b: Bill, with_orders: bool = True) -> dict:
    out = {
        "id": b.id,
        "bill_number": b.bill_number,
        "table_id": b.table_id,
        "table_number": b.table.table_number if b.table else None,
        "order_ids": [o.id for o in b.orders],
        "subtotal": float(b.subtotal),
        "tax": float(b.tax),
        "discount": float(b.discount or 0),
        "tax_rate": float(b.tax_rate) if b.tax_rate is not None else None,
        "total": float(b.total),
        "payment_methods": [{"type": _val(p.method), "amount": float(p.amount)} for p in b.payments],
        "customer_id": b.customer_id,
        "credit_amount": float(b.credit_amount or 0),
        "created_at": _ts(b.created_at),
    }
    if with_orders:
        out["orders"] = [order_row(o) for o in b.orders]
    return out


def credit_tx_row(t: CreditTransaction) -> dict:
    return {
        "id": t.id,
        "type": _val(t.kind),
        "amount": float(t.amount),
        "bill_id": t.bill_id,
        "description": t.description,
        "created_at": _ts(t.created_at),
    }


def customer_row(c: Customer, with_history: bool = False) -> dict:
    out = {
        "id": c.id,
        "name": c.name,
        "phone": c.phone,
        "email": c.email,
        "address": c.address,
        "credit_balance": float(c.credit_balance or 0),
        "total_credit_given": float(c.total_credit_given or 0),
        "total_credit_paid": float(c.total_credit_paid or 0),
        "is_active": bool(c.is_active),
        "created_at": _ts(c.created_at),
    }
    if with_history:
        out["credit_transactions"] = [credit_tx_row(t) for t in c.credit_transactions]
    return out


def expense_row(e: Expense) -> dict:
    return {
        "id": e.id,
        "date": _ts(e.date),
        "category": _val(e.category),
        "amount": float(e.amount),
        "payment_method": _val(e.payment_method),
        "notes": e.notes,
        "created_by": e.created_by,
    }


def printer_row(p: Printer) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "station": _val(p.station),
        "connection_url": p.connection_url,
        "is_default": bool(p.is_default),
    }
