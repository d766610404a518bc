import random
import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from bistro.config import settings
from bistro.db import get_db
from bistro.deps import require_user, require_role, get_hub, get_dispatcher
from bistro.models.common import utcnow
from bistro.models.core import (
    Bill, BillPayment, CreditKind, CreditTransaction, Customer, DiningTable, Order, OrderStatus,
    PayMethod, TableStatus, User, UserRole,
)
from bistro.realtime import NotificationHub
from bistro.schemas.orders import BillIn
from bistro.services.dispatch import PrintDispatcher
from bistro.services.pricing import compute_bill_totals, money
from bistro.services.printing import print_bill
from bistro.util.audit import audit
from bistro.util.rows import bill_row, order_row

router = APIRouter(prefix="/bills", tags=["bills"])

cashiers = require_role(UserRole.CASHIER, UserRole.ADMIN)

# payments may differ from the bill total by rounding only
PAYMENT_TOLERANCE = 0.01


def generate_bill_number() -> str:
    stamp = str(int(time.time() * 1000))[-6:]
    return f"BILL-{stamp}{random.randint(0, 999):03d}"


def _get_bill(db: Session, bill_id: str) -> Bill:
    b = db.get(Bill, bill_id)
    if not b:
        raise HTTPException(404, detail="Bill not found")
    return b


def _billable_orders(db: Session, table_id: str, selected: list[str] | None) -> list[Order]:
    """
    Served, unbilled orders of a table; restricted to ``selected`` when given.
    Selecting an order that is already billed is an error, not a silent skip.
    """
    q = db.query(Order).filter(Order.table_id == table_id)
    if selected:
        rows = q.filter(Order.id.in_(selected)).order_by(Order.created_at).all()
        if len(rows) != len(set(selected)):
            raise HTTPException(404, detail="One or more selected orders not found for this table")
        billed = [o.order_number for o in rows if o.is_billed]
        if billed:
            raise HTTPException(400, detail=f"Orders already billed: {', '.join(billed)}")
        not_served = [o.order_number for o in rows if o.status != OrderStatus.SERVED]
        if not_served:
            raise HTTPException(400, detail=f"Orders not served yet: {', '.join(not_served)}")
        return rows

    rows = (
        q.filter(Order.is_billed.is_(False), Order.status == OrderStatus.SERVED)
        .order_by(Order.created_at)
        .all()
    )
    if not rows:
        if q.filter(Order.is_billed.is_(False)).count():
            raise HTTPException(400, detail="No served orders to bill for this table")
        raise HTTPException(400, detail="No unbilled orders for this table (already billed?)")
    return rows


@router.get("/preview/{table_id}")
def preview_bill(
    table_id: str,
    discount: float = Query(0, ge=0),
    selected_orders: Optional[list[str]] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    """What the bill would come to right now. Nothing is written."""
    orders = _billable_orders(db, table_id, selected_orders)
    totals = compute_bill_totals(orders, tax_rate=settings.TAX_RATE, discount=discount)
    return {
        "table_id": table_id,
        "orders": [order_row(o) for o in orders],
        "subtotal": money(totals.subtotal),
        "tax": money(totals.tax),
        "discount": money(discount),
        "total": money(totals.total),
    }


@router.post("/", status_code=201)
async def create_bill(
    body: BillIn,
    db: Session = Depends(get_db),
    user: User = Depends(cashiers),
    hub: NotificationHub = Depends(get_hub),
    dispatcher: PrintDispatcher = Depends(get_dispatcher),
):
    table = db.get(DiningTable, body.table_id)
    if not table or table.deleted_at is not None:
        raise HTTPException(404, detail="Table not found")

    paid = money(sum(p.amount for p in body.payment_methods))
    if paid <= 0:
        raise HTTPException(400, detail="Total payment amount must be greater than 0")

    credit = money(sum(p.amount for p in body.payment_methods if p.type == PayMethod.CREDIT.value))
    customer = None
    if credit > 0 or body.customer_id:
        if not body.customer_id:
            raise HTTPException(400, detail="Customer is required for credit payments")
        customer = db.get(Customer, body.customer_id)
        if not customer or customer.deleted_at is not None or not customer.is_active:
            raise HTTPException(400, detail="Invalid or inactive customer")

    orders = _billable_orders(db, table.id, body.selected_orders)
    totals = compute_bill_totals(orders, tax_rate=settings.TAX_RATE, discount=body.discount)

    if body.discount > money(totals.subtotal + totals.tax):
        raise HTTPException(400, detail="Discount cannot exceed subtotal plus tax")
    total = money(totals.total)
    if abs(paid - total) > PAYMENT_TOLERANCE:
        raise HTTPException(
            400, detail=f"Payment total ({paid:.2f}) does not match bill total ({total:.2f})"
        )

    bill = Bill(
        table_id=table.id,
        bill_number=generate_bill_number(),
        subtotal=money(totals.subtotal),
        tax=money(totals.tax),
        discount=money(body.discount),
        tax_rate=settings.TAX_RATE,
        total=total,
        customer_id=customer.id if customer else None,
        credit_amount=credit,
        payments=[
            BillPayment(method=PayMethod(p.type), amount=money(p.amount), position=i)
            for i, p in enumerate(body.payment_methods)
        ],
    )
    db.add(bill)
    db.flush()

    if customer and credit > 0:
        customer.credit_balance = money(float(customer.credit_balance or 0) + credit)
        customer.total_credit_given = money(float(customer.total_credit_given or 0) + credit)
        db.add(CreditTransaction(
            customer_id=customer.id,
            kind=CreditKind.CREDIT,
            amount=credit,
            bill_id=bill.id,
            description=f"Credit on bill {bill.bill_number}",
        ))

    now = utcnow()
    for o in orders:
        o.is_billed = True
        o.billed_at = now
        o.bill_id = bill.id
    table.status = TableStatus.AVAILABLE

    audit(db, user.id, "bill", bill.id, "CREATE",
          after={"bill_number": bill.bill_number, "total": total, "orders": [o.id for o in orders]})
    db.commit()
    db.refresh(bill)

    out = bill_row(bill)
    await hub.publish("billCreated", out)
    await hub.publish("tableStatusUpdate", {"table_id": table.id, "status": table.status.value})

    out["printed"] = await run_in_threadpool(print_bill, db, dispatcher, bill)
    return out


@router.get("/")
def list_bills(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    q = db.query(Bill)
    if start_date:
        q = q.filter(Bill.created_at >= start_date)
    if end_date:
        q = q.filter(Bill.created_at <= end_date)
    rows = q.order_by(Bill.created_at.desc()).limit(max(1, min(limit, 500))).all()
    return [bill_row(b, with_orders=False) for b in rows]


@router.get("/table/{table_id}")
def bills_by_table(table_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    rows = db.query(Bill).filter(Bill.table_id == table_id).order_by(Bill.created_at.desc()).all()
    return [bill_row(b, with_orders=False) for b in rows]


@router.get("/{bill_id}")
def get_bill(bill_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    return bill_row(_get_bill(db, bill_id))


@router.post("/{bill_id}/print")
async def reprint_bill(
    bill_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(cashiers),
    dispatcher: PrintDispatcher = Depends(get_dispatcher),
):
    bill = _get_bill(db, bill_id)
    return {"printed": await run_in_threadpool(print_bill, db, dispatcher, bill)}
