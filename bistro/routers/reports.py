import calendar
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from bistro.db import get_db
from bistro.deps import require_role
from bistro.models.core import Bill, BillPayment, Customer, Expense, Order, OrderStatus, User, UserRole
from bistro.services.pricing import money
from bistro.util.export import csv_response
from bistro.util.rows import bill_row, expense_row, order_row

router = APIRouter(prefix="/reports", tags=["reports"])

admins = require_role(UserRole.ADMIN)


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min).replace(tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def _range(start_date: date | None, end_date: date | None) -> tuple[datetime | None, datetime | None]:
    """[start of start_date, start of the day after end_date); either end may be open."""
    start = _day_bounds(start_date)[0] if start_date else None
    end = _day_bounds(end_date)[1] if end_date else None
    return start, end


def _bills_between(db: Session, start: datetime | None, end: datetime | None, newest_first: bool = False):
    q = db.query(Bill)
    if start:
        q = q.filter(Bill.created_at >= start)
    if end:
        q = q.filter(Bill.created_at < end)
    order = Bill.created_at.desc() if newest_first else Bill.created_at.asc()
    return q.order_by(order).all()


def _period_key(dt: datetime, period: str) -> str:
    if period == "weekly":
        year, week, _ = dt.isocalendar()
        return f"{year}-W{week:02d}"
    if period == "monthly":
        return dt.strftime("%Y-%m")
    if period == "yearly":
        return dt.strftime("%Y")
    return dt.strftime("%Y-%m-%d")


@router.get("/daily-sales")
def daily_sales(day: Optional[date] = None, db: Session = Depends(get_db), user: User = Depends(admins)):
    day = day or datetime.now(timezone.utc).date()
    start, end = _day_bounds(day)
    count, subtotal, tax, discount, total = (
        db.query(
            func.count(Bill.id),
            func.coalesce(func.sum(Bill.subtotal), 0),
            func.coalesce(func.sum(Bill.tax), 0),
            func.coalesce(func.sum(Bill.discount), 0),
            func.coalesce(func.sum(Bill.total), 0),
        )
        .filter(Bill.created_at >= start, Bill.created_at < end)
        .one()
    )
    return {
        "date": day.isoformat(),
        "bills": count,
        "gross": money(subtotal),
        "tax": money(tax),
        "discount": money(discount),
        "net": money(total),
    }


@router.get("/monthly")
def monthly_report(
    month: Optional[int] = None,
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    user: User = Depends(admins),
):
    """Sales for one calendar month (UTC), broken down per day."""
    today = datetime.now(timezone.utc).date()
    year = year or today.year
    month = month or today.month
    if not 1 <= month <= 12:
        raise HTTPException(400, detail="month must be 1-12")

    days = calendar.monthrange(year, month)[1]
    start, _ = _day_bounds(date(year, month, 1))
    _, end = _day_bounds(date(year, month, days))

    daily = {str(d): 0.0 for d in range(1, days + 1)}
    total_sales = 0.0
    total_orders = 0
    bills = _bills_between(db, start, end)
    for b in bills:
        daily[str(b.created_at.day)] += float(b.total)
        total_sales += float(b.total)
        total_orders += len(b.orders)

    return {
        "month": month,
        "year": year,
        "total_sales": money(total_sales),
        "total_orders": total_orders,
        "total_bills": len(bills),
        "daily_sales": {d: money(v) for d, v in daily.items()},
        "average_daily_sales": money(total_sales / days),
    }


@router.get("/payment-analytics")
def payment_analytics(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    user: User = Depends(admins),
):
    """Amount taken per payment method, ``end_date`` inclusive."""
    end_day = end_date or datetime.now(timezone.utc).date()
    start_day = start_date or end_day
    start, end = _range(start_day, end_day)

    rows = (
        db.query(BillPayment.method, func.sum(BillPayment.amount), func.count(BillPayment.id))
        .join(Bill, Bill.id == BillPayment.bill_id)
        .filter(Bill.created_at >= start, Bill.created_at < end)
        .group_by(BillPayment.method)
        .all()
    )
    methods = [{"method": m.value, "amount": money(amt or 0), "count": n} for m, amt, n in rows]
    return {
        "start_date": start_day.isoformat(),
        "end_date": end_day.isoformat(),
        "total": money(sum(m["amount"] for m in methods)),
        "by_method": methods,
    }


@router.get("/credit-analytics")
def credit_analytics(db: Session = Depends(get_db), user: User = Depends(admins)):
    outstanding, given, paid, debtors = (
        db.query(
            func.coalesce(func.sum(Customer.credit_balance), 0),
            func.coalesce(func.sum(Customer.total_credit_given), 0),
            func.coalesce(func.sum(Customer.total_credit_paid), 0),
            func.count(case((Customer.credit_balance > 0, 1))),
        )
        .filter(Customer.deleted_at.is_(None))
        .one()
    )
    return {
        "outstanding": money(outstanding),
        "total_credit_given": money(given),
        "total_credit_paid": money(paid),
        "customers_with_credit": debtors,
    }


@router.get("/order-history")
def order_history(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    table_id: Optional[str] = None,
    status: Optional[str] = None,
    include_billed: Optional[bool] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
    user: User = Depends(admins),
):
    """Paged order list, newest first. ``include_billed`` filters on the billed flag when given."""
    limit = max(1, min(limit, 500))
    offset = max(0, offset)
    start, end = _range(start_date, end_date)

    q = db.query(Order)
    if start:
        q = q.filter(Order.created_at >= start)
    if end:
        q = q.filter(Order.created_at < end)
    if table_id:
        q = q.filter(Order.table_id == table_id)
    if status:
        try:
            q = q.filter(Order.status == OrderStatus(status))
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid status")
    if include_billed is not None:
        q = q.filter(Order.is_billed.is_(include_billed))

    total = q.count()
    rows = q.order_by(Order.created_at.desc()).offset(offset).limit(limit).all()
    return {
        "orders": [order_row(o) for o in rows],
        "total_count": total,
        "current_page": offset // limit + 1,
        "total_pages": -(-total // limit),
        "has_next_page": offset + limit < total,
        "has_prev_page": offset > 0,
    }


@router.get("/sales")
def sales_report(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    period: Literal["daily", "weekly", "monthly", "yearly"] = "daily",
    db: Session = Depends(get_db),
    user: User = Depends(admins),
):
    """Revenue trend per period, summary, and the ten best-selling items by quantity."""
    bills = _bills_between(db, *_range(start_date, end_date))

    buckets: dict[str, dict] = {}
    items: dict[str, dict] = defaultdict(lambda: {"name": None, "quantity": 0, "revenue": 0.0})
    for b in bills:
        key = _period_key(b.created_at, period)
        bucket = buckets.setdefault(key, {"period": key, "revenue": 0.0, "orders": 0, "bills": 0})
        bucket["revenue"] += float(b.total)
        bucket["orders"] += len(b.orders)
        bucket["bills"] += 1
        for o in b.orders:
            for it in o.items:
                row = items[it.item_id]
                row["name"] = it.menu_item.name if it.menu_item else "Unknown Item"
                row["quantity"] += it.quantity
                row["revenue"] += float(it.total_price)

    trends = []
    for bucket in buckets.values():
        trends.append({
            **bucket,
            "revenue": money(bucket["revenue"]),
            "avg_order_value": money(bucket["revenue"] / bucket["orders"]) if bucket["orders"] else 0.0,
        })

    revenue = sum(float(b.total) for b in bills)
    orders = sum(len(b.orders) for b in bills)
    top = sorted(items.values(), key=lambda r: r["quantity"], reverse=True)[:10]
    return {
        "summary": {
            "total_revenue": money(revenue),
            "total_orders": orders,
            "total_bills": len(bills),
            "avg_order_value": money(revenue / orders) if orders else 0.0,
        },
        "period": period,
        "trends": trends,
        "top_items": [{**r, "revenue": money(r["revenue"])} for r in top],
    }


@router.get("/export")
def export_report(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    format: Literal["csv", "json"] = "csv",
    db: Session = Depends(get_db),
    user: User = Depends(admins),
):
    """Bills and expenses for a range, as a two-section CSV or as JSON."""
    start, end = _range(start_date, end_date)
    bills = _bills_between(db, start, end, newest_first=True)

    eq = db.query(Expense).filter(Expense.deleted_at.is_(None))
    if start:
        eq = eq.filter(Expense.date >= start)
    if end:
        eq = eq.filter(Expense.date < end)
    expenses = eq.order_by(Expense.date.desc()).all()

    if format == "json":
        return {
            "bills": [bill_row(b, with_orders=False) for b in bills],
            "expenses": [expense_row(e) for e in expenses],
            "summary": {
                "total_revenue": money(sum(float(b.total) for b in bills)),
                "total_expenses": money(sum(float(e.amount) for e in expenses)),
                "total_bills": len(bills),
                "total_expense_items": len(expenses),
                "start_date": start_date.isoformat() if start_date else None,
                "end_date": end_date.isoformat() if end_date else None,
            },
            "exported_at": datetime.now(timezone.utc).isoformat(),
        }

    bill_rows = [
        (
            b.created_at.date().isoformat(),
            b.bill_number,
            b.customer.name if b.customer else "Walk-in",
            f"{float(b.total):.2f}",
            f"{float(b.tax):.2f}",
            f"{float(b.discount or 0):.2f}",
            ";".join(f"{p.method.value}:{float(p.amount):.2f}" for p in b.payments),
            ";".join(
                f"{it.menu_item.name if it.menu_item else 'Unknown Item'}({it.quantity})"
                for o in b.orders for it in o.items
            ),
        )
        for b in bills
    ]
    expense_rows = [
        (
            e.date.date().isoformat(),
            e.category.value,
            f"{float(e.amount):.2f}",
            e.payment_method.value,
            e.notes or "",
            e.creator.name if e.creator else "Unknown",
        )
        for e in expenses
    ]
    return csv_response(
        f"report-{start_date or 'all'}-to-{end_date or 'now'}.csv",
        [
            ("SALES SUMMARY",
             ["Date", "Bill Number", "Customer", "Total", "Tax", "Discount", "Payment Methods", "Items"],
             bill_rows),
            ("EXPENSES SUMMARY",
             ["Date", "Category", "Amount", "Payment Method", "Notes", "Created By"],
             expense_rows),
        ],
    )
