from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from bistro.db import get_db
from bistro.deps import require_role
from bistro.models.common import utcnow
from bistro.models.core import Expense, ExpenseCategory, PayMethod, User, UserRole
from bistro.schemas.customers import ExpenseIn, ExpenseUpdate
from bistro.services.pricing import money
from bistro.util.export import csv_response
from bistro.util.rows import expense_row

router = APIRouter(prefix="/expenses", tags=["expenses"])

managers = require_role(UserRole.CASHIER, UserRole.ADMIN)


def _category(value: str) -> ExpenseCategory:
    try:
        return ExpenseCategory(value)
    except ValueError:
        raise HTTPException(400, detail="invalid category")


def _get_expense(db: Session, expense_id: str) -> Expense:
    e = db.get(Expense, expense_id)
    if not e or e.deleted_at is not None:
        raise HTTPException(404, detail="Expense not found")
    return e


def _in_range(q, start_date: Optional[datetime], end_date: Optional[datetime]):
    q = q.filter(Expense.deleted_at.is_(None))
    if start_date:
        q = q.filter(Expense.date >= start_date)
    if end_date:
        q = q.filter(Expense.date <= end_date)
    return q


@router.post("/", status_code=201)
def add_expense(body: ExpenseIn, db: Session = Depends(get_db), user: User = Depends(managers)):
    e = Expense(
        date=body.date or utcnow(),
        category=_category(body.category),
        amount=money(body.amount),
        payment_method=PayMethod(body.payment_method),
        notes=body.notes,
        created_by=user.id,
    )
    db.add(e)
    db.commit()
    db.refresh(e)
    return expense_row(e)


@router.put("/{expense_id}")
def update_expense(
    expense_id: str,
    body: ExpenseUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(managers),
):
    e = _get_expense(db, expense_id)
    data = body.model_dump(exclude_unset=True)
    if data.get("date"):
        e.date = data["date"]
    if data.get("category"):
        e.category = _category(data["category"])
    if data.get("amount") is not None:
        e.amount = money(data["amount"])
    if data.get("payment_method"):
        e.payment_method = PayMethod(data["payment_method"])
    if "notes" in data:
        e.notes = data["notes"]
    db.commit()
    db.refresh(e)
    return expense_row(e)


@router.delete("/{expense_id}")
def delete_expense(expense_id: str, db: Session = Depends(get_db), user: User = Depends(require_role(UserRole.ADMIN))):
    e = _get_expense(db, expense_id)
    e.deleted_at = utcnow()
    db.commit()
    return {"message": "Expense deleted successfully"}


@router.get("/")
def list_expenses(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    category: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(managers),
):
    q = _in_range(db.query(Expense), start_date, end_date)
    if category:
        q = q.filter(Expense.category == _category(category))
    return [expense_row(e) for e in q.order_by(Expense.date.desc()).all()]


@router.get("/reports")
def expense_report(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    user: User = Depends(managers),
):
    """Totals per category and per payment method."""
    by_category = (
        _in_range(db.query(Expense.category, func.sum(Expense.amount), func.count(Expense.id)), start_date, end_date)
        .group_by(Expense.category)
        .all()
    )
    by_method = (
        _in_range(db.query(Expense.payment_method, func.sum(Expense.amount)), start_date, end_date)
        .group_by(Expense.payment_method)
        .all()
    )
    categories = [
        {"category": cat.value, "total": money(total or 0), "count": count}
        for cat, total, count in by_category
    ]
    return {
        "total": money(sum(c["total"] for c in categories)),
        "by_category": categories,
        "by_payment_method": [{"method": m.value, "total": money(t or 0)} for m, t in by_method],
    }


@router.get("/export")
def export_expenses(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    category: Optional[str] = None,
    payment_method: Optional[str] = None,
    format: Literal["csv", "json"] = "csv",
    db: Session = Depends(get_db),
    user: User = Depends(managers),
):
    """Filtered expense list as a CSV download. ``all`` disables a filter."""
    q = _in_range(db.query(Expense), start_date, end_date)
    if category and category != "all":
        q = q.filter(Expense.category == _category(category))
    if payment_method and payment_method != "all":
        try:
            q = q.filter(Expense.payment_method == PayMethod(payment_method))
        except ValueError:
            raise HTTPException(400, detail="invalid payment method")
    rows = q.order_by(Expense.date.desc()).all()
    now = utcnow()

    if format == "json":
        return {
            "data": [expense_row(e) for e in rows],
            "format": format,
            "exported_at": now.isoformat(),
            "total_records": len(rows),
        }

    return csv_response(
        f"expenses-{now.strftime('%Y%m%d%H%M%S')}.csv",
        [(
            None,
            ["Date", "Category", "Amount", "Payment Method", "Notes", "Created By", "Created At"],
            [
                (
                    e.date.date().isoformat(),
                    e.category.value,
                    f"{float(e.amount):.2f}",
                    e.payment_method.value,
                    e.notes or "",
                    e.creator.name if e.creator else "Unknown",
                    e.created_at.isoformat() if e.created_at else "",
                )
                for e in rows
            ],
        )],
    )
