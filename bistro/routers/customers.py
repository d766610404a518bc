from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bistro.db import get_db
from bistro.deps import require_user, require_role
from bistro.models.common import utcnow
from bistro.models.core import CreditKind, CreditTransaction, Customer, User, UserRole
from bistro.schemas.customers import CustomerIn, CustomerUpdate, CreditPaymentIn
from bistro.services.pricing import money
from bistro.util.audit import audit
from bistro.util.rows import customer_row, credit_tx_row

router = APIRouter(prefix="/customers", tags=["customers"])

staff = require_role(UserRole.CASHIER, UserRole.ADMIN)


def _get_customer(db: Session, customer_id: str) -> Customer:
    c = db.get(Customer, customer_id)
    if not c or c.deleted_at is not None:
        raise HTTPException(404, detail="Customer not found")
    return c


@router.get("/")
def list_customers(
    search: Optional[str] = None,
    active: Optional[bool] = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    q = db.query(Customer).filter(Customer.deleted_at.is_(None))
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Customer.name.ilike(like), Customer.phone.ilike(like), Customer.email.ilike(like)))
    if active is not None:
        q = q.filter(Customer.is_active.is_(active))
    return [customer_row(c) for c in q.order_by(Customer.name).all()]


@router.get("/with-credit")
def customers_with_credit(db: Session = Depends(get_db), user: User = Depends(staff)):
    rows = (
        db.query(Customer)
        .filter(Customer.deleted_at.is_(None), Customer.credit_balance > 0)
        .order_by(Customer.credit_balance.desc())
        .all()
    )
    return [customer_row(c) for c in rows]


@router.get("/{customer_id}")
def get_customer(customer_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    return customer_row(_get_customer(db, customer_id), with_history=True)


@router.post("/", status_code=201)
def create_customer(body: CustomerIn, db: Session = Depends(get_db), user: User = Depends(staff)):
    c = Customer(
        name=body.name.strip(),
        phone=body.phone or None,
        email=body.email or None,
        address=body.address,
    )
    db.add(c)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, detail="Customer with this phone or email already exists")
    db.refresh(c)
    return customer_row(c)


@router.put("/{customer_id}")
def update_customer(
    customer_id: str,
    body: CustomerUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(staff),
):
    c = _get_customer(db, customer_id)
    for k, v in body.model_dump(exclude_unset=True).items():
        setattr(c, k, v)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, detail="Customer with this phone or email already exists")
    db.refresh(c)
    return customer_row(c)


@router.delete("/{customer_id}")
def delete_customer(customer_id: str, db: Session = Depends(get_db), user: User = Depends(require_role(UserRole.ADMIN))):
    c = _get_customer(db, customer_id)
    if float(c.credit_balance or 0) > 0:
        raise HTTPException(400, detail="Cannot delete customer with outstanding credit")
    c.deleted_at = utcnow()
    c.is_active = False
    audit(db, user.id, "customer", c.id, "DELETE")
    db.commit()
    return {"message": "Customer deleted successfully"}


@router.post("/{customer_id}/credit-payment")
def record_credit_payment(
    customer_id: str,
    body: CreditPaymentIn,
    db: Session = Depends(get_db),
    user: User = Depends(staff),
):
    """Customer pays back (part of) their tab."""
    c = _get_customer(db, customer_id)
    balance = float(c.credit_balance or 0)
    amount = money(body.amount)
    if amount > balance + 0.001:
        raise HTTPException(400, detail=f"Payment amount exceeds outstanding credit ({balance:.2f})")

    c.credit_balance = money(balance - amount)
    c.total_credit_paid = money(float(c.total_credit_paid or 0) + amount)
    tx = CreditTransaction(
        customer_id=c.id,
        kind=CreditKind.PAYMENT,
        amount=amount,
        description=body.description or "Credit payment",
    )
    db.add(tx)
    audit(db, user.id, "customer", c.id, "CREDIT_PAYMENT",
          before={"credit_balance": balance}, after={"credit_balance": c.credit_balance})
    db.commit()
    db.refresh(c)
    return {"customer": customer_row(c), "transaction": credit_tx_row(tx)}


@router.get("/{customer_id}/credit-history")
def credit_history(customer_id: str, db: Session = Depends(get_db), user: User = Depends(staff)):
    c = _get_customer(db, customer_id)
    rows = (
        db.query(CreditTransaction)
        .filter(CreditTransaction.customer_id == c.id)
        .order_by(CreditTransaction.created_at.desc())
        .all()
    )
    return {"customer": customer_row(c), "transactions": [credit_tx_row(t) for t in rows]}
