# bistro/routers/tables.py
from sqlalchemy.exc import IntegrityError
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from bistro.db import get_db
from bistro.deps import require_user, require_role, get_hub
from bistro.models.core import DiningTable, Order, TableStatus, User, UserRole
from bistro.models.common import utcnow
from bistro.realtime import NotificationHub
from bistro.schemas.menu import TableIn, TableUpdate
from bistro.util.rows import table_row

router = APIRouter(prefix="/tables", tags=["tables"])


def _get_table(db: Session, table_id: str) -> DiningTable:
    t = db.get(DiningTable, table_id)
    if not t or t.deleted_at is not None:
        raise HTTPException(404, detail="Table not found")
    return t


@router.get("/")
def list_tables(db: Session = Depends(get_db), user: User = Depends(require_user)):
    rows = (
        db.query(DiningTable)
        .filter(DiningTable.deleted_at.is_(None))
        .order_by(DiningTable.table_number.asc())
        .all()
    )
    return [table_row(t) for t in rows]


@router.post("/", status_code=201)
def create_table(body: TableIn, db: Session = Depends(get_db), user: User = Depends(require_role(UserRole.ADMIN))):
    try:
        t = DiningTable(table_number=body.table_number.strip(), status=TableStatus(body.status))
        db.add(t)
        db.commit()
        db.refresh(t)
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, detail="Table number already exists")
    return table_row(t)


@router.put("/{table_id}")
async def update_table(
    table_id: str,
    body: TableUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_role(UserRole.WAITER, UserRole.ADMIN)),
    hub: NotificationHub = Depends(get_hub),
):
    t = _get_table(db, table_id)
    if body.table_number:
        t.table_number = body.table_number.strip()
    if body.status:
        t.status = TableStatus(body.status)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, detail="Table number already exists")
    db.refresh(t)
    if body.status:
        await hub.publish("tableStatusUpdate", {"table_id": t.id, "status": t.status.value})
    return table_row(t)


@router.delete("/{table_id}")
def delete_table(table_id: str, db: Session = Depends(get_db), user: User = Depends(require_role(UserRole.ADMIN))):
    t = _get_table(db, table_id)
    open_orders = (
        db.query(Order)
        .filter(Order.table_id == t.id, Order.is_billed.is_(False))
        .count()
    )
    if open_orders:
        raise HTTPException(400, detail="Table has unbilled orders")
    t.deleted_at = utcnow()
    db.commit()
    return {"message": "Table deleted successfully"}
