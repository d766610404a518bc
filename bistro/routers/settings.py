from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from bistro.db import get_db
from bistro.deps import require_role
from bistro.models.core import Printer, PrintStation, User, UserRole
from bistro.schemas.customers import PrinterIn
from bistro.util.audit import audit
from bistro.util.rows import printer_row

router = APIRouter(prefix="/settings", tags=["settings"])

admins = require_role(UserRole.ADMIN)


def _station(value: str) -> PrintStation:
    try:
        return PrintStation[value.upper()]
    except KeyError:
        raise HTTPException(400, detail="station must be KITCHEN or CASHIER")


def _clear_default(db: Session, station: PrintStation, keep_id: str | None = None):
    # one default printer per station
    q = db.query(Printer).filter(Printer.station == station, Printer.is_default.is_(True))
    for p in q.all():
        if p.id != keep_id:
            p.is_default = False


@router.get("/printers")
def list_printers(db: Session = Depends(get_db), user: User = Depends(admins)):
    rows = db.query(Printer).filter(Printer.deleted_at.is_(None)).order_by(Printer.station, Printer.name).all()
    return [printer_row(p) for p in rows]


@router.post("/printers", status_code=201)
def add_printer(body: PrinterIn, db: Session = Depends(get_db), user: User = Depends(admins)):
    station = _station(body.station)
    if body.is_default:
        _clear_default(db, station)
    p = Printer(name=body.name, station=station, connection_url=body.connection_url, is_default=body.is_default)
    db.add(p); db.flush()
    audit(db, user.id, "printer", p.id, "CREATE", after=printer_row(p))
    db.commit(); db.refresh(p)
    return printer_row(p)


@router.patch("/printers/{printer_id}")
def update_printer(printer_id: str, body: dict, db: Session = Depends(get_db), user: User = Depends(admins)):
    p = db.get(Printer, printer_id)
    if not p or p.deleted_at is not None:
        raise HTTPException(404, detail="printer not found")
    before = printer_row(p)
    # only allow specific fields to be updated
    updatable = {"name", "connection_url", "is_default", "station"}
    for k, v in body.items():
        if k not in updatable:
            continue
        if k == "station":
            p.station = _station(v)
        else:
            setattr(p, k, v)
    if p.is_default:
        _clear_default(db, p.station, keep_id=p.id)
    audit(db, user.id, "printer", p.id, "UPDATE", before=before, after=printer_row(p))
    db.commit(); db.refresh(p)
    return printer_row(p)
