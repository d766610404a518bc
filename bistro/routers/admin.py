from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from bistro.db import get_db
from bistro.config import settings
from bistro.util.security import hash_pw
from bistro.models.core import User, UserRole, Printer, PrintStation, DiningTable

router = APIRouter(prefix="/admin", tags=["admin"])

DEV_ADMIN_EMAIL = "admin@example.com"
DEV_ADMIN_PASSWORD = "admin"

@router.post("/dev-bootstrap")
def dev_bootstrap(db: Session = Depends(get_db)):
    if settings.APP_ENV != "dev":
        raise HTTPException(403, detail="Not allowed")

    # Admin user
    u = db.query(User).filter(User.email == DEV_ADMIN_EMAIL).first()
    if not u:
        u = User(
            name="Admin",
            email=DEV_ADMIN_EMAIL,
            pass_hash=hash_pw(DEV_ADMIN_PASSWORD),
            role=UserRole.ADMIN,
        )
        db.add(u); db.flush()

    # Console printers so prints show up in the server log until real ones are set
    printers = {}
    for station in (PrintStation.KITCHEN, PrintStation.CASHIER):
        p = db.query(Printer).filter(Printer.station == station).first()
        if not p:
            p = Printer(
                name=f"{station.value.title()} Console",
                station=station,
                connection_url="console://",
                is_default=True,
            )
            db.add(p); db.flush()
        printers[station.value] = p.id

    # A couple of tables to start with
    for number in ("1", "2", "3"):
        if not db.query(DiningTable).filter(DiningTable.table_number == number).first():
            db.add(DiningTable(table_number=number))

    db.commit()
    return {
        "admin_email": u.email,
        "admin_password": DEV_ADMIN_PASSWORD,
        "kitchen_printer_id": printers["KITCHEN"],
        "cashier_printer_id": printers["CASHIER"],
    }
