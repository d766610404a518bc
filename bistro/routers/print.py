from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from bistro.config import settings
from bistro.db import get_db
from bistro.deps import require_role, require_user, get_dispatcher
from bistro.models.core import Bill, Order, User, UserRole
from bistro.schemas.orders import PrintKitchenIn, PrintBillIn
from bistro.services.dispatch import PrintDispatcher
from bistro.services.printing import bill_receipt_for, kitchen_ticket_for, print_bill, print_kitchen_ticket
from bistro.services.receipt import format_bill, format_kitchen_ticket, instruction_to_dict, render_text
from bistro.util.audit import audit

router = APIRouter(prefix="/print", tags=["print"])


def _order(db: Session, order_id: str) -> Order:
    o = db.get(Order, order_id)
    if not o:
        raise HTTPException(404, detail="Order not found")
    return o


def _bill(db: Session, bill_id: str) -> Bill:
    b = db.get(Bill, bill_id)
    if not b:
        raise HTTPException(404, detail="Bill not found")
    return b


# --- routes ----------------------------------------------------------------

@router.post("/kitchen")
async def print_kitchen(
    body: PrintKitchenIn,
    reason: str | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_role(UserRole.WAITER, UserRole.KITCHEN, UserRole.ADMIN)),
    dispatcher: PrintDispatcher = Depends(get_dispatcher),
):
    """Reprint the kitchen ticket for an order. Audited, since reprints get abused."""
    order = _order(db, body.order_id)
    ok = await run_in_threadpool(print_kitchen_ticket, db, dispatcher, order)

    audit(db, user.id, "order", order.id, "PRINT_KITCHEN", after={"printed": ok}, reason=reason)
    db.commit()

    if not ok:
        raise HTTPException(500, detail="Failed to print kitchen order")
    return {"message": "Kitchen order printed successfully"}


@router.post("/bill")
async def print_bill_receipt(
    body: PrintBillIn,
    reason: str | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_role(UserRole.CASHIER, UserRole.ADMIN)),
    dispatcher: PrintDispatcher = Depends(get_dispatcher),
):
    bill = _bill(db, body.bill_id)
    ok = await run_in_threadpool(print_bill, db, dispatcher, bill)

    audit(db, user.id, "bill", bill.id, "PRINT_BILL", after={"printed": ok}, reason=reason)
    db.commit()

    if not ok:
        raise HTTPException(500, detail="Failed to print bill")
    return {"message": "Bill printed successfully"}


@router.get("/kitchen/{order_id}/preview")
def preview_kitchen(order_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    instructions = format_kitchen_ticket(kitchen_ticket_for(_order(db, order_id)))
    return {
        "text": render_text(instructions, settings.RECEIPT_WIDTH),
        "instructions": [instruction_to_dict(i) for i in instructions],
    }


@router.get("/bill/{bill_id}/preview")
def preview_bill(bill_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    instructions = format_bill(
        bill_receipt_for(_bill(db, bill_id)), width=settings.RECEIPT_WIDTH, currency=settings.CURRENCY
    )
    return {
        "text": render_text(instructions, settings.RECEIPT_WIDTH),
        "instructions": [instruction_to_dict(i) for i in instructions],
    }
