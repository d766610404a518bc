from sqlalchemy.orm import Session

from bistro.config import settings
from bistro.models.core import Bill, Order, OrderItem, Printer, PrintStation
from bistro.services.dispatch import PrintDispatcher, PrintTarget
from bistro.services.receipt import (
    BillReceipt, KitchenTicket, TicketLine, format_bill, format_kitchen_ticket,
)

_ENV_TARGETS = {
    PrintStation.KITCHEN: lambda: settings.KITCHEN_PRINTER_URL,
    PrintStation.CASHIER: lambda: settings.CASHIER_PRINTER_URL,
}


def resolve_target(db: Session, station: PrintStation) -> PrintTarget:
    """
    Printer rows configured through /settings/printers win over the
    environment; the default row for a station is preferred.
    """
    p = (
        db.query(Printer)
        .filter(Printer.station == station, Printer.deleted_at.is_(None), Printer.connection_url.isnot(None))
        .order_by(Printer.is_default.desc(), Printer.created_at.asc())
        .first()
    )
    address = p.connection_url if p else _ENV_TARGETS[station]()
    return PrintTarget(address=address, station=station.value)


def ticket_line(it: OrderItem, quantity: int | None = None) -> TicketLine:
    return TicketLine(
        quantity=it.quantity if quantity is None else quantity,
        name=it.menu_item.name if it.menu_item else "Unknown Item",
        variation=it.selected_variation,
        add_ons=list(it.add_ons or []),
        notes=it.notes,
        total_price=float(it.total_price or 0),
    )


def kitchen_ticket_for(order: Order, lines: list[TicketLine] | None = None) -> KitchenTicket:
    return KitchenTicket(
        table_number=order.table.table_number if order.table else "N/A",
        order_number=order.order_number,
        items=[ticket_line(it) for it in order.items] if lines is None else lines,
    )


def _bill_rate(bill: Bill) -> float:
    """Rate the bill was taxed at; rows without one fall back to tax / subtotal."""
    if bill.tax_rate is not None:
        return float(bill.tax_rate)
    subtotal = float(bill.subtotal or 0)
    return round(float(bill.tax) / subtotal, 4) if subtotal else settings.TAX_RATE


def bill_receipt_for(bill: Bill) -> BillReceipt:
    return BillReceipt(
        bill_number=bill.bill_number,
        table_number=bill.table.table_number if bill.table else "N/A",
        created_at=bill.created_at,
        orders=[[ticket_line(it) for it in o.items] for o in bill.orders],
        subtotal=float(bill.subtotal),
        tax=float(bill.tax),
        discount=float(bill.discount or 0),
        total=float(bill.total),
        payments=[(p.method.value, float(p.amount)) for p in bill.payments],
        tax_rate=_bill_rate(bill),
    )


def print_kitchen_ticket(db: Session, dispatcher: PrintDispatcher, order: Order,
                         lines: list[TicketLine] | None = None) -> bool:
    """Print the whole order, or just ``lines`` when items were added later."""
    instructions = format_kitchen_ticket(kitchen_ticket_for(order, lines))
    return dispatcher.dispatch(instructions, resolve_target(db, PrintStation.KITCHEN))


def print_bill(db: Session, dispatcher: PrintDispatcher, bill: Bill) -> bool:
    instructions = format_bill(bill_receipt_for(bill), width=settings.RECEIPT_WIDTH, currency=settings.CURRENCY)
    return dispatcher.dispatch(instructions, resolve_target(db, PrintStation.CASHIER))
