"""Receipt formatting for the 32-column thermal printers.

Turns a kitchen ticket or a bill into an ordered list of print
instructions. Nothing here talks to a printer; see ``dispatch.py``.
"""
from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Literal, Sequence

RECEIPT_WIDTH = 32
INDENT = "   "


# --- instructions ------------------------------------------------------------

@dataclass(frozen=True)
class Align:
    mode: Literal["center", "left"]


@dataclass(frozen=True)
class TextSize:
    # 0 = normal, 1 = double (node-thermal-printer / ESC ! semantics)
    width: int
    height: int


@dataclass(frozen=True)
class Bold:
    on: bool


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class NewLine:
    pass


@dataclass(frozen=True)
class RuleLine:
    pass


@dataclass(frozen=True)
class Cut:
    pass


PrintInstruction = Align | TextSize | Bold | Text | NewLine | RuleLine | Cut


def instruction_to_dict(instr: PrintInstruction) -> dict:
    return {"op": type(instr).__name__.lower(), **asdict(instr)}


# --- views -------------------------------------------------------------------

@dataclass
class TicketLine:
    quantity: int
    name: str
    variation: str | None = None
    add_ons: Sequence[str] = ()
    notes: str | None = None
    total_price: float = 0.0


@dataclass
class KitchenTicket:
    table_number: str
    order_number: str
    items: list[TicketLine] = field(default_factory=list)


@dataclass
class BillReceipt:
    bill_number: str
    table_number: str
    created_at: datetime
    orders: list[list[TicketLine]]
    subtotal: float
    tax: float
    discount: float
    total: float
    payments: list[tuple[str, float]] = field(default_factory=list)
    tax_rate: float = 0.10


# --- helpers -----------------------------------------------------------------

def pad_columns(label: str, value: str, width: int = RECEIPT_WIDTH) -> str:
    """Left-justify ``label`` and right-justify ``value`` within ``width``.

    Always keeps at least one space between the two, so an overlong label
    pushes the value past the edge instead of gluing onto it.
    """
    spaces = width - len(label) - len(value)
    return label + " " * max(1, spaces) + value


def fmt_money(amount: float, currency: str = "$") -> str:
    return f"{currency}{amount:.2f}"


def _ts(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def _header(title: str) -> list[PrintInstruction]:
    return [
        Align("center"),
        TextSize(1, 1),
        Bold(True),
        Text(title),
        Bold(False),
        NewLine(),
        Align("left"),
        TextSize(0, 0),
    ]


def _pct(rate: float) -> str:
    pct = rate * 100
    return f"{pct:.0f}" if float(pct).is_integer() else f"{pct:g}"


# --- formatters --------------------------------------------------------------

def format_kitchen_ticket(ticket: KitchenTicket, now: datetime | None = None) -> list[PrintInstruction]:
    now = now or datetime.now()
    out = _header("KITCHEN ORDER")
    out += [
        Text(f"Table: {ticket.table_number}"),
        Text(f"Order: {ticket.order_number}"),
        Text(f"Time: {_ts(now)}"),
        RuleLine(),
    ]

    for item in ticket.items:
        out += [TextSize(0, 1), Bold(True), Text(f"{item.quantity}x {item.name}"), Bold(False), TextSize(0, 0)]
        if item.variation:
            out.append(Text(f"{INDENT}Variation: {item.variation}"))
        if item.add_ons:
            out.append(Text(f"{INDENT}Add-ons: {', '.join(item.add_ons)}"))
        if item.notes:
            out.append(Text(f"{INDENT}Notes: {item.notes}"))
        out.append(NewLine())

    out += [RuleLine(), Align("center"), Text("End of Order"), Cut()]
    return out


def format_bill(
    bill: BillReceipt,
    width: int = RECEIPT_WIDTH,
    currency: str = "$",
) -> list[PrintInstruction]:
    def row(label: str, amount: float, sign: str = "") -> Text:
        return Text(pad_columns(label, sign + fmt_money(amount, currency), width))

    out = _header("RESTAURANT BILL")
    out += [
        Text(f"Bill #: {bill.bill_number}"),
        Text(f"Table: {bill.table_number}"),
        Text(f"Date: {_ts(bill.created_at)}"),
        RuleLine(),
    ]

    for order_lines in bill.orders:
        for item in order_lines:
            out.append(row(f"{item.quantity}x {item.name}", item.total_price))
            if item.variation:
                out.append(Text(f"{INDENT}{item.variation}"))
            if item.add_ons:
                out.append(Text(f"{INDENT}{', '.join(item.add_ons)}"))

    out.append(RuleLine())
    out.append(row("Subtotal:", bill.subtotal))
    out.append(row(f"Tax ({_pct(bill.tax_rate)}%):", bill.tax))
    if bill.discount > 0:
        out.append(row("Discount:", bill.discount, sign="-"))

    out += [
        RuleLine(),
        TextSize(0, 1),
        Bold(True),
        row("TOTAL:", bill.total),
        Bold(False),
        TextSize(0, 0),
        NewLine(),
        Text(f"Payment: {payment_summary(bill.payments, currency)}"),
        RuleLine(),
        Align("center"),
        Text("Thank you for dining with us!"),
        Cut(),
    ]
    return out


def payment_summary(payments: Sequence[tuple[str, float]], currency: str = "$") -> str:
    if not payments:
        return "-"
    if len(payments) == 1:
        return payments[0][0]
    return ", ".join(f"{method} {fmt_money(amount, currency)}" for method, amount in payments)


def render_text(instructions: Sequence[PrintInstruction], width: int = RECEIPT_WIDTH) -> str:
    """Plain-text rendering of an instruction stream (previews and console printing)."""
    lines: list[str] = []
    align = "left"
    for instr in instructions:
        if isinstance(instr, Align):
            align = instr.mode
        elif isinstance(instr, Text):
            lines.append(instr.value.center(width).rstrip() if align == "center" else instr.value)
        elif isinstance(instr, NewLine):
            lines.append("")
        elif isinstance(instr, RuleLine):
            lines.append("-" * width)
        elif isinstance(instr, Cut):
            lines.append("")
    return "\n".join(lines)
