# test_receipt.py
from datetime import datetime

from bistro.services.receipt import (
    Align, Bold, BillReceipt, Cut, KitchenTicket, RuleLine, Text, TextSize, TicketLine,
    format_bill, format_kitchen_ticket, instruction_to_dict, pad_columns, payment_summary, render_text,
)

NOW = datetime(2024, 5, 1, 12, 30, 0)


def texts(instructions):
    return [i.value for i in instructions if isinstance(i, Text)]


def one_line_bill(**kw):
    data = dict(
        bill_number="BILL-1",
        table_number="7",
        created_at=NOW,
        orders=[[TicketLine(quantity=1, name="Soup", total_price=10.0)]],
        subtotal=10.0,
        tax=1.0,
        discount=0.0,
        total=11.0,
        payments=[("Cash", 11.0)],
    )
    data.update(kw)
    return BillReceipt(**data)


def test_pad_columns_fills_width():
    s = pad_columns("Subtotal:", "$10.00", 32)
    assert len(s) == 32
    assert s.startswith("Subtotal:") and s.endswith("$10.00")


def test_pad_columns_keeps_one_space_when_overlong():
    s = pad_columns("x" * 40, "$1.00", 32)
    assert s == "x" * 40 + " $1.00"


def test_kitchen_ticket_lines():
    ticket = KitchenTicket(
        table_number="5",
        order_number="A-102",
        items=[TicketLine(quantity=2, name="Burger", add_ons=["Cheese"], notes="no onions")],
    )
    out = format_kitchen_ticket(ticket, now=NOW)
    lines = texts(out)

    assert "2x Burger" in lines
    assert any(l.startswith("   ") and "Cheese" in l for l in lines)
    assert any(l.startswith("   ") and "no onions" in l for l in lines)
    assert "Table: 5" in lines
    assert "Order: A-102" in lines
    assert "Time: 2024-05-01 12:30:00" in lines
    assert not any("Variation" in l for l in lines)


def test_kitchen_ticket_shape():
    ticket = KitchenTicket(table_number="1", order_number="O-1", items=[TicketLine(quantity=1, name="Tea")])
    out = format_kitchen_ticket(ticket, now=NOW)

    assert out[:4] == [Align("center"), TextSize(1, 1), Bold(True), Text("KITCHEN ORDER")]
    # item name printed double height and bold
    i = out.index(Text("1x Tea"))
    assert out[i - 2:i] == [TextSize(0, 1), Bold(True)]
    assert out[-3:] == [Align("center"), Text("End of Order"), Cut()]


def test_bill_total_row():
    out = format_bill(one_line_bill())
    lines = texts(out)

    total = next(l for l in lines if l.startswith("TOTAL:"))
    assert total.endswith("$11.00")
    assert len(total) == 32
    assert pad_columns("Subtotal:", "$10.00") in lines
    assert pad_columns("Tax (10%):", "$1.00") in lines
    assert not any(l.startswith("Discount:") for l in lines)
    assert "Payment: Cash" in lines
    assert isinstance(out[-1], Cut)


def test_bill_discount_row_only_when_positive():
    out = format_bill(one_line_bill(discount=2.0, total=9.0))
    assert pad_columns("Discount:", "-$2.00") in texts(out)


def test_bill_lists_every_order_with_detail():
    bill = one_line_bill(orders=[
        [TicketLine(quantity=2, name="Pizza", variation="Large", add_ons=["Olives"], total_price=30.0)],
        [TicketLine(quantity=1, name="Cola", total_price=2.5)],
    ])
    lines = texts(format_bill(bill))
    assert pad_columns("2x Pizza", "$30.00") in lines
    assert "   Large" in lines
    assert "   Olives" in lines
    assert pad_columns("1x Cola", "$2.50") in lines


def test_payment_summary():
    assert payment_summary([]) == "-"
    assert payment_summary([("Khalti", 5.0)]) == "Khalti"
    assert payment_summary([("Cash", 5.0), ("Credit", 6.0)]) == "Cash $5.00, Credit $6.00"


def test_render_text_and_dict_form():
    out = format_bill(one_line_bill())
    text = render_text(out, 32)
    assert "RESTAURANT BILL" in text
    assert "-" * 32 in text
    assert instruction_to_dict(Text("hi")) == {"op": "text", "value": "hi"}
    assert instruction_to_dict(RuleLine()) == {"op": "ruleline"}
