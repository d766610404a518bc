# test_order_flow_e2e.py
import asyncio
import calendar
from datetime import datetime, timezone

import pytest

from bistro.errors import PrintTransportError
from bistro.main import app
from bistro.services.dispatch import PrintDispatcher


def jprint(step, r):
    """Helper to print response and assert on failure."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json() if r.headers.get("content-type", "").startswith("application/json") else r.text


class Listener:
    """Stands in for a connected browser tab."""

    def __init__(self):
        self.events = []

    async def accept(self):
        pass

    async def send_json(self, msg):
        self.events.append(msg)

    def names(self):
        return [m["event"] for m in self.events]


def login_as(client, base_url, auth_headers, role, suffix):
    email = f"{role.lower()}-{suffix}@example.com"
    r = client.post(f"{base_url}/auth/users/", headers=auth_headers, json={
        "name": f"{role} {suffix}", "email": email, "password": "pass1234", "role": role,
    })
    jprint(f"POST /auth/users ({role})", r)
    r = client.post(f"{base_url}/auth/login", json={"email": email, "password": "pass1234"})
    body = jprint(f"POST /auth/login ({role})", r)
    assert body["user"]["role"] == role
    return {"Authorization": f"Bearer {body['access_token']}"}


@pytest.fixture(scope="module")
def staff(client, base_url, auth_headers, rng_suffix):
    return {
        role: login_as(client, base_url, auth_headers, role, rng_suffix)
        for role in ("Waiter", "Cashier", "Kitchen")
    }


@pytest.fixture(scope="module")
def menu(client, base_url, auth_headers, rng_suffix):
    r = client.post(f"{base_url}/menu/", headers=auth_headers, json={
        "name": f"Pizza-{rng_suffix}", "price": 10.0, "category": "Mains",
        "variations": [{"name": "Small", "price": 8.0}, {"name": "Large", "price": 14.0}],
        "add_ons": [{"name": "Extra Cheese", "price": 1.5}, {"name": "Olives", "price": 0.75}],
    })
    pizza = jprint("POST /menu (pizza)", r)
    r = client.post(f"{base_url}/menu/", headers=auth_headers, json={
        "name": f"Cola-{rng_suffix}", "price": 2.5, "category": "Drinks",
    })
    cola = jprint("POST /menu (cola)", r)
    return {"pizza": pizza["id"], "cola": cola["id"]}


def new_table(client, base_url, auth_headers, label):
    r = client.post(f"{base_url}/tables/", headers=auth_headers, json={"table_number": label})
    return jprint("POST /tables", r)["id"]


def serve(client, base_url, headers, order_id):
    for status in ("Cooking", "Ready", "Served"):
        r = client.put(f"{base_url}/orders/{order_id}/status", headers=headers, json={"status": status})
        jprint(f"PUT /orders/status {status}", r)


def table_status(client, base_url, headers, table_id):
    r = client.get(f"{base_url}/tables/", headers=headers)
    return next(t["status"] for t in jprint("GET /tables", r) if t["id"] == table_id)


def test_full_order_to_bill_flow(client, base_url, auth_headers, rng_suffix, staff, menu):
    waiter, cashier, kitchen = staff["Waiter"], staff["Cashier"], staff["Kitchen"]
    table_id = new_table(client, base_url, auth_headers, f"T-{rng_suffix}")

    hub = app.state.hub
    listener = Listener()
    asyncio.run(hub.connect(listener))
    hub.join(listener, "Kitchen")

    try:
        # ===== 1. Order =====
        r = client.post(f"{base_url}/orders/", headers=waiter, json={
            "table_id": table_id,
            "items": [
                {"item_id": menu["pizza"], "quantity": 2, "selected_variation": "Large",
                 "add_ons": ["Extra Cheese"], "notes": "well done"},
                {"item_id": menu["cola"], "quantity": 1},
            ],
        })
        assert r.status_code == 201, r.text
        order = r.json()
        order_id = order["id"]
        assert order["order_number"].startswith("ORD-")
        assert order["status"] == "Pending"
        assert order["total_amount"] == 33.5
        pizza_line = order["items"][0]
        assert (pizza_line["item_price"], pizza_line["add_on_price"], pizza_line["total_price"]) == (14.0, 1.5, 31.0)
        # dev-bootstrap configured console printers
        assert order["printed"] is True
        assert table_status(client, base_url, waiter, table_id) == "Occupied"
        assert "newOrder" in listener.names()
        assert "tableStatusUpdate" in listener.names()

        # ===== 2. Pricing rejections =====
        r = client.post(f"{base_url}/orders/", headers=waiter, json={
            "table_id": table_id,
            "items": [{"item_id": menu["pizza"], "quantity": 1, "selected_variation": "Huge"}],
        })
        assert r.status_code == 400, r.text
        assert "Huge" in r.json()["detail"]
        r = client.post(f"{base_url}/orders/", headers=waiter, json={
            "table_id": table_id, "items": [{"item_id": menu["cola"], "quantity": 0}],
        })
        assert r.status_code == 400, r.text

        # ===== 3. Add items: same configuration merges =====
        r = client.post(f"{base_url}/orders/{order_id}/add-items", headers=waiter, json={"items": [
            {"item_id": menu["pizza"], "quantity": 1, "selected_variation": "Large",
             "add_ons": ["Extra Cheese"], "notes": "well done"},
        ]})
        order = jprint("POST /orders/add-items", r)
        assert len(order["items"]) == 2
        assert order["items"][0]["quantity"] == 3
        assert order["items"][0]["total_price"] == 46.5
        assert order["total_amount"] == 49.0

        r = client.get(f"{base_url}/orders/table/{table_id}/active", headers=waiter)
        assert jprint("GET active order", r)["id"] == order_id

        # ===== 4. Kitchen workflow =====
        r = client.put(f"{base_url}/orders/{order_id}/status", headers=cashier, json={"status": "Cooking"})
        assert r.status_code == 403
        serve(client, base_url, kitchen, order_id)
        r = client.put(f"{base_url}/orders/{order_id}/status", headers=kitchen, json={"status": "Ready"})
        assert r.status_code == 400
        assert "forward" in r.json()["detail"]
        assert table_status(client, base_url, waiter, table_id) == "Waiting for Bill"
        assert "orderStatusUpdate" in listener.names()

        r = client.get(f"{base_url}/orders/table/{table_id}/active", headers=waiter)
        assert r.status_code == 404

        # ===== 5. Bill =====
        r = client.get(f"{base_url}/bills/preview/{table_id}", headers=cashier, params={"discount": 3.9})
        preview = jprint("GET /bills/preview", r)
        assert (preview["subtotal"], preview["tax"], preview["total"]) == (49.0, 4.9, 50.0)

        r = client.post(f"{base_url}/bills/", headers=kitchen, json={
            "table_id": table_id, "payment_methods": [{"type": "Cash", "amount": 50.0}], "discount": 3.9,
        })
        assert r.status_code == 403

        r = client.post(f"{base_url}/bills/", headers=cashier, json={
            "table_id": table_id, "payment_methods": [{"type": "Cash", "amount": 40.0}], "discount": 3.9,
        })
        assert r.status_code == 400
        assert "does not match" in r.json()["detail"]

        r = client.post(f"{base_url}/bills/", headers=cashier, json={
            "table_id": table_id, "payment_methods": [{"type": "Cash", "amount": 100.0}], "discount": 100.0,
        })
        assert r.status_code == 400
        assert "Discount" in r.json()["detail"]

        r = client.post(f"{base_url}/bills/", headers=cashier, json={
            "table_id": table_id,
            "payment_methods": [{"type": "Cash", "amount": 30.0}, {"type": "Khalti", "amount": 20.0}],
            "discount": 3.9,
        })
        assert r.status_code == 201, r.text
        bill = r.json()
        assert bill["bill_number"].startswith("BILL-")
        assert bill["total"] == 50.0
        assert bill["tax_rate"] == 0.1
        assert bill["order_ids"] == [order_id]
        assert bill["printed"] is True
        assert table_status(client, base_url, waiter, table_id) == "Available"

        r = client.get(f"{base_url}/orders/{order_id}", headers=waiter)
        billed = jprint("GET /orders/{id}", r)
        assert billed["is_billed"] is True
        assert billed["bill_id"] == bill["id"]

        # billed orders are frozen
        r = client.post(f"{base_url}/orders/{order_id}/add-items", headers=waiter, json={"items": [
            {"item_id": menu["cola"], "quantity": 1},
        ]})
        assert r.status_code == 400
        r = client.post(f"{base_url}/bills/", headers=cashier, json={
            "table_id": table_id, "payment_methods": [{"type": "Cash", "amount": 50.0}],
        })
        assert r.status_code == 400
        assert "already billed" in r.json()["detail"]

        # billCreated is not for the kitchen
        assert "billCreated" not in listener.names()
    finally:
        hub.disconnect(listener)

    # ===== 6. Printing & previews =====
    r = client.get(f"{base_url}/print/bill/{bill['id']}/preview", headers=cashier)
    text = jprint("GET bill preview", r)["text"]
    assert "RESTAURANT BILL" in text
    assert "$50.00" in text
    assert "Payment: Cash $30.00, Khalti $20.00" in text

    r = client.get(f"{base_url}/print/kitchen/{order_id}/preview", headers=kitchen)
    assert "KITCHEN ORDER" in jprint("GET kitchen preview", r)["text"]

    jprint("POST /print/kitchen", client.post(f"{base_url}/print/kitchen", headers=kitchen, json={"order_id": order_id}))
    jprint("POST /print/bill", client.post(f"{base_url}/print/bill", headers=cashier, json={"bill_id": bill["id"]}))

    # ===== 7. Reports =====
    r = client.get(f"{base_url}/reports/daily-sales", headers=auth_headers)
    daily = jprint("GET /reports/daily-sales", r)
    assert daily["bills"] >= 1
    assert daily["net"] >= 50.0

    r = client.get(f"{base_url}/reports/payment-analytics", headers=auth_headers)
    methods = {m["method"] for m in jprint("GET /reports/payment-analytics", r)["by_method"]}
    assert {"Cash", "Khalti"} <= methods


def test_print_failure_does_not_block_order(client, base_url, auth_headers, rng_suffix, staff, menu):
    waiter = staff["Waiter"]
    table_id = new_table(client, base_url, auth_headers, f"PF-{rng_suffix}")

    def unplugged(target, timeout, width):
        raise PrintTransportError("printer offline")

    original = app.state.dispatcher
    app.state.dispatcher = PrintDispatcher(unplugged)
    try:
        r = client.post(f"{base_url}/orders/", headers=waiter, json={
            "table_id": table_id, "items": [{"item_id": menu["cola"], "quantity": 2}],
        })
        assert r.status_code == 201, r.text
        order = r.json()
        assert order["printed"] is False

        r = client.get(f"{base_url}/orders/{order['id']}", headers=waiter)
        assert jprint("GET /orders/{id}", r)["total_amount"] == 5.0

        r = client.post(f"{base_url}/print/kitchen", headers=waiter, json={"order_id": order["id"]})
        assert r.status_code == 500
        assert r.json()["detail"].startswith("Failed to print")
    finally:
        app.state.dispatcher = original


def test_credit_sale_and_repayment(client, base_url, auth_headers, rng_suffix, staff, menu):
    waiter, cashier, kitchen = staff["Waiter"], staff["Cashier"], staff["Kitchen"]
    table_id = new_table(client, base_url, auth_headers, f"CR-{rng_suffix}")

    r = client.post(f"{base_url}/customers/", headers=cashier, json={
        "name": f"Regular {rng_suffix}", "phone": f"98{rng_suffix}",
    })
    assert r.status_code == 201, r.text
    customer_id = r.json()["id"]

    r = client.post(f"{base_url}/orders/", headers=waiter, json={
        "table_id": table_id, "items": [{"item_id": menu["cola"], "quantity": 4}],
    })
    order_id = jprint("POST /orders", r)["id"]
    serve(client, base_url, kitchen, order_id)

    # credit without a customer
    r = client.post(f"{base_url}/bills/", headers=cashier, json={
        "table_id": table_id,
        "payment_methods": [{"type": "Cash", "amount": 5.0}, {"type": "Credit", "amount": 6.0}],
    })
    assert r.status_code == 400

    r = client.post(f"{base_url}/bills/", headers=cashier, json={
        "table_id": table_id, "customer_id": customer_id,
        "payment_methods": [{"type": "Cash", "amount": 5.0}, {"type": "Credit", "amount": 6.0}],
    })
    bill = jprint("POST /bills (credit)", r)
    assert bill["total"] == 11.0
    assert bill["credit_amount"] == 6.0

    r = client.get(f"{base_url}/customers/{customer_id}", headers=cashier)
    cust = jprint("GET /customers/{id}", r)
    assert cust["credit_balance"] == 6.0
    assert cust["credit_transactions"][0]["bill_id"] == bill["id"]

    r = client.post(f"{base_url}/customers/{customer_id}/credit-payment", headers=cashier, json={"amount": 10.0})
    assert r.status_code == 400

    r = client.post(f"{base_url}/customers/{customer_id}/credit-payment", headers=cashier, json={"amount": 4.0})
    assert jprint("POST credit-payment", r)["customer"]["credit_balance"] == 2.0

    r = client.get(f"{base_url}/customers/{customer_id}/credit-history", headers=cashier)
    kinds = [t["type"] for t in jprint("GET credit-history", r)["transactions"]]
    assert sorted(kinds) == ["Credit", "Payment"]

    r = client.get(f"{base_url}/customers/with-credit", headers=cashier)
    assert customer_id in [c["id"] for c in jprint("GET /customers/with-credit", r)]

    r = client.get(f"{base_url}/reports/credit-analytics", headers=auth_headers)
    assert jprint("GET /reports/credit-analytics", r)["outstanding"] >= 2.0

    r = client.delete(f"{base_url}/customers/{customer_id}", headers=auth_headers)
    assert r.status_code == 400


def test_expenses(client, base_url, auth_headers, staff):
    cashier = staff["Cashier"]
    r = client.post(f"{base_url}/expenses/", headers=cashier, json={
        "category": "Utilities", "amount": 120.0, "payment_method": "Bank Transfer", "notes": "power",
    })
    exp = jprint("POST /expenses", r)
    r = client.put(f"{base_url}/expenses/{exp['id']}", headers=cashier, json={"amount": 125.0})
    assert jprint("PUT /expenses", r)["amount"] == 125.0

    r = client.post(f"{base_url}/expenses/", headers=cashier, json={
        "category": "Nope", "amount": 1.0, "payment_method": "Cash",
    })
    assert r.status_code == 400

    r = client.get(f"{base_url}/expenses/reports", headers=cashier)
    report = jprint("GET /expenses/reports", r)
    assert any(c["category"] == "Utilities" and c["total"] >= 125.0 for c in report["by_category"])

    r = client.get(f"{base_url}/expenses/export", headers=cashier, params={"category": "Utilities", "payment_method": "all"})
    assert r.status_code == 200, r.text
    assert r.headers["content-type"].startswith("text/csv")
    assert "expenses-" in r.headers["content-disposition"]
    lines = r.text.splitlines()
    assert lines[0] == "Date,Category,Amount,Payment Method,Notes,Created By,Created At"
    row = next(line for line in lines[1:] if "power" in line)
    assert ",Utilities,125.00,Bank Transfer,power,Cashier " in row

    r = client.get(f"{base_url}/expenses/export", headers=cashier, params={"payment_method": "Cash"})
    assert "power" not in r.text

    r = client.get(f"{base_url}/expenses/export", headers=cashier, params={"category": "Utilities", "format": "json"})
    exported = jprint("GET /expenses/export json", r)
    assert exported["total_records"] == len(exported["data"]) >= 1

    r = client.delete(f"{base_url}/expenses/{exp['id']}", headers=auth_headers)
    jprint("DELETE /expenses", r)
    r = client.get(f"{base_url}/expenses/", headers=cashier)
    assert exp["id"] not in [e["id"] for e in jprint("GET /expenses", r)]


def test_reports(client, base_url, auth_headers, rng_suffix, staff, menu):
    waiter, cashier, kitchen = staff["Waiter"], staff["Cashier"], staff["Kitchen"]
    table_id = new_table(client, base_url, auth_headers, f"RP-{rng_suffix}")

    order_ids = []
    for qty in (3, 1):
        r = client.post(f"{base_url}/orders/", headers=waiter, json={
            "table_id": table_id, "items": [{"item_id": menu["cola"], "quantity": qty}],
        })
        order_ids.append(jprint("POST /orders", r)["id"])
        serve(client, base_url, kitchen, order_ids[-1])
    r = client.post(f"{base_url}/bills/", headers=cashier, json={
        "table_id": table_id, "payment_methods": [{"type": "Cash", "amount": 11.0}],
    })
    bill = jprint("POST /bills", r)
    assert bill["total"] == 11.0

    today = datetime.now(timezone.utc).date()

    # ===== monthly =====
    r = client.get(f"{base_url}/reports/monthly", headers=auth_headers,
                   params={"month": today.month, "year": today.year})
    monthly = jprint("GET /reports/monthly", r)
    assert len(monthly["daily_sales"]) == calendar.monthrange(today.year, today.month)[1]
    assert monthly["daily_sales"][str(today.day)] >= 11.0
    assert monthly["total_bills"] >= 1
    assert monthly["total_orders"] >= 2
    r = client.get(f"{base_url}/reports/monthly", headers=auth_headers, params={"month": 13})
    assert r.status_code == 400

    # ===== order history =====
    r = client.get(f"{base_url}/reports/order-history", headers=auth_headers,
                   params={"table_id": table_id, "limit": 1})
    page = jprint("GET /reports/order-history", r)
    assert page["total_count"] == 2
    assert (page["current_page"], page["total_pages"]) == (1, 2)
    assert page["has_next_page"] is True and page["has_prev_page"] is False
    assert page["orders"][0]["id"] == order_ids[-1]

    r = client.get(f"{base_url}/reports/order-history", headers=auth_headers,
                   params={"table_id": table_id, "limit": 1, "offset": 1})
    page = jprint("GET /reports/order-history page 2", r)
    assert page["current_page"] == 2
    assert page["has_next_page"] is False and page["has_prev_page"] is True

    r = client.get(f"{base_url}/reports/order-history", headers=auth_headers,
                   params={"table_id": table_id, "include_billed": "false"})
    assert jprint("GET /reports/order-history unbilled", r)["total_count"] == 0

    # ===== sales =====
    r = client.get(f"{base_url}/reports/sales", headers=auth_headers, params={
        "start_date": today.isoformat(), "end_date": today.isoformat(), "period": "monthly",
    })
    sales = jprint("GET /reports/sales", r)
    assert sales["summary"]["total_revenue"] >= 11.0
    assert [t["period"] for t in sales["trends"]] == [today.strftime("%Y-%m")]
    cola = next(i for i in sales["top_items"] if i["name"] == f"Cola-{rng_suffix}")
    assert cola["quantity"] >= 4
    r = client.get(f"{base_url}/reports/sales", headers=auth_headers, params={"period": "hourly"})
    assert r.status_code == 422

    # ===== export =====
    r = client.get(f"{base_url}/reports/export", headers=auth_headers,
                   params={"start_date": today.isoformat(), "end_date": today.isoformat()})
    assert r.status_code == 200, r.text
    assert r.headers["content-type"].startswith("text/csv")
    lines = r.text.splitlines()
    assert lines[0] == "SALES SUMMARY"
    assert lines[1] == "Date,Bill Number,Customer,Total,Tax,Discount,Payment Methods,Items"
    row = next(line for line in lines if bill["bill_number"] in line)
    assert ",Walk-in,11.00,1.00,0.00,Cash:11.00," in row
    assert f"Cola-{rng_suffix}(3);Cola-{rng_suffix}(1)" in row
    assert "EXPENSES SUMMARY" in lines
    assert "Date,Category,Amount,Payment Method,Notes,Created By" in lines

    r = client.get(f"{base_url}/reports/export", headers=auth_headers, params={"format": "json"})
    exported = jprint("GET /reports/export json", r)
    assert bill["id"] in [b["id"] for b in exported["bills"]]
    assert exported["summary"]["total_bills"] == len(exported["bills"])


def test_auth_guards(client, base_url, staff):
    r = client.get(f"{base_url}/orders/")
    assert r.status_code == 401
    r = client.get(f"{base_url}/orders/", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401
    r = client.get(f"{base_url}/auth/users/", headers=staff["Waiter"])
    assert r.status_code == 403
    # reports are for admins only
    for path in ("daily-sales", "sales", "export"):
        r = client.get(f"{base_url}/reports/{path}", headers=staff["Cashier"])
        assert r.status_code == 403, path
    r = client.get(f"{base_url}/auth/me", headers=staff["Kitchen"])
    assert jprint("GET /auth/me", r)["role"] == "Kitchen"


def test_printer_settings(client, base_url, auth_headers, rng_suffix):
    r = client.post(f"{base_url}/settings/printers", headers=auth_headers, json={
        "name": f"Bar-{rng_suffix}", "station": "KITCHEN", "connection_url": "console://", "is_default": False,
    })
    p = jprint("POST /settings/printers", r)
    assert p["station"] == "KITCHEN"
    r = client.patch(f"{base_url}/settings/printers/{p['id']}", headers=auth_headers, json={"name": "Bar"})
    assert jprint("PATCH /settings/printers", r)["name"] == "Bar"
    r = client.post(f"{base_url}/settings/printers", headers=auth_headers, json={
        "name": "x", "station": "GARDEN",
    })
    assert r.status_code == 400
