import uuid

from app.models import Invoice, InvoiceEntry, PartnerOrder, PartnerOrderItem, Role, UserOrder, UserOrderItem
from app.services.invoice_service import render_invoice_html
from tests.conftest import auth_header, make_item, make_partner, make_user


INVOICES = "/api/v1/invoices"


async def _seed_sheet(db, *entries):
    invoice = Invoice(entries=[InvoiceEntry(key=k, value=v) for k, v in entries])
    db.add(invoice)
    await db.commit()
    return invoice


async def _seed_user_order(db, user, number="ORD-INV"):
    item = await make_item(db, "<b>Linen</b> Shirt", mrp=1200, discounted_price=None)
    db.add(UserOrder(
        order_number=number,
        user_id=user.id,
        total_amount=2616,
        payment_method="COD",
        invoice=[{"key": "gst", "value": 216}, {"key": "delivery fee", "value": 0}],
        items=[UserOrderItem(position=0, item_id=item.id, quantity=2, size="L", color="White")],
    ))
    await db.commit()


# ==================== Fee sheet ====================

async def test_create_then_append_fee_sheet(client, admin_headers):
    first = await client.post(
        f"{INVOICES}/", headers=admin_headers, json={"invoice": [{"key": " GST ", "value": 18}]}
    )
    second = await client.post(
        f"{INVOICES}/",
        headers=admin_headers,
        json={"invoice": [{"key": "Delivery Fee", "value": 49}, {"key": "platform fee", "value": 9}]},
    )

    assert first.status_code == 201
    assert first.json()["message"] == "Invoice created successfully"
    assert first.json()["data"]["invoice"][0]["key"] == "gst"
    assert second.status_code == 200
    assert second.json()["message"] == "Invoice entries added successfully"
    assert second.json()["data"]["id"] == first.json()["data"]["id"]
    assert [e["key"] for e in second.json()["data"]["invoice"]] == ["gst", "delivery fee", "platform fee"]


async def test_create_fee_sheet_rejects_empty_list(client, admin_headers):
    response = await client.post(f"{INVOICES}/", headers=admin_headers, json={"invoice": []})

    assert response.status_code == 400
    assert "Invoice must be a non-empty array" in response.json()["message"]


async def test_list_fee_sheets_when_empty(client):
    response = await client.get(f"{INVOICES}/")

    assert response.status_code == 404
    assert response.json()["message"] == "No invoices found"


async def test_list_fee_sheets_is_public(client, db):
    await _seed_sheet(db, ("gst", 18))

    response = await client.get(f"{INVOICES}/")

    assert response.status_code == 200
    assert response.json()["data"][0]["invoice"][0]["value"] == 18


async def test_fee_sheet_entry_lifecycle(client, db, admin_headers):
    invoice = await _seed_sheet(db, ("gst", 18))
    entry_id = invoice.entries[0].id

    added = await client.post(
        f"{INVOICES}/{invoice.id}/entries", headers=admin_headers, json={"key": "Packing", "value": 15}
    )
    assert [e["key"] for e in added.json()["data"]["invoice"]] == ["gst", "packing"]

    updated = await client.put(
        f"{INVOICES}/{invoice.id}/entries/{entry_id}", headers=admin_headers, json={"value": 12}
    )
    assert updated.json()["data"]["invoice"][0]["value"] == 12

    removed = await client.delete(f"{INVOICES}/{invoice.id}/entries/{entry_id}", headers=admin_headers)
    assert [e["key"] for e in removed.json()["data"]["invoice"]] == ["packing"]

    missing = await client.delete(f"{INVOICES}/{invoice.id}/entries/{entry_id}", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json()["message"] == "Invoice or entry not found"


async def test_delete_fee_sheet(client, db, admin_headers):
    invoice = await _seed_sheet(db, ("gst", 18), ("packing", 15))

    response = await client.delete(f"{INVOICES}/{invoice.id}", headers=admin_headers)
    listing = await client.get(f"{INVOICES}/")

    assert response.status_code == 200
    assert listing.status_code == 404


async def test_fee_sheet_changes_need_admin(client, shopper_headers):
    response = await client.post(
        f"{INVOICES}/", headers=shopper_headers, json={"invoice": [{"key": "gst", "value": 18}]}
    )

    assert response.status_code == 403


# ==================== Order invoices ====================

async def test_owner_reads_order_invoice(client, db, shopper, shopper_headers):
    await _seed_user_order(db, shopper)

    response = await client.get(f"{INVOICES}/orders/ORD-INV", headers=shopper_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["customer_name"] == "Shopper"
    assert data["payment_method"] == "COD"
    [line] = data["items"]
    assert line["price"] == 1200
    assert line["total"] == 2400
    assert line["size"] == "L"


async def test_other_user_cannot_read_order_invoice(client, db, shopper):
    await _seed_user_order(db, shopper)
    stranger = await make_user(db)

    response = await client.get(f"{INVOICES}/orders/ORD-INV", headers=auth_header(Role.USER, stranger))

    assert response.status_code == 403
    assert response.json()["message"] == "You are not allowed to view this invoice"


async def test_admin_reads_any_order_invoice(client, db, shopper, admin_headers):
    await _seed_user_order(db, shopper)

    response = await client.get(f"{INVOICES}/orders/ORD-INV", headers=admin_headers)

    assert response.status_code == 200


async def test_order_invoice_bad_type_and_missing_order(client, admin_headers):
    bad_type = await client.get(
        f"{INVOICES}/orders/ORD-INV", headers=admin_headers, params={"order_type": "vendor"}
    )
    missing = await client.get(f"{INVOICES}/orders/ORD-{uuid.uuid4().hex[:6]}", headers=admin_headers)

    assert bad_type.status_code == 400
    assert bad_type.json()["message"] == "Invalid order type. Use user or partner"
    assert missing.status_code == 404
    assert missing.json()["message"] == "Order not found"


async def test_partner_order_invoice_prices_per_unit(client, db):
    partner = await make_partner(db, name="Bulk Buyer")
    item = await make_item(db, "Polo")
    db.add(PartnerOrder(
        order_number="PORD-INV",
        partner_id=partner.id,
        is_wallet_payment=True,
        total_amount=6000,
        items=[PartnerOrderItem(
            position=0,
            item_id=item.id,
            total_quantity=20,
            total_price=6000,
            order_details=[
                {"color": "Black", "size_and_quantity": [{"size": "M", "quantity": 10}]},
                {"color": "Grey", "size_and_quantity": [{"size": "L", "quantity": 10}]},
            ],
        )],
    ))
    await db.commit()

    response = await client.get(
        f"{INVOICES}/orders/PORD-INV",
        headers=auth_header(Role.PARTNER, partner),
        params={"order_type": "partner"},
    )

    data = response.json()["data"]
    assert data["customer_name"] == "Bulk Buyer"
    assert data["payment_method"] == "Wallet"
    [line] = data["items"]
    assert line["price"] == 300
    assert line["size"] == "M, L"
    assert line["color"] == "Black, Grey"


async def test_order_invoice_document(client, db, shopper, shopper_headers):
    await _seed_user_order(db, shopper)

    response = await client.get(f"{INVOICES}/orders/ORD-INV/document", headers=shopper_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    page = response.text
    assert "&lt;b&gt;Linen&lt;/b&gt; Shirt" in page
    assert "Subtotal:" in page
    assert "gst:" in page
    assert "delivery fee:" not in page
    assert "₹2,616.00" in page


def test_render_invoice_html_subtotal():
    page = render_invoice_html({
        "order_id": "ORD-9",
        "order_type": "user",
        "created_at": None,
        "customer_name": "Asha",
        "items": [
            {"name": "Tee", "quantity": 3, "size": "M", "color": "Red", "price": 250.0, "total": 750.0},
            {"name": "Cap", "quantity": 1, "size": "N/A", "color": "N/A", "price": 99.5, "total": 99.5},
        ],
        "total_amount": 1002.41,
        "payment_method": "Online",
        "payment_status": "Paid",
        "order_status": "Delivered",
        "delivery_date": None,
        "invoice": [{"key": "Service Tax", "value": 152.91}],
    })

    assert '<span class="value">₹849.50</span>' in page
    assert "Service Tax:" in page
    assert "Customer:" in page
