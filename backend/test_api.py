"""HTTP surface: happy paths and the error mapping the counter UI relies on."""


def _receive(client, name="Paracetamol", batch="A", expiry="2024-02", quantity=3, price=10):
    resp = client.post("/inventory/stock", json={
        "name": name,
        "category": "Analgesic",
        "batch_number": batch,
        "expiry_date": expiry,
        "quantity": quantity,
        "selling_price": price,
    })
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_receive_stock_and_list(client):
    added = _receive(client)
    _receive(client, batch="B", expiry="2024-08", quantity=10, price=12)

    medicine_id = added["medicine"]["medicine_id"]
    assert added["batch"]["expiry_date"] == "2024-02-01"

    summary = client.get(f"/inventory/medicines/{medicine_id}").json()
    assert summary["total_stock"] == 13
    assert summary["batch_count"] == 2

    page = client.get("/inventory/medicines", params={"search": "para"}).json()
    assert page["total"] == 1
    assert page["items"][0]["name"] == "Paracetamol"

    batches = client.get(f"/inventory/medicines/{medicine_id}/batches").json()
    assert [b["batch_number"] for b in batches] == ["A", "B"]


def test_sell_endpoint_fefo(client):
    medicine_id = _receive(client)["medicine"]["medicine_id"]
    _receive(client, batch="B", expiry="2024-08", quantity=10, price=12)

    resp = client.post(f"/inventory/medicines/{medicine_id}/sell", json={"quantity": 5})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert [(d["batch_number"], d["quantity"]) for d in body["deductions"]] == [("A", 3), ("B", 2)]
    assert body["line_total"] == 50.0


def test_insufficient_stock_is_409_with_shortfall(client):
    medicine_id = _receive(client)["medicine"]["medicine_id"]

    resp = client.post(f"/inventory/medicines/{medicine_id}/sell", json={"quantity": 5})
    assert resp.status_code == 409
    body = resp.json()
    assert body["error"] == "insufficient_stock"
    assert body["shortfall"] == 2
    assert client.get(f"/inventory/medicines/{medicine_id}").json()["total_stock"] == 3


def test_unknown_ids_are_404(client):
    assert client.get("/inventory/medicines/999").status_code == 404
    assert client.patch("/inventory/batches/999", json={"quantity": 1}).status_code == 404
    assert client.get("/billing/sales/999").status_code == 404
    resp = client.get("/customers/999")
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_bad_input_is_400(client):
    resp = client.post("/inventory/stock", json={"name": "Dolo", "batch_number": "D1", "quantity": -2})
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"

    medicine_id = _receive(client)["medicine"]["medicine_id"]
    resp = client.post(f"/inventory/medicines/{medicine_id}/sell", json={"quantity": 0})
    assert resp.status_code == 400

    resp = client.get("/inventory/medicines", params={"stock_status": "plenty"})
    assert resp.status_code == 400


def test_quote_then_sale_with_credit(client):
    medicine_id = _receive(client)["medicine"]["medicine_id"]
    _receive(client, batch="B", expiry="2024-08", quantity=10, price=12)
    items = [{"medicine_id": medicine_id, "quantity": 5}]

    quote = client.post("/billing/quote", json={"items": items, "discount_type": "fixed", "discount_value": 100})
    assert quote.status_code == 200, quote.text
    assert quote.json()["lines"][0]["unit_price"] == 10.0
    assert quote.json()["totals"]["total"] == 0.0, "Discount is clamped to the subtotal"

    resp = client.post("/billing/sales", json={
        "items": items,
        "amount_paid": 20,
        "customer_name": "Ramesh Kumar",
        "customer_phone": "9876543210",
        "payment_method": "credit",
    })
    assert resp.status_code == 200, resp.text
    sale = resp.json()
    assert sale["total"] == 50.0
    assert sale["balance_due"] == 30.0
    assert sale["items"][0]["allocations"][0]["batch_number"] == "A"

    customers = client.get("/customers", params={"balance": "due"}).json()
    assert customers["total"] == 1
    customer_id = customers["items"][0]["id"]
    assert customers["items"][0]["balance"] == 30.0

    ledger = client.get(f"/customers/{customer_id}/ledger").json()
    assert ledger[0]["debit"] == 30.0 and ledger[0]["sale_id"] == sale["id"]

    paid = client.post(f"/customers/{customer_id}/payments", json={"amount": 30})
    assert paid.status_code == 200
    assert paid.json()["balance"] == 0.0

    receipt = client.get(f"/billing/sales/{sale['id']}/receipt").json()
    assert receipt["invoice_no"] == sale["invoice_no"]
    assert receipt["shop"]["shop_name"]


def test_sale_over_stock_is_409_and_changes_nothing(client):
    medicine_id = _receive(client)["medicine"]["medicine_id"]

    resp = client.post("/billing/sales", json={"items": [{"medicine_id": medicine_id, "quantity": 4}]})
    assert resp.status_code == 409
    assert resp.json()["shortfall"] == 1
    assert client.get("/billing/sales").json()["total"] == 0


def test_expenses_settings_and_dashboard(client):
    resp = client.post("/expenses", json={
        "description": "Shop rent", "amount": 12000, "category": "Rent", "date": "2024-06-01",
    })
    assert resp.status_code == 200, resp.text
    assert "Rent" in client.get("/expenses/categories").json()
    assert client.get("/expenses").json()["total"] == 1

    resp = client.patch("/settings", json={"shop_name": "Bharat Pharmacy"})
    assert resp.status_code == 200
    assert client.get("/settings").json()["shop_name"] == "Bharat Pharmacy"

    _receive(client, name="Glimepiride", quantity=4)
    board = client.get("/dashboard").json()
    assert board["stats"]["total_products"] == 1
    assert board["stats"]["total_expenses"] == 12000.0
    assert [row["name"] for row in board["low_stock"]] == ["Glimepiride"]
    assert len(board["sales_chart"]) == 7


def _post_raw(client, url, body):
    # NaN is not valid strict JSON; send it the way a lenient client would
    return client.post(url, content=body, headers={"Content-Type": "application/json"})


def test_nan_amounts_are_400(client):
    resp = _post_raw(client, "/billing/quote", '{"items": [], "discount_type": "fixed", "discount_value": NaN}')
    assert resp.status_code == 400, resp.text
    assert resp.json()["error"] == "validation_error"

    resp = _post_raw(
        client,
        "/inventory/stock",
        '{"name": "Dolo", "batch_number": "D1", "quantity": 5, "selling_price": NaN}',
    )
    assert resp.status_code == 400, resp.text
    assert client.get("/inventory/medicines").json()["total"] == 0


def test_null_price_on_batch_edit_is_400(client):
    batch_id = _receive(client)["batch"]["id"]

    resp = client.patch(f"/inventory/batches/{batch_id}", json={"selling_price": None})
    assert resp.status_code == 400
    resp = client.patch(f"/inventory/batches/{batch_id}", json={"quantity": 7})
    assert resp.status_code == 200
    assert resp.json()["selling_price"] == 10.0
