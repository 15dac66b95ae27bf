def _create_stock(client, code, qty, **extra):
    r = client.post("/stock", json={"Code": code, "Name": code.title(), "Unit": "pcs",
                                    "UnitPrice": 100, "OpeningQuantity": qty, **extra})
    assert r.status_code == 201, r.text
    return r.json()["data"]


def _create_technician(client):
    r = client.post("/technicians", json={"Name": "Anan P."})
    assert r.status_code == 201, r.text
    return r.json()["data"]


def test_errors_use_the_envelope(client):
    r = client.get("/workorders/999")
    assert r.status_code == 404
    body = r.json()
    assert body["ok"] is False
    assert body["meta"]["code"] == "not_found"

    r = client.post("/workorders", json={"LicensePlate": "1AB-2345"})
    assert r.status_code == 422
    assert r.json()["meta"]["code"] == "validation_error"


def test_workorder_lifecycle_over_http(client):
    tech = _create_technician(client)
    pad = _create_stock(client, "BRK-PAD", 6)

    r = client.post("/workorders", json={
        "LicensePlate": "2CD-6789",
        "ProblemDescription": "Brakes squeal",
        "TechnicianID": tech["TechnicianID"],
        "EstimatedHours": 1.5,
        "parts": [{"StockItemID": pad["StockItemID"], "Name": "Brake pad set", "Quantity": 2, "Unit": "set"}],
    })
    assert r.status_code == 201, r.text
    wo = r.json()["data"]
    assert wo["Status_s"] == "Pending"
    assert wo["OrderNo"].startswith("RO-")
    assert len(wo["estimations"]) == 1
    wo_id = wo["WorkOrderID"]

    r = client.get(f"/workorders/by-number/{wo['OrderNo']}")
    assert r.json()["data"]["WorkOrderID"] == wo_id

    r = client.post(f"/workorders/{wo_id}/transition", json={"Status_s": "InProgress"})
    assert r.status_code == 200, r.text

    r = client.post(
        f"/workorders/{wo_id}/transition",
        json={"Status_s": "Completed",
              "dispositions": [{"PartName": "Brake pad set", "Disposition": "Dispose", "Quantity": 2}]},
        headers={"X-Actor": "anan"},
    )
    assert r.status_code == 200, r.text
    completion = r.json()["meta"]["completion"]
    assert completion["withdrawals"]["posted"] == [f"WO:{wo_id}:OUT:{pad['StockItemID']}"]
    assert completion["dispositions"]["disposed"] == ["Brake pad set"]

    r = client.get(f"/stock/{pad['StockItemID']}")
    assert r.json()["data"]["Quantity"] == 4.0

    r = client.get("/stock/txns", params={"stock_item_id": pad["StockItemID"], "txn_type": "Withdrawal"})
    rows = r.json()["data"]
    assert len(rows) == 1
    assert rows[0]["Actor"] == "anan"

    r = client.get(f"/stock/{pad['StockItemID']}/reconcile")
    assert r.json()["data"]["Balanced"] is True


def test_cancel_needs_confirm_header(client):
    r = client.post("/workorders", json={"LicensePlate": "3EF-1111", "ProblemDescription": "No start"})
    wo_id = r.json()["data"]["WorkOrderID"]

    r = client.post(f"/workorders/{wo_id}/transition", json={"Status_s": "Cancelled"})
    assert r.status_code == 409
    assert r.json()["meta"]["missing"] == "confirmation"

    r = client.post(
        f"/workorders/{wo_id}/transition",
        json={"Status_s": "Cancelled"},
        headers={"X-Confirm-Action": "Cancel Work Order"},
    )
    assert r.status_code == 200
    assert r.json()["data"]["Status_s"] == "Cancelled"


def test_start_without_assignment_is_conflict(client):
    r = client.post("/workorders", json={"LicensePlate": "4GH-2222", "ProblemDescription": "Flat tyre"})
    wo_id = r.json()["data"]["WorkOrderID"]

    r = client.post(f"/workorders/{wo_id}/transition", json={"Status_s": "InProgress"})
    assert r.status_code == 409
    assert r.json()["meta"]["missing"] == "technician_or_contractor"


def test_manual_out_beyond_stock_is_conflict(client):
    item = _create_stock(client, "BOLT-M8", 3)
    r = client.post("/stock/txns", json={"StockItemID": item["StockItemID"], "TxnType": "Withdrawal", "Quantity": 5})
    assert r.status_code == 409
    assert r.json()["meta"]["missing"] == "stock on hand"

    r = client.post("/stock/txns", json={"StockItemID": item["StockItemID"], "TxnType": "Withdrawal", "Quantity": 3})
    assert r.status_code == 201, r.text
    r = client.get("/stock/below-min")
    assert [s["Code"] for s in r.json()["data"]] == ["BOLT-M8"]


def test_requisition_receipt_over_http(client):
    item = _create_stock(client, "FLT-AIR", 0)
    r = client.post("/requisitions", json={
        "SupplierName": "Filter House",
        "lines": [{"StockItemID": item["StockItemID"], "Description": "Air filter", "Quantity": 8, "UnitPrice": 90}],
    })
    assert r.status_code == 201, r.text
    pr = r.json()["data"]
    assert pr["totals"]["Subtotal"] == 720.0
    pr_id = pr["RequisitionID"]

    client.post(f"/requisitions/{pr_id}/transition", json={"Status_s": "PendingApproval"})
    r = client.post(f"/requisitions/{pr_id}/transition", json={"Status_s": "Approved"})
    assert r.status_code == 422
    client.post(f"/requisitions/{pr_id}/transition", json={"Status_s": "Approved", "ApprovedBy": "Boss"})
    r = client.post(f"/requisitions/{pr_id}/transition", json={"Status_s": "Received"})
    assert r.status_code == 200, r.text
    assert len(r.json()["meta"]["receipts"]["posted"]) == 1

    r = client.get(f"/stock/{item['StockItemID']}")
    assert r.json()["data"]["Quantity"] == 8.0


def test_master_data_endpoints(client):
    r = client.post("/holidays", json={"HolidayDate": "2025-04-14", "Name": "Songkran"})
    assert r.status_code == 201
    r = client.post("/holidays", json={"HolidayDate": "2025-04-14", "Name": "Again"})
    assert r.status_code == 422

    r = client.post("/categories", json={"Code": "brk", "Name": "Brakes"})
    assert r.json()["data"]["Code"] == "BRK"
    r = client.post("/standard-tasks", json={"CategoryCode": "BRK", "Item": "Pads", "StandardHours": 1.5})
    assert r.status_code == 201
    r = client.post("/standard-tasks", json={"CategoryCode": "ZZZ", "Item": "Ghost", "StandardHours": 1})
    assert r.status_code == 404

    r = client.get("/holidays", params={"year": 2025})
    assert [h["Name"] for h in r.json()["data"]] == ["Songkran"]


def test_lookup_by_number_rejects_malformed_numbers(client):
    r = client.get("/workorders/by-number/RO-25-1")
    assert r.status_code == 422
    assert r.json()["meta"]["code"] == "validation_error"

    r = client.get("/workorders/by-number/PR-2025-00001")
    assert r.status_code == 422

    r = client.get("/workorders/by-number/RO-2025-99999")
    assert r.status_code == 404
