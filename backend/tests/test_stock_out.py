"""Stock out: FIFO drawdown, availability checks, edits and deletes of usage records."""


def _usage_ids(response):
    return [rec["id"] for rec in response.json()["records"]]


def test_record_edit_delete_scenario(client, auth_headers, receive, use, batch_state):
    """100 received; use 30; a use of 80 is refused; edit 30 -> 50; delete gives it all back."""
    batch = receive(100, batch_number="A")

    r = use(30)
    assert r.status_code == 200, r.text
    records = r.json()["records"]
    assert len(records) == 1
    assert records[0]["batch_id"] == batch["id"]
    assert records[0]["quantity_used"] == 30
    usage_id = records[0]["id"]
    assert batch_state(batch["id"])["quantity_remaining"] == 70

    r = use(80)
    assert r.status_code == 409
    data = r.json()
    assert data["code"] == "insufficient_stock"
    assert data["available"] == 70
    assert data["requested"] == 80
    assert batch_state(batch["id"])["quantity_remaining"] == 70

    r = client.patch(f"/usage/{usage_id}", json={"quantity_used": 50}, headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json()["quantity_used"] == 50
    assert batch_state(batch["id"])["quantity_remaining"] == 50

    r = client.delete(f"/usage/{usage_id}", headers=auth_headers)
    assert r.status_code == 200
    assert batch_state(batch["id"])["quantity_remaining"] == 100
    assert client.get("/usage", headers=auth_headers).json() == []


def test_next_batch_is_oldest_received(client, auth_headers, receive, oil_type):
    newer = receive(10, batch_number="NEW", received_at="2024-03-01T08:00:00")
    older = receive(10, batch_number="OLD", received_at="2024-01-15T08:00:00")
    r = client.get(
        "/stock/next-batch",
        params={"oil_type_id": oil_type["id"], "owner": "internal"},
        headers=auth_headers,
    )
    assert r.status_code == 200, r.text
    assert r.json()["id"] == older["id"]
    assert r.json()["id"] != newer["id"]


def test_next_batch_skips_empty_batches(client, auth_headers, receive, use, oil_type):
    old = receive(5, batch_number="OLD", received_at="2024-01-01T00:00:00")
    new = receive(5, batch_number="NEW", received_at="2024-02-01T00:00:00")
    assert use(5).status_code == 200
    r = client.get(
        "/stock/next-batch",
        params={"oil_type_id": oil_type["id"], "owner": "internal"},
        headers=auth_headers,
    )
    assert r.json()["id"] == new["id"]
    assert r.json()["id"] != old["id"]


def test_next_batch_not_found_without_stock(client, auth_headers, oil_type):
    r = client.get(
        "/stock/next-batch",
        params={"oil_type_id": oil_type["id"], "owner": "internal"},
        headers=auth_headers,
    )
    assert r.status_code == 404


def test_usage_spanning_batches_splits_oldest_first(client, auth_headers, receive, use, batch_state):
    first = receive(20, batch_number="A", received_at="2024-01-01T00:00:00")
    second = receive(50, batch_number="B", received_at="2024-02-01T00:00:00")

    r = use(45)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["quantity_used"] == 45
    split = [(rec["batch_id"], rec["quantity_used"]) for rec in data["records"]]
    assert split == [(first["id"], 20), (second["id"], 25)]
    assert batch_state(first["id"])["quantity_remaining"] == 0
    assert batch_state(second["id"])["quantity_remaining"] == 25


def test_usage_normalizes_registration(receive, use):
    receive(5)
    r = use(1, registration="  s7-xyz ")
    assert r.status_code == 200, r.text
    assert r.json()["records"][0]["aircraft_registration"] == "S7-XYZ"


def test_insufficient_stock_leaves_batches_untouched(receive, use, batch_state):
    a = receive(10, batch_number="A", received_at="2024-01-01T00:00:00")
    b = receive(15, batch_number="B", received_at="2024-02-01T00:00:00")
    r = use(26)
    assert r.status_code == 409
    assert r.json()["available"] == 25
    assert batch_state(a["id"])["quantity_remaining"] == 10
    assert batch_state(b["id"])["quantity_remaining"] == 15


def test_usage_rejects_non_positive_quantity(receive, use):
    receive(10)
    r = use(0)
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_quantity"


def test_external_stock_is_scoped_to_owner_airline(receive, use, airline, other_airline, batch_state):
    mine = receive(10, batch_number="HM", owner="external", owner_airline_id=airline["id"])
    theirs = receive(40, batch_number="EK", owner="external", owner_airline_id=other_airline["id"])
    internal = receive(100, batch_number="OWN")

    r = use(15, owner="external", owner_airline_id=airline["id"])
    assert r.status_code == 409
    assert r.json()["available"] == 10

    r = use(8, owner="external", owner_airline_id=airline["id"])
    assert r.status_code == 200, r.text
    assert batch_state(mine["id"])["quantity_remaining"] == 2
    assert batch_state(theirs["id"])["quantity_remaining"] == 40
    assert batch_state(internal["id"])["quantity_remaining"] == 100


def test_external_usage_needs_owner_airline(receive, use, airline):
    receive(10, owner="external", owner_airline_id=airline["id"])
    r = use(1, owner="external")
    assert r.status_code == 400
    assert r.json()["code"] == "missing_owner_party"


def test_usage_for_unknown_airline(client, auth_headers, receive, oil_type):
    receive(10)
    r = client.post("/usage", json={
        "oil_type_id": oil_type["id"],
        "owner": "internal",
        "airline_id": 999,
        "aircraft_registration": "S7-AAA",
        "quantity_used": 1,
    }, headers=auth_headers)
    assert r.status_code == 404


def test_edit_beyond_batch_is_rejected(client, auth_headers, receive, use, batch_state):
    batch = receive(40)
    usage_id = _usage_ids(use(30))[0]
    # 10 left + 30 back = 40 available to this record
    r = client.patch(f"/usage/{usage_id}", json={"quantity_used": 41}, headers=auth_headers)
    assert r.status_code == 409
    assert r.json()["available"] == 40
    assert r.json()["requested"] == 41
    assert batch_state(batch["id"])["quantity_remaining"] == 10

    r = client.patch(f"/usage/{usage_id}", json={"quantity_used": 40}, headers=auth_headers)
    assert r.status_code == 200
    assert batch_state(batch["id"])["quantity_remaining"] == 0


def test_edit_down_credits_batch(client, auth_headers, receive, use, batch_state):
    batch = receive(40)
    usage_id = _usage_ids(use(30))[0]
    r = client.patch(f"/usage/{usage_id}", json={"quantity_used": 5}, headers=auth_headers)
    assert r.status_code == 200
    assert batch_state(batch["id"])["quantity_remaining"] == 35


def test_edit_other_fields_keeps_quantities(client, auth_headers, receive, use, other_airline, batch_state):
    batch = receive(40)
    usage_id = _usage_ids(use(12))[0]
    r = client.patch(f"/usage/{usage_id}", json={
        "airline_id": other_airline["id"],
        "aircraft_registration": "a6-eda",
        "notes": "top-up after engine wash",
    }, headers=auth_headers)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["airline_id"] == other_airline["id"]
    assert data["airline_name"] == "Emirates"
    assert data["aircraft_registration"] == "A6-EDA"
    assert data["notes"] == "top-up after engine wash"
    assert data["quantity_used"] == 12
    assert batch_state(batch["id"])["quantity_remaining"] == 28


def test_edit_rejects_non_positive_quantity(client, auth_headers, receive, use):
    receive(10)
    usage_id = _usage_ids(use(3))[0]
    r = client.patch(f"/usage/{usage_id}", json={"quantity_used": -1}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_quantity"


def test_edit_and_delete_missing_usage(client, auth_headers):
    assert client.patch("/usage/777", json={"quantity_used": 1}, headers=auth_headers).status_code == 404
    assert client.delete("/usage/777", headers=auth_headers).status_code == 404


def test_delete_credits_only_its_own_batch(client, auth_headers, receive, use, batch_state):
    a = receive(10, batch_number="A", received_at="2024-01-01T00:00:00")
    b = receive(10, batch_number="B", received_at="2024-02-01T00:00:00")
    ids = _usage_ids(use(15))
    assert len(ids) == 2
    r = client.delete(f"/usage/{ids[1]}", headers=auth_headers)
    assert r.status_code == 200
    assert batch_state(a["id"])["quantity_remaining"] == 0
    assert batch_state(b["id"])["quantity_remaining"] == 10


def test_available_lists_fifo_batches(client, auth_headers, receive, oil_type):
    late = receive(7, batch_number="LATE", received_at="2024-05-01T00:00:00")
    early = receive(3, batch_number="EARLY", received_at="2024-04-01T00:00:00")
    r = client.get(
        "/stock/available",
        params={"oil_type_id": oil_type["id"], "owner": "internal"},
        headers=auth_headers,
    )
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["available"] == 10
    assert [b["id"] for b in data["batches"]] == [early["id"], late["id"]]


def test_usage_list_filters_and_names(client, auth_headers, receive, use):
    receive(50, batch_number="LOT-9")
    use(2, registration="s7-aaa")
    use(3, registration="s7-bbb")
    r = client.get("/usage", params={"aircraft_registration": "S7-BBB"}, headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert len(data) == 1
    assert data[0]["quantity_used"] == 3
    assert data[0]["aircraft_registration"] == "S7-BBB"
    assert data[0]["batch_number"] == "LOT-9"
    assert data[0]["oil_type_name"] == "Mobil Jet Oil II"
    assert data[0]["airline_name"] == "Air Seychelles"
    assert data[0]["staff_name"]


def test_summary_and_reconcile(client, auth_headers, receive, use, oil_type, sync_engine):
    a = receive(20, batch_number="A", received_at="2024-01-01T00:00:00")
    receive(30, batch_number="B", received_at="2024-02-01T00:00:00")
    assert use(25).status_code == 200

    r = client.get("/stock/summary", headers=auth_headers)
    assert r.status_code == 200
    levels = r.json()
    assert levels == [{
        "oil_type_id": oil_type["id"],
        "owner": "internal",
        "owner_airline_id": None,
        "batches_in_stock": 1,
        "quantity_received": 50,
        "quantity_remaining": 25,
    }]

    r = client.get("/stock/reconcile", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"balanced": True, "discrepancies": []}

    # Tamper with the stored balance behind the ledger's back
    with sync_engine.begin() as conn:
        conn.exec_driver_sql(
            "UPDATE oil_stock SET quantity_remaining = 3 WHERE id = ?", (a["id"],)
        )
    r = client.get("/stock/reconcile", headers=auth_headers)
    data = r.json()
    assert data["balanced"] is False
    assert data["discrepancies"] == [{
        "batch_id": a["id"],
        "batch_number": "A",
        "quantity_received": 20,
        "quantity_remaining": 3,
        "quantity_used": 20,
        "expected_remaining": 0,
    }]


def _next_batch(client, auth_headers, oil_type):
    r = client.get(
        "/stock/next-batch",
        params={"oil_type_id": oil_type["id"], "owner": "internal"},
        headers=auth_headers,
    )
    assert r.status_code == 200, r.text
    return r.json()


def test_fifo_compares_instants_across_offsets(client, auth_headers, receive, use, oil_type, batch_state):
    # 05:00+05:00 is 00:00 UTC, three hours before the other batch
    early = receive(10, batch_number="EARLY", received_at="2024-01-01T05:00:00+05:00")
    late = receive(10, batch_number="LATE", received_at="2024-01-01T03:00:00Z")
    assert _next_batch(client, auth_headers, oil_type)["id"] == early["id"]

    assert use(12).status_code == 200
    assert batch_state(early["id"])["quantity_remaining"] == 0
    assert batch_state(late["id"])["quantity_remaining"] == 8


def test_usage_time_with_offset_stored_as_utc(client, auth_headers, receive, oil_type, airline):
    receive(10)
    r = client.post("/usage", json={
        "oil_type_id": oil_type["id"],
        "owner": "internal",
        "airline_id": airline["id"],
        "aircraft_registration": "S7-AAA",
        "quantity_used": 1,
        "usage_at": "2024-06-01T12:30:00+02:00",
    }, headers=auth_headers)
    assert r.status_code == 200, r.text
    usage_id = r.json()["records"][0]["id"]
    assert r.json()["records"][0]["usage_at"].startswith("2024-06-01T10:30:00")

    r = client.patch(f"/usage/{usage_id}", json={"usage_at": "2024-06-02T00:15:00-03:00"}, headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json()["usage_at"].startswith("2024-06-02T03:15:00")


def test_same_receipt_time_draws_first_recorded_batch(client, auth_headers, receive, use, oil_type, batch_state):
    first = receive(10, batch_number="FIRST", received_at="2024-03-01T09:00:00")
    second = receive(10, batch_number="SECOND", received_at="2024-03-01T09:00:00")
    assert _next_batch(client, auth_headers, oil_type)["id"] == first["id"]

    r = use(15)
    assert r.status_code == 200, r.text
    split = [(rec["batch_id"], rec["quantity_used"]) for rec in r.json()["records"]]
    assert split == [(first["id"], 10), (second["id"], 5)]
    assert batch_state(second["id"])["quantity_remaining"] == 5


def test_fractional_quantity_is_invalid_quantity(client, auth_headers, receive, use):
    receive(10)
    r = use(2.5)
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_quantity"
    assert r.json()["field"] == "quantity_used"

    usage_id = _usage_ids(use(3))[0]
    r = client.patch(f"/usage/{usage_id}", json={"quantity_used": 1.5}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_quantity"
