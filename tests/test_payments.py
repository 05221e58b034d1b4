import pytest

import database
import payments
from conftest import ADDRESS, register

BANK = {"account_number": "1234567890", "ifsc_code": "SBIN0001234", "account_holder": "Furniture Co", "bank_name": "SBI"}


@pytest.fixture
def order(client, user, product):
    response = client.post(
        "/orders",
        json={"items": [{"product_id": product["id"], "quantity": 1}], "shipping_address": ADDRESS},
        headers=user,
    )
    return response.json()


@pytest.fixture
def payment_request(client, user, order):
    response = client.post("/payment-requests", json={"order_id": order["id"], "payment_method": "bank_transfer"}, headers=user)
    assert response.status_code == 201, response.text
    return response.json()


def test_payment_request_defaults_to_order_total(payment_request, order):
    assert payment_request["amount"] == order["total_price"]
    assert payment_request["status"] == "pending"


def test_duplicate_open_request_rejected(client, user, order, payment_request):
    response = client.post("/payment-requests", json={"order_id": order["id"], "payment_method": "upi"}, headers=user)
    assert response.status_code == 400


def test_request_for_someone_elses_order(client, order):
    stranger = register(client, name="Ravi", email="ravi@example.com")
    response = client.post("/payment-requests", json={"order_id": order["id"], "payment_method": "upi"}, headers=stranger)
    assert response.status_code == 403


def test_request_for_missing_order(client, user):
    response = client.post(
        "/payment-requests", json={"order_id": "64b000000000000000000000", "payment_method": "upi"}, headers=user
    )
    assert response.status_code == 404


def test_invalid_payment_method(client, user, order):
    response = client.post("/payment-requests", json={"order_id": order["id"], "payment_method": "bitcoin"}, headers=user)
    assert response.status_code == 422


def test_completing_request_marks_order_paid(client, user, admin, order, payment_request):
    response = client.put(
        f"/payment-requests/{payment_request['id']}/status",
        json={"status": "completed", "notes": "Verified"},
        headers=admin,
    )
    assert response.status_code == 200
    assert response.json()["notes"] == "Verified"

    paid = client.get(f"/orders/{order['id']}", headers=user).json()
    assert paid["is_paid"] is True
    assert paid["payment_result"]["id"] == payment_request["id"]


def test_rejected_request_leaves_order_unpaid_and_allows_new_one(client, user, admin, order, payment_request):
    client.put(f"/payment-requests/{payment_request['id']}/status", json={"status": "rejected"}, headers=admin)
    assert client.get(f"/orders/{order['id']}", headers=user).json()["is_paid"] is False
    response = client.post("/payment-requests", json={"order_id": order["id"], "payment_method": "upi"}, headers=user)
    assert response.status_code == 201


def test_closed_request_cannot_change(client, admin, payment_request):
    url = f"/payment-requests/{payment_request['id']}/status"
    client.put(url, json={"status": "cancelled"}, headers=admin)
    assert client.put(url, json={"status": "completed"}, headers=admin).status_code == 400


def test_stale_status_update_is_rejected(client, admin, payment_request, monkeypatch):
    stale = database.get_document("paymentrequest", payment_request["id"])
    url = f"/payment-requests/{payment_request['id']}/status"
    assert client.put(url, json={"status": "rejected"}, headers=admin).status_code == 200

    monkeypatch.setattr(payments, "get_request_or_404", lambda request_id: stale)
    response = client.put(url, json={"status": "completed"}, headers=admin)
    assert response.status_code == 409
    assert database.get_document("paymentrequest", payment_request["id"])["status"] == "rejected"


def test_status_update_requires_admin(client, user, payment_request):
    response = client.put(f"/payment-requests/{payment_request['id']}/status", json={"status": "completed"}, headers=user)
    assert response.status_code == 403


def test_list_and_get_requests(client, user, admin, payment_request):
    assert len(client.get("/payment-requests", headers=admin).json()) == 1
    assert client.get("/payment-requests", params={"status": "completed"}, headers=admin).json() == []
    assert client.get(f"/payment-requests/{payment_request['id']}", headers=user).status_code == 200
    stranger = register(client, name="Ravi", email="ravi@example.com")
    assert client.get(f"/payment-requests/{payment_request['id']}", headers=stranger).status_code == 403


def test_upload_payment_proof(client, user, payment_request):
    response = client.post(
        f"/payment-requests/{payment_request['id']}/proof",
        files={"file": ("receipt.png", b"proof", "image/png")},
        headers=user,
    )
    assert response.status_code == 200
    assert response.json()["payment_proof"].startswith("/uploads/payment-proofs/")


def test_no_active_settings(client):
    assert client.get("/payment-settings").status_code == 404


def test_only_one_active_setting(client, admin):
    first = client.post("/payment-settings", json=BANK, headers=admin).json()
    second = client.post("/payment-settings", json={**BANK, "account_number": "999"}, headers=admin).json()

    assert client.get("/payment-settings").json()["id"] == second["id"]
    records = {s["id"]: s["is_active"] for s in client.get("/payment-settings/all", headers=admin).json()}
    assert records == {first["id"]: False, second["id"]: True}

    client.put(f"/payment-settings/{first['id']}", json={"is_active": True}, headers=admin)
    assert client.get("/payment-settings").json()["id"] == first["id"]


def test_update_and_delete_settings(client, admin):
    created = client.post("/payment-settings", json=BANK, headers=admin).json()
    updated = client.put(f"/payment-settings/{created['id']}", json={"branch_name": "Fort"}, headers=admin).json()
    assert updated["branch_name"] == "Fort"
    assert updated["account_holder"] == "Furniture Co"

    assert client.delete(f"/payment-settings/{created['id']}", headers=admin).status_code == 200
    assert client.delete(f"/payment-settings/{created['id']}", headers=admin).status_code == 404
    assert client.get("/payment-settings").status_code == 404


def test_settings_writes_require_admin(client, user):
    assert client.post("/payment-settings", json=BANK, headers=user).status_code == 403
    assert client.get("/payment-settings/all", headers=user).status_code == 403
