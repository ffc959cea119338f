"""
退房结算 API 测试
覆盖 /checkout 与 /bookings 端点
"""
from datetime import date, timedelta
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from rental.models.entities import BookingStatus
from rental.services.customer_ledger import CustomerLedger


class TestExecuteCheckout:
    """执行退房测试"""

    def test_checkout_success(self, client: TestClient, make_customer, make_booking, read_customer):
        customer_id = make_customer()
        booking_id = make_booking(customer_id=customer_id)

        response = client.post("/checkout", json={"booking_id": booking_id})

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "退房成功"
        assert data["booking_id"] == booking_id
        assert Decimal(data["settlement_amount"]) == Decimal("120")
        assert data["loyalty_points_earned"] == 12
        assert data["invoice_issued"] is True
        assert data["invoicing_failure"] is None
        assert read_customer(customer_id).loyalty_points == 12

    def test_checkout_not_found(self, client: TestClient):
        response = client.post("/checkout", json={"booking_id": 9999})

        assert response.status_code == 404
        detail = response.json()["detail"]
        assert detail["code"] == "NOT_FOUND"
        assert detail["retryable"] is False

    def test_checkout_twice_conflicts(self, client: TestClient, make_booking):
        booking_id = make_booking()

        assert client.post("/checkout", json={"booking_id": booking_id}).status_code == 200
        response = client.post("/checkout", json={"booking_id": booking_id})

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "NOT_CHECKED_IN"

    def test_checkout_storage_failure(self, client: TestClient, make_booking, read_booking,
                                      monkeypatch):
        booking_id = make_booking()

        def broken_accrue(self, customer_id, amount):
            raise OperationalError("UPDATE customers", {}, Exception("disk I/O error"))

        monkeypatch.setattr(CustomerLedger, "accrue", broken_accrue)
        response = client.post("/checkout", json={"booking_id": booking_id})

        assert response.status_code == 503
        detail = response.json()["detail"]
        assert detail["code"] == "STORAGE_FAILURE"
        assert detail["retryable"] is True
        assert read_booking(booking_id).status == BookingStatus.CHECKED_IN

    def test_checkout_customer_missing(self, client: TestClient, make_booking):
        booking_id = make_booking(customer_id=4242)

        response = client.post("/checkout", json={"booking_id": booking_id})

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "CUSTOMER_NOT_FOUND"
        assert detail["retryable"] is False

    def test_checkout_invalid_booking_id(self, client: TestClient):
        response = client.post("/checkout", json={"booking_id": 0})
        assert response.status_code == 422


class TestBatchCheckout:

    def test_batch(self, client: TestClient, make_booking):
        ok_id = make_booking()
        reserved_id = make_booking(status=BookingStatus.RESERVED)

        response = client.post("/checkout/batch", json=[ok_id, reserved_id])

        assert response.status_code == 200
        results = response.json()["results"]
        assert results[0]["success"] is True
        assert results[1]["success"] is False
        assert results[1]["error_code"] == "NOT_CHECKED_IN"


class TestCheckoutListings:

    def test_today_expected(self, client: TestClient, make_booking):
        due_today = make_booking(check_out_date=date.today())
        make_booking(check_out_date=date.today() + timedelta(days=1))

        response = client.get("/checkout/today-expected")

        assert response.status_code == 200
        assert [b["id"] for b in response.json()] == [due_today]

    def test_overdue(self, client: TestClient, make_booking):
        overdue = make_booking(check_out_date=date.today() - timedelta(days=3))

        response = client.get("/checkout/overdue")

        assert response.status_code == 200
        data = response.json()
        assert [b["id"] for b in data] == [overdue]
        assert data[0]["status"] == "CHECKED_IN"


class TestBookingEndpoints:

    def test_get_booking(self, client: TestClient, make_booking):
        booking_id = make_booking()

        response = client.get(f"/bookings/{booking_id}")

        assert response.status_code == 200
        assert response.json()["status"] == "CHECKED_IN"

    def test_get_booking_not_found(self, client: TestClient):
        assert client.get("/bookings/9999").status_code == 404

    def test_check_in_then_checkout(self, client: TestClient, make_booking):
        booking_id = make_booking(status=BookingStatus.RESERVED)

        assert client.post(f"/bookings/{booking_id}/check-in").status_code == 200
        assert client.post("/checkout", json={"booking_id": booking_id}).status_code == 200
        assert client.get(f"/bookings/{booking_id}").json()["status"] == "CHECKED_OUT"

    def test_cancel_checked_in_rejected(self, client: TestClient, make_booking):
        booking_id = make_booking()

        response = client.post(f"/bookings/{booking_id}/cancel")

        assert response.status_code == 400

    def test_cancel_reserved(self, client: TestClient, make_booking):
        booking_id = make_booking(status=BookingStatus.RESERVED)

        response = client.post(f"/bookings/{booking_id}/cancel")

        assert response.status_code == 200
        assert client.get(f"/bookings/{booking_id}").json()["status"] == "CANCELLED"


class TestHealth:

    def test_health(self, client: TestClient):
        assert client.get("/health").json()["status"] == "ok"
