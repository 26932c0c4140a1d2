import uuid

import pytest

from conftest import DRIVER_ID, OWNER_ID, SATURDAY, at


@pytest.fixture
def spot_id(client):
    response = client.post("/spots/", json={
        "owner_id": OWNER_ID,
        "name": "Church Lane bay 3",
        "price_per_hour": 2.5,
        "available_days": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
        "time_slots": [{"start": "08:00", "end": "18:00"}],
    })
    assert response.status_code == 201
    return response.json()["id"]


def booking(spot_id, start, end, requester_id=DRIVER_ID):
    return {
        "spot_id": spot_id,
        "requester_id": requester_id,
        "start_time": start.isoformat(),
        "end_time": end.isoformat(),
    }


class TestSpots:
    def test_create_and_read_spot(self, client, spot_id):
        response = client.get(f"/spots/{spot_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["timezone"] == "UTC"
        assert body["is_available"] is True

    def test_rejects_unknown_weekday(self, client):
        response = client.post("/spots/", json={
            "owner_id": OWNER_ID, "name": "x", "price_per_hour": 1, "available_days": ["Funday"],
        })
        assert response.status_code == 422

    def test_unknown_spot(self, client):
        response = client.get(f"/spots/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_toggle_availability_blocks_bookings(self, client, spot_id):
        response = client.post(f"/spots/{spot_id}/toggle-availability", json={"is_available": False})
        assert response.json()["is_available"] is False

        response = client.post("/reservations/", json=booking(spot_id, at(9), at(10)))

        assert response.status_code == 409
        assert response.json()["code"] == "spot_unavailable"


class TestReservations:
    def test_book_pay_and_read(self, client, spot_id):
        created = client.post("/reservations/", json=booking(spot_id, at(9), at(11)))
        assert created.status_code == 201
        reservation = created.json()
        assert reservation["lifecycle_state"] == "pending-payment"
        assert reservation["total_amount"] == 5.0

        paid = client.post(f"/reservations/{reservation['id']}/payment-success",
                           json={"payment_reference": "pi_abc"})
        assert paid.status_code == 200
        assert paid.json()["lifecycle_state"] == "confirmed"

        fetched = client.get(f"/reservations/{reservation['id']}").json()
        assert fetched["payment_reference"] == "pi_abc"

    def test_each_error_kind_has_its_own_code(self, client, spot_id):
        client.post("/reservations/", json=booking(spot_id, at(9), at(10)))

        conflict = client.post("/reservations/", json=booking(spot_id, at(9, 30), at(10, 30), "driver-2"))
        weekend = client.post("/reservations/", json=booking(spot_id, at(9, day=SATURDAY), at(10, day=SATURDAY)))
        backwards = client.post("/reservations/", json=booking(spot_id, at(10), at(9)))

        assert (conflict.status_code, conflict.json()["code"]) == (409, "slot_conflict")
        assert (weekend.status_code, weekend.json()["code"]) == (400, "outside_availability_window")
        assert (backwards.status_code, backwards.json()["code"]) == (422, "invalid_interval")
        assert len({conflict.json()["detail"], weekend.json()["detail"], backwards.json()["detail"]}) == 3

    def test_adjacent_bookings(self, client, spot_id):
        assert client.post("/reservations/", json=booking(spot_id, at(9), at(10))).status_code == 201
        assert client.post("/reservations/", json=booking(spot_id, at(10), at(11), "driver-2")).status_code == 201

    def test_cancel_then_rebook(self, client, spot_id):
        reservation = client.post("/reservations/", json=booking(spot_id, at(9), at(10))).json()
        client.post(f"/reservations/{reservation['id']}/payment-success", json={})

        cancelled = client.post(f"/reservations/{reservation['id']}/cancel",
                                json={"user_id": DRIVER_ID, "role": "driver"})

        assert cancelled.json()["lifecycle_state"] == "cancelled"
        assert client.post("/reservations/", json=booking(spot_id, at(9), at(10), "driver-2")).status_code == 201

    def test_cancel_by_stranger(self, client, spot_id):
        reservation = client.post("/reservations/", json=booking(spot_id, at(9), at(10))).json()

        response = client.post(f"/reservations/{reservation['id']}/cancel",
                               json={"user_id": "someone-else", "role": "driver"})

        assert response.status_code == 403
        assert response.json()["code"] == "not_permitted"

    def test_payment_failure(self, client, spot_id):
        reservation = client.post("/reservations/", json=booking(spot_id, at(9), at(10))).json()

        response = client.post(f"/reservations/{reservation['id']}/payment-failure")

        assert response.json()["lifecycle_state"] == "cancelled"

    def test_sweep_expires_unpaid_bookings(self, client, clock, spot_id):
        reservation = client.post("/reservations/", json=booking(spot_id, at(9), at(10))).json()
        clock.advance(minutes=16)

        swept = client.post("/reservations/sweep").json()["advanced"]

        assert [(r["id"], r["lifecycle_state"]) for r in swept] == [(reservation["id"], "expired")]
        stale = client.post(f"/reservations/{reservation['id']}/payment-success", json={})
        assert stale.status_code == 409
        assert stale.json()["code"] == "invalid_transition"

    def test_listings_and_spot_view(self, client, spot_id):
        client.post("/reservations/", json=booking(spot_id, at(9), at(10)))
        client.post("/reservations/", json=booking(spot_id, at(12), at(13), "driver-2"))

        mine = client.get(f"/reservations/user/{DRIVER_ID}").json()
        owned = client.get(f"/reservations/owner/{OWNER_ID}").json()
        morning = client.get(f"/spots/{spot_id}/reservations",
                             params={"start": at(8).isoformat(), "end": at(11).isoformat()}).json()

        assert len(mine) == 1
        assert len(owned) == 2
        assert [r["requester_id"] for r in morning] == [DRIVER_ID]

    @pytest.mark.parametrize("bound", ["start", "end"])
    def test_spot_view_rejects_a_single_bound(self, client, spot_id, bound):
        client.post("/reservations/", json=booking(spot_id, at(9), at(10)))

        response = client.get(f"/spots/{spot_id}/reservations", params={bound: at(8).isoformat()})

        assert response.status_code == 422
        assert response.json()["code"] == "invalid_interval"

    def test_unknown_reservation(self, client):
        response = client.get(f"/reservations/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["code"] == "not_found"
