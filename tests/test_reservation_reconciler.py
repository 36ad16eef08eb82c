"""
Tests for ReservationReconciler

Tests cover:
- Create assigns id and check-in token once
- Updates keep identity and token, and only touch fields present in the payload
- Out-of-order updates are skipped
- Cancellation of known and unknown bookings, recording its modification time
- Reservation.guest_name alongside the property relationship
"""

from datetime import datetime

import pytest

from conftest import booking_payload


@pytest.fixture
def mapper():
    from staysync.services.booking_mapper import BookingMapper
    return BookingMapper(default_currency="JPY")


@pytest.fixture
def reconciler():
    from staysync.services.reservation_reconciler import ReservationReconciler
    return ReservationReconciler()


def apply(db, mapper, reconciler, payload):
    result = reconciler.upsert_from_mapped(db, mapper.map(db, payload))
    db.commit()
    return result


class TestCreate:

    def test_create_assigns_token_and_defaults(self, db, mapper, reconciler):
        result = apply(db, mapper, reconciler, booking_payload())

        assert result.action == "created"
        reservation = result.reservation
        assert reservation.external_booking_id == "B100"
        assert reservation.status == "new"
        assert reservation.num_guests == 2
        assert len(reservation.check_in_token) >= 32
        assert reservation.guest_name == "Jane Doe"
        assert reservation.room_unit_id is not None

    def test_tokens_are_unique_per_reservation(self, db, mapper, reconciler):
        first = apply(db, mapper, reconciler, booking_payload())
        second = apply(db, mapper, reconciler, booking_payload(id="B200"))

        assert first.reservation.check_in_token != second.reservation.check_in_token

    def test_num_guests_defaults_to_one(self, db, mapper, reconciler):
        result = apply(db, mapper, reconciler, booking_payload(numAdult=None))
        assert result.reservation.num_guests == 1


class TestUpdate:

    def test_update_keeps_identity_and_token(self, db, mapper, reconciler):
        created = apply(db, mapper, reconciler, booking_payload())
        reservation_id = created.reservation.id
        token = created.reservation.check_in_token

        updated = apply(db, mapper, reconciler, booking_payload(departure="2025-03-05", numAdult=3))

        assert updated.action == "updated"
        assert updated.reservation.id == reservation_id
        assert updated.reservation.check_in_token == token
        assert updated.reservation.check_out_date.isoformat() == "2025-03-05"
        assert updated.reservation.num_guests == 3

    def test_absent_fields_keep_staff_edits(self, db, mapper, reconciler):
        """A payload without phone or requests must not blank them"""
        created = apply(db, mapper, reconciler, booking_payload())
        created.reservation.guest_phone = "+81-90-0000-0000"
        created.reservation.special_requests = "late arrival"
        db.commit()

        updated = apply(db, mapper, reconciler, booking_payload(price=250))

        assert updated.reservation.guest_phone == "+81-90-0000-0000"
        assert updated.reservation.special_requests == "late arrival"
        assert str(updated.reservation.total_amount) in ("250", "250.00")

    def test_status_left_alone_when_absent(self, db, mapper, reconciler):
        apply(db, mapper, reconciler, booking_payload(status="confirmed"))
        updated = apply(db, mapper, reconciler, booking_payload(price=300))
        assert updated.reservation.status == "confirmed"

    def test_single_row_per_booking(self, db, mapper, reconciler):
        from staysync.models import Reservation

        for _ in range(3):
            apply(db, mapper, reconciler, booking_payload())

        assert db.query(Reservation).count() == 1


class TestOutOfOrder:

    def test_older_update_is_skipped(self, db, mapper, reconciler):
        apply(db, mapper, reconciler, booking_payload(modifiedTime="2025-02-20T12:00:00Z", price=300))

        result = apply(db, mapper, reconciler, booking_payload(modifiedTime="2025-02-20T11:00:00Z", price=100))

        assert result.action == "stale"
        assert result.reservation.total_amount == 300
        assert result.reservation.source_modified_at == datetime(2025, 2, 20, 12, 0)

    def test_newer_update_applies(self, db, mapper, reconciler):
        apply(db, mapper, reconciler, booking_payload(modifiedTime="2025-02-20T11:00:00Z"))
        result = apply(db, mapper, reconciler, booking_payload(modifiedTime="2025-02-20T12:00:00Z", price=300))

        assert result.action == "updated"
        assert result.reservation.source_modified_at == datetime(2025, 2, 20, 12, 0)

    def test_update_without_timestamp_applies(self, db, mapper, reconciler):
        apply(db, mapper, reconciler, booking_payload(modifiedTime="2025-02-20T11:00:00Z"))
        result = apply(db, mapper, reconciler, booking_payload(price=300))

        assert result.action == "updated"


class TestCancel:

    def test_cancel_known_booking(self, db, mapper, reconciler):
        created = apply(db, mapper, reconciler, booking_payload())

        result = reconciler.cancel(db, "B100")
        db.commit()

        assert result.action == "cancelled"
        assert result.reservation_id == created.reservation.id
        assert reconciler.get(db, created.reservation.id).status == "cancelled"

    def test_cancel_is_idempotent(self, db, mapper, reconciler):
        apply(db, mapper, reconciler, booking_payload())

        reconciler.cancel(db, "B100")
        result = reconciler.cancel(db, "B100")

        assert result.action == "cancelled"

    def test_cancel_records_newer_modification_time(self, db, mapper, reconciler):
        apply(db, mapper, reconciler, booking_payload(modifiedTime="2025-02-20T10:00:00Z"))

        result = reconciler.cancel(db, "B100", datetime(2025, 2, 20, 12, 0))
        db.commit()

        assert result.reservation.source_modified_at == datetime(2025, 2, 20, 12, 0)
        late = apply(db, mapper, reconciler, booking_payload(status="confirmed", modifiedTime="2025-02-20T11:00:00Z"))
        assert late.action == "stale"
        assert late.reservation.status == "cancelled"

    def test_cancel_keeps_newer_stored_time(self, db, mapper, reconciler):
        apply(db, mapper, reconciler, booking_payload(modifiedTime="2025-02-20T12:00:00Z"))

        result = reconciler.cancel(db, "B100", datetime(2025, 2, 20, 10, 0))

        assert result.action == "cancelled"
        assert result.reservation.status == "cancelled"
        assert result.reservation.source_modified_at == datetime(2025, 2, 20, 12, 0)

    def test_cancel_unknown_booking_is_noop(self, db, reconciler):
        from staysync.models import Reservation

        result = reconciler.cancel(db, "NOPE")

        assert result.action == "not_found"
        assert result.reservation_id is None
        assert db.query(Reservation).count() == 0


class TestLookups:

    def test_get_by_check_in_token(self, db, mapper, reconciler):
        created = apply(db, mapper, reconciler, booking_payload())

        found = reconciler.get_by_check_in_token(db, created.reservation.check_in_token)

        assert found.id == created.reservation.id
        assert reconciler.get_by_check_in_token(db, "wrong") is None
        assert reconciler.get_by_check_in_token(db, "") is None

    def test_get_by_external_id(self, db, mapper, reconciler):
        created = apply(db, mapper, reconciler, booking_payload())
        assert reconciler.get_by_external_id(db, "B100").id == created.reservation.id


class TestReservationModel:
    """The property relationship must not shadow the builtin for guest_name"""

    def test_guest_name_joins_present_parts(self):
        from staysync.models import Reservation

        assert Reservation(guest_given_name="Jane", guest_family_name="Doe").guest_name == "Jane Doe"
        assert Reservation(guest_given_name="Jane").guest_name == "Jane"
        assert Reservation().guest_name == ""

    def test_property_is_a_relationship(self, db, mapper, reconciler):
        from staysync.models import Property

        result = apply(db, mapper, reconciler, booking_payload())

        assert isinstance(result.reservation.property, Property)
        assert result.reservation.property.external_id == "P1"
        assert result.reservation.guest_name == "Jane Doe"
