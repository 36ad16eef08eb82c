"""
Tests for BookingMapper

Tests cover:
- Field aliases across API versions and webhook formats
- Validation failures (missing id, missing dates, reversed dates)
- Currency inference, status mapping, guest counts
- Property / room type / unit placeholder resolution
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from conftest import booking_payload


@pytest.fixture
def mapper():
    from staysync.services.booking_mapper import BookingMapper
    return BookingMapper(default_currency="JPY")


class TestFieldAliases:
    """Equivalent payloads in different vocabularies normalize identically"""

    def test_webhook_and_api_vocabulary_agree(self, mapper):
        webhook = booking_payload()
        api = {
            "bookId": "B100",
            "propId": "P1",
            "roomTypeId": "R1",
            "roomUnitId": "U1",
            "guestName": "Jane Doe",
            "guestEmail": "JANE@x.com",
            "checkIn": "2025-03-01",
            "checkOut": "2025-03-03",
            "adults": "2",
            "totalAmount": "200",
            "currency": "jpy",
        }

        assert mapper.normalize(webhook).as_dict() == mapper.normalize(api).as_dict()

    def test_primary_alias_wins(self, mapper):
        mapped = mapper.normalize({"id": "B1", "bookingId": "B2", "arrival": "2025-03-01"})
        assert mapped.external_booking_id == "B1"

    def test_blank_alias_falls_through(self, mapper):
        mapped = mapper.normalize({"id": "B1", "arrival": " ", "checkIn": "2025-03-01"})
        assert mapped.check_in_date == date(2025, 3, 1)

    def test_numeric_ids_become_strings(self, mapper):
        mapped = mapper.normalize({"id": 12345, "propertyId": 9, "arrival": "2025-03-01"})
        assert mapped.external_booking_id == "12345"
        assert mapped.external_property_id == "9"

    def test_full_name_split_on_first_space(self, mapper):
        mapped = mapper.normalize({"id": "B1", "arrival": "2025-03-01", "guestName": "Mary Ann Smith"})
        assert mapped.guest_given_name == "Mary"
        assert mapped.guest_family_name == "Ann Smith"

    def test_datetime_strings_truncated_to_date(self, mapper):
        mapped = mapper.normalize({"id": "B1", "arrival": "2025-03-01T15:00:00", "departure": "2025-03-03"})
        assert mapped.check_in_date == date(2025, 3, 1)


class TestValidation:

    def test_non_object_payload(self, mapper):
        from staysync.services.exceptions import ValidationError
        with pytest.raises(ValidationError):
            mapper.normalize(["B1"])

    def test_missing_booking_id(self, mapper):
        from staysync.services.exceptions import ValidationError
        with pytest.raises(ValidationError):
            mapper.normalize({"arrival": "2025-03-01"})

    def test_missing_both_dates(self, mapper):
        from staysync.services.exceptions import ValidationError
        with pytest.raises(ValidationError):
            mapper.normalize({"id": "B1"})

    def test_check_out_before_check_in(self, mapper):
        from staysync.services.exceptions import ValidationError
        with pytest.raises(ValidationError):
            mapper.normalize({"id": "B1", "arrival": "2025-03-05", "departure": "2025-03-01"})

    def test_one_date_is_enough(self, mapper):
        mapped = mapper.normalize({"id": "B1", "departure": "2025-03-05"})
        assert mapped.check_in_date is None
        assert mapped.check_out_date == date(2025, 3, 5)

    def test_bad_numbers_are_dropped_not_fatal(self, mapper):
        mapped = mapper.normalize({"id": "B1", "arrival": "2025-03-01", "numAdult": "two", "price": "n/a"})
        assert mapped.num_adults is None
        assert mapped.total_amount is None


class TestDerivedFields:

    @pytest.mark.parametrize("currency,country,expected", [
        ("usd", None, "USD"),
        (None, "us", "USD"),
        (None, "DE", "EUR"),
        (None, "ZZ", "JPY"),
        (None, None, "JPY"),
    ])
    def test_currency_inference(self, mapper, currency, country, expected):
        assert mapper.infer_currency(currency, country) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("cancelled", "cancelled"),
        ("Canceled", "cancelled"),
        ("confirmed", "confirmed"),
        ("new", "new"),
        ("request", "new"),
        (None, None),
    ])
    def test_status_mapping(self, raw, expected):
        from staysync.services.booking_mapper import map_status
        assert map_status(raw) == expected

    def test_num_guests_sums_adults_and_children(self, mapper):
        mapped = mapper.normalize({"id": "B1", "arrival": "2025-03-01", "numAdult": 2, "numChild": 1})
        assert mapped.num_guests == 3

    def test_num_guests_at_least_one(self, mapper):
        mapped = mapper.normalize({"id": "B1", "arrival": "2025-03-01", "numAdult": 0})
        assert mapped.num_guests == 1

    def test_num_guests_absent_without_counts(self, mapper):
        assert mapper.normalize({"id": "B1", "arrival": "2025-03-01"}).num_guests is None

    def test_amount_is_decimal(self, mapper):
        assert mapper.normalize(booking_payload()).total_amount == Decimal("200")

    def test_modified_time_from_envelope(self, mapper):
        payload = booking_payload()
        payload["body"] = {"timeStamp": "2025-02-20T10:00:00Z"}
        assert mapper.normalize(payload).source_modified_at == datetime(2025, 2, 20, 10, 0)

    def test_modified_time_converted_to_utc(self, mapper):
        mapped = mapper.normalize(booking_payload(modifiedTime="2025-02-20T19:00:00+09:00"))
        assert mapped.source_modified_at == datetime(2025, 2, 20, 10, 0)

    def test_extract_booking_id(self):
        from staysync.services.booking_mapper import extract_booking_id
        assert extract_booking_id(booking_payload()) == "B100"
        assert extract_booking_id({"bookingId": 77}) == "77"
        assert extract_booking_id({"event": "ping"}) is None
        assert extract_booking_id("nonsense") is None


class TestHierarchyResolution:
    """Unknown external ids become placeholders flagged for setup"""

    def test_placeholders_created(self, mapper, db):
        from staysync.models import Property, RoomType, RoomUnit, PLACEHOLDER_ADDRESS

        mapped = mapper.map(db, booking_payload())
        db.commit()

        prop = db.get(Property, mapped.property_id)
        assert prop.external_id == "P1"
        assert prop.name == "Property P1"
        assert prop.address == PLACEHOLDER_ADDRESS
        assert prop.requires_setup is True

        room_type = db.get(RoomType, mapped.room_type_id)
        assert room_type.property_id == prop.id
        assert room_type.name == "Room R1"

        unit = db.get(RoomUnit, mapped.room_unit_id)
        assert unit.room_type_id == room_type.id
        assert unit.unit_number == "U1"
        assert unit.requires_setup is True

    def test_same_external_ids_resolve_to_same_rows(self, mapper, db):
        from staysync.models import Property

        first = mapper.map(db, booking_payload())
        second = mapper.map(db, booking_payload(id="B200"))
        db.commit()

        assert first.property_id == second.property_id
        assert first.room_unit_id == second.room_unit_id
        assert db.query(Property).count() == 1

    def test_existing_property_is_not_overwritten(self, mapper, db):
        from staysync.models import Property

        db.add(Property(external_id="P1", name="Harbour View", address="1-2-3 Minato", requires_setup=False))
        db.commit()

        mapped = mapper.map(db, booking_payload(propertyName="Something Else"))

        prop = db.get(Property, mapped.property_id)
        assert prop.name == "Harbour View"
        assert prop.requires_setup is False

    def test_room_ids_scoped_per_property(self, mapper, db):
        first = mapper.map(db, booking_payload(propertyId="P1"))
        second = mapper.map(db, booking_payload(id="B200", propertyId="P2"))

        assert first.room_type_id != second.room_type_id

    def test_missing_level_stops_resolution(self, mapper, db):
        mapped = mapper.map(db, booking_payload(roomId=None))

        assert mapped.property_id is not None
        assert mapped.room_type_id is None
        assert mapped.room_unit_id is None

    def test_no_property_resolves_nothing(self, mapper, db):
        mapped = mapper.map(db, booking_payload(propertyId=None))
        assert (mapped.property_id, mapped.room_type_id, mapped.room_unit_id) == (None, None, None)
