"""
Tests for concurrent writers against a file-backed SQLite database

Tests cover:
- Racing placeholder creation leaves one Property / RoomType / RoomUnit
- Racing duplicate webhook deliveries log one event and one reservation
"""

import json
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import booking_payload


WORKERS = 8


@pytest.fixture
def file_engine(tmp_path):
    from staysync.database import Base, build_engine

    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_sessions(file_engine):
    from staysync.database import build_session_factory
    return build_session_factory(file_engine)


def count(session_factory, model):
    db = session_factory()
    try:
        return db.query(model).count()
    finally:
        db.close()


class TestPlaceholderRace:

    def test_concurrent_mapping_creates_one_placeholder_each(self, file_sessions):
        from staysync.models import Property, RoomType, RoomUnit
        from staysync.services.booking_mapper import BookingMapper

        mapper = BookingMapper()
        barrier = threading.Barrier(WORKERS)

        def map_booking(i):
            db = file_sessions()
            try:
                barrier.wait()
                mapped = mapper.map(db, booking_payload(id=f"B{i}"))
                db.commit()
                return mapped.property_id, mapped.room_type_id, mapped.room_unit_id
            finally:
                db.close()

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            results = list(pool.map(map_booking, range(WORKERS)))

        assert len(set(results)) == 1
        assert count(file_sessions, Property) == 1
        assert count(file_sessions, RoomType) == 1
        assert count(file_sessions, RoomUnit) == 1

    def test_concurrent_insert_or_get_has_one_winner(self, file_sessions):
        from staysync.models import Property
        from staysync.utils.db_helpers import insert_or_get

        barrier = threading.Barrier(WORKERS)

        def create(_):
            db = file_sessions()
            try:
                barrier.wait()
                prop, created = insert_or_get(db, Property, {"external_id": "P1"}, {"name": "Property P1"})
                db.commit()
                return prop.id, created
            finally:
                db.close()

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            results = list(pool.map(create, range(WORKERS)))

        assert len({prop_id for prop_id, _ in results}) == 1
        assert [created for _, created in results].count(True) == 1
        assert count(file_sessions, Property) == 1


class TestDuplicateDeliveryRace:

    def test_concurrent_duplicates_apply_once(self, file_sessions):
        from staysync.models import Reservation, WebhookEvent
        from staysync.services.booking_mapper import BookingMapper
        from staysync.services.reservation_reconciler import ReservationReconciler
        from staysync.services.webhook_ingestor import WebhookIngestor

        ingestor = WebhookIngestor(file_sessions, BookingMapper(), ReservationReconciler())
        body = json.dumps(booking_payload()).encode("utf-8")
        barrier = threading.Barrier(WORKERS)

        def deliver(_):
            barrier.wait()
            return ingestor.handle(body)

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            results = list(pool.map(deliver, range(WORKERS)))

        actions = sorted(result.action for result in results)
        assert actions == ["created"] + ["duplicate"] * (WORKERS - 1)
        assert all(result.success for result in results)
        assert count(file_sessions, WebhookEvent) == 1
        assert count(file_sessions, Reservation) == 1
