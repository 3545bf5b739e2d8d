from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from clinic_booking.auth.jwt_handler import create_access_token
from clinic_booking.database import get_db, session_scope
from clinic_booking.main import app
from clinic_booking.models.booking import Booking
from clinic_booking.schemas import CreateDoctorRequest
from clinic_booking.services import booking_service, doctor_service, slot_service


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    return {'Authorization': f"Bearer {create_access_token('admin@clinic.test', 'admin')}"}


@pytest.fixture
def seeded_slot(session_factory):
    with session_scope(session_factory) as db:
        doctor = doctor_service.create_doctor(db, CreateDoctorRequest(name='Dr. House', specialization='Diagnostics'))
        return slot_service.create_slot(db, doctor.id, datetime(2025, 1, 1, 9, 0), datetime(2025, 1, 1, 9, 30))


def test_post_booking_confirms_slot(client, seeded_slot) -> None:
    response = client.post('/bookings', json={'slot_id': seeded_slot.id, 'user_name': 'Alan Turing'})

    assert response.status_code == 200
    body = response.json()
    assert body['slot_id'] == seeded_slot.id
    assert body['status'] == 'CONFIRMED'
    assert body['user_name'] == 'Alan Turing'


def test_post_booking_twice_returns_conflict(client, seeded_slot) -> None:
    client.post('/bookings', json={'slot_id': seeded_slot.id, 'user_name': 'First'})

    response = client.post('/bookings', json={'slot_id': seeded_slot.id, 'user_name': 'Second'})

    assert response.status_code == 409
    assert response.json() == {'error': 'Slot already booked'}


def test_post_booking_for_missing_slot_returns_not_found(client) -> None:
    response = client.post('/bookings', json={'slot_id': 999, 'user_name': 'Nobody'})

    assert response.status_code == 404
    assert response.json() == {'error': 'Slot not found'}


def test_post_booking_missing_fields_returns_bad_request(client) -> None:
    response = client.post('/bookings', json={'user_name': 'No Slot'})

    assert response.status_code == 400
    assert 'slot_id' in response.json()['error']


def test_admin_routes_require_admin_token(client) -> None:
    user_token = create_access_token('patient@clinic.test', 'user')

    assert client.get('/bookings').status_code == 401
    assert client.get('/bookings', headers={'Authorization': 'Bearer not-a-token'}).status_code == 401

    forbidden = client.get('/bookings', headers={'Authorization': f'Bearer {user_token}'})
    assert forbidden.status_code == 403
    assert forbidden.json() == {'error': 'Access denied. Admin role required.'}


def test_list_and_cancel_booking_as_admin(client, admin_headers, seeded_slot) -> None:
    created = client.post('/bookings', json={'slot_id': seeded_slot.id, 'user_name': 'Alan Turing'}).json()

    listed = client.get('/bookings', headers=admin_headers)
    assert listed.status_code == 200
    assert [booking['id'] for booking in listed.json()] == [created['id']]
    assert listed.json()[0]['doctor_name'] == 'Dr. House'

    cancelled = client.delete(f"/bookings/{created['id']}", headers=admin_headers)
    assert cancelled.status_code == 200
    assert cancelled.json() == {'success': True}

    missing = client.delete(f"/bookings/{created['id']}", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json() == {'error': 'Booking not found'}


def test_user_bookings_route_is_public(client, seeded_slot) -> None:
    client.post('/bookings', json={'slot_id': seeded_slot.id, 'user_name': 'Alan Turing'})

    response = client.get('/bookings/user/alan turing')

    assert response.status_code == 200
    assert [booking['user_name'] for booking in response.json()] == ['Alan Turing']


def test_expire_route_reports_expired_bookings(client, admin_headers, session_factory, seeded_slot) -> None:
    with session_scope(session_factory) as db:
        db.add(Booking(
            slot_id=seeded_slot.id,
            doctor_id=seeded_slot.doctor_id,
            user_name='Stale Patient',
            status='PENDING',
            created_at=datetime(2020, 1, 1, 0, 0),
        ))
        db.commit()

    first = client.post('/bookings/expire?threshold_minutes=2', headers=admin_headers)
    second = client.post('/bookings/expire?threshold_minutes=2', headers=admin_headers)

    assert first.status_code == 200
    assert first.json()['expired'] == 1
    assert first.json()['bookings'][0]['status'] == 'FAILED'
    assert second.json() == {'expired': 0, 'bookings': []}


def test_create_slot_and_list_available(client, admin_headers, session_factory) -> None:
    with session_scope(session_factory) as db:
        doctor = doctor_service.create_doctor(db, CreateDoctorRequest(name='Dr. Slot', specialization='GP'))

    created = client.post(
        '/slots',
        json={'doctor_id': doctor.id, 'start_time': '2025-02-03T10:00:00', 'end_time': '2025-02-03T10:30:00'},
        headers=admin_headers,
    )
    assert created.status_code == 201
    assert created.json()['is_booked'] is False

    available = client.get('/slots/available')
    assert [slot['id'] for slot in available.json()] == [created.json()['id']]

    searched = client.get('/slots/search', params={'doctor_id': doctor.id, 'date': '2025-02-03'})
    assert [slot['id'] for slot in searched.json()] == [created.json()['id']]


def test_create_slot_missing_fields_returns_bad_request(client, admin_headers) -> None:
    response = client.post('/slots', json={'doctor_id': 1}, headers=admin_headers)

    assert response.status_code == 400


def test_create_slot_with_inverted_window_returns_bad_request(client, admin_headers, seeded_slot) -> None:
    response = client.post(
        '/slots',
        json={
            'doctor_id': seeded_slot.doctor_id,
            'start_time': '2025-02-03T11:00:00',
            'end_time': '2025-02-03T10:00:00',
        },
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json() == {'error': 'Slot end time must be after its start time.'}


def test_paginated_slots_route(client, admin_headers, session_factory, seeded_slot) -> None:
    with session_scope(session_factory) as db:
        later = slot_service.create_slot(
            db, seeded_slot.doctor_id, datetime(2025, 1, 1, 10, 0), datetime(2025, 1, 1, 10, 30)
        )

    response = client.get('/slots/paginated/list?page=1&limit=1&sort=start_time&order=desc', headers=admin_headers)

    assert response.status_code == 200
    assert [slot['id'] for slot in response.json()] == [later.id]


def test_update_booked_slot_returns_conflict(client, admin_headers, seeded_slot) -> None:
    client.post('/bookings', json={'slot_id': seeded_slot.id, 'user_name': 'Alan Turing'})

    response = client.put(
        f'/slots/{seeded_slot.id}',
        json={'start_time': '2030-01-01T09:00:00', 'end_time': '2030-01-01T09:30:00'},
        headers=admin_headers,
    )

    assert response.status_code == 409
    assert response.json() == {'error': 'Booked slots cannot be changed.'}


def test_generate_schedule_route(client, admin_headers, seeded_slot) -> None:
    response = client.post(
        f'/doctors/{seeded_slot.doctor_id}/schedule',
        json={'date': '2025-01-02', 'startHour': 9, 'endHour': 17, 'durationMinutes': 30},
        headers=admin_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body['success'] is True
    assert body['created'] == 16
    assert body['slots'][0]['start_time'] == '2025-01-02T09:00:00'


def test_generate_schedule_route_missing_fields(client, admin_headers, seeded_slot) -> None:
    response = client.post(
        f'/doctors/{seeded_slot.doctor_id}/schedule',
        json={'date': '2025-01-02'},
        headers=admin_headers,
    )

    assert response.status_code == 400


def test_delete_doctor_route_cascades(client, admin_headers, session_factory, seeded_slot) -> None:
    response = client.delete(f'/doctors/{seeded_slot.doctor_id}', headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {'success': True}
    assert client.get(f'/doctors/{seeded_slot.doctor_id}').json() == {'error': 'Doctor not found'}

    with session_scope(session_factory) as db:
        assert slot_service.list_slots(db) == []
        assert booking_service.list_bookings(db) == []


def test_health_and_stats(client, admin_headers, seeded_slot) -> None:
    assert client.get('/').json()['status'] == 'ok'

    stats = client.get('/stats', headers=admin_headers)
    assert stats.status_code == 200
    assert stats.json()['total_slots'] == 1
    assert stats.json()['available_slots'] == 1
