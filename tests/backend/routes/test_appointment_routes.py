from datetime import date, timedelta

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from backend.auth import jwt_handler
from backend.auth.dependencies import CurrentUser
from backend.models import Appointment, AppointmentStatus, Patient, ScheduleOverride, Weekday
from backend.routes.appointment_routes import (
    CreateAppointmentRequest,
    UpdateAppointmentRequest,
    create_appointment,
    delete_appointment,
    get_appointment,
    list_appointments,
    update_appointment,
    validate_status_transition,
)


@pytest.fixture(autouse=True)
def _skip_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('backend.routes.appointment_routes.ensure_database_ready', lambda: None)


@pytest.fixture
def other_patient_user(db) -> CurrentUser:
    record = Patient(name='Other Person', email='other@example.test', hashed_password='x')
    db.add(record)
    db.commit()
    db.refresh(record)
    return CurrentUser(id=record.id, role=jwt_handler.ROLE_PATIENT, record=record)


def _request(doctor, treatment, day: date, time_slot: str = '10:00-11:00', **extra) -> CreateAppointmentRequest:
    return CreateAppointmentRequest(
        doctor_id=doctor.id,
        treatment_id=treatment.id,
        date=day,
        time_slot=time_slot,
        **extra,
    )


def test_create_request_rejects_slot_outside_catalog() -> None:
    with pytest.raises(ValidationError):
        CreateAppointmentRequest(doctor_id=1, treatment_id=1, date=date(2030, 1, 7), time_slot='12:00-13:00')


def test_update_request_uppercases_status() -> None:
    assert UpdateAppointmentRequest(status=' confirmed ').status == AppointmentStatus.CONFIRMED


def test_create_appointment_books_pending_appointment(db, doctor, treatment, open_week, patient_user, upcoming) -> None:
    monday = upcoming(Weekday.MONDAY)

    appointment = create_appointment(
        _request(doctor, treatment, monday, notes='  First visit  '),
        current_user=patient_user,
        db=db,
    )

    assert appointment.status == AppointmentStatus.PENDING
    assert appointment.patient_id == patient_user.id
    assert appointment.notes == 'First visit'
    assert appointment.doctor.name == doctor.name


def test_create_appointment_rejects_double_booking(
    db, doctor, treatment, open_week, patient_user, other_patient_user, upcoming,
) -> None:
    monday = upcoming(Weekday.MONDAY)
    create_appointment(_request(doctor, treatment, monday), current_user=patient_user, db=db)

    with pytest.raises(HTTPException) as exception_info:
        create_appointment(_request(doctor, treatment, monday), current_user=other_patient_user, db=db)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'This time slot is already booked.'
    assert db.query(Appointment).count() == 1


def test_cancelled_appointment_frees_slot_for_new_booking(
    db, doctor, treatment, open_week, patient_user, other_patient_user, upcoming,
) -> None:
    monday = upcoming(Weekday.MONDAY)
    first = create_appointment(_request(doctor, treatment, monday), current_user=patient_user, db=db)
    first.status = AppointmentStatus.CANCELLED
    db.commit()

    second = create_appointment(_request(doctor, treatment, monday), current_user=other_patient_user, db=db)

    assert second.id != first.id
    assert second.status == AppointmentStatus.PENDING


def test_create_appointment_rejects_day_the_doctor_is_off(db, doctor, treatment, open_week, patient_user, upcoming) -> None:
    monday = upcoming(Weekday.MONDAY)
    db.add(ScheduleOverride(doctor_id=doctor.id, date=monday, is_off=True, off_slots=[]))
    db.commit()

    with pytest.raises(HTTPException) as exception_info:
        create_appointment(_request(doctor, treatment, monday), current_user=patient_user, db=db)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'The doctor is not available at this time.'


def test_create_appointment_rejects_past_dates(db, doctor, treatment, open_week, patient_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_appointment(
            _request(doctor, treatment, date.today() - timedelta(days=1)),
            current_user=patient_user,
            db=db,
        )

    assert exception_info.value.status_code == 400


def test_create_appointment_rejects_treatment_of_another_doctor(db, doctor, treatment, patient_user, upcoming) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_appointment(
            CreateAppointmentRequest(
                doctor_id=doctor.id,
                treatment_id=treatment.id + 100,
                date=upcoming(Weekday.MONDAY),
                time_slot='10:00-11:00',
            ),
            current_user=patient_user,
            db=db,
        )

    assert exception_info.value.status_code == 400


def test_create_appointment_returns_not_found_for_unknown_doctor(db, treatment, patient_user, upcoming) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_appointment(
            CreateAppointmentRequest(
                doctor_id=999,
                treatment_id=treatment.id,
                date=upcoming(Weekday.MONDAY),
                time_slot='10:00-11:00',
            ),
            current_user=patient_user,
            db=db,
        )

    assert exception_info.value.status_code == 404


@pytest.mark.parametrize(
    ('current', 'requested'),
    [
        (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED),
        (AppointmentStatus.PENDING, AppointmentStatus.COMPLETED),
        (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED),
        (AppointmentStatus.CONFIRMED, AppointmentStatus.CONFIRMED),
    ],
)
def test_validate_status_transition_allows_lifecycle_moves(current, requested) -> None:
    validate_status_transition(current, requested)


@pytest.mark.parametrize(
    ('current', 'requested'),
    [
        (AppointmentStatus.CONFIRMED, AppointmentStatus.PENDING),
        (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED),
        (AppointmentStatus.CANCELLED, AppointmentStatus.CONFIRMED),
    ],
)
def test_validate_status_transition_rejects_invalid_moves(current, requested) -> None:
    with pytest.raises(HTTPException) as exception_info:
        validate_status_transition(current, requested)

    assert exception_info.value.status_code == 400


def test_only_doctor_can_change_status(
    db, doctor, treatment, open_week, patient_user, doctor_user, upcoming,
) -> None:
    appointment = create_appointment(
        _request(doctor, treatment, upcoming(Weekday.MONDAY)),
        current_user=patient_user,
        db=db,
    )

    with pytest.raises(HTTPException) as exception_info:
        update_appointment(
            appointment.id,
            UpdateAppointmentRequest(status='CONFIRMED'),
            current_user=patient_user,
            db=db,
        )
    assert exception_info.value.status_code == 403

    updated = update_appointment(
        appointment.id,
        UpdateAppointmentRequest(status='CONFIRMED'),
        current_user=doctor_user,
        db=db,
    )
    assert updated.status == AppointmentStatus.CONFIRMED


def test_patient_can_reschedule_to_open_slot(db, doctor, treatment, open_week, patient_user, upcoming) -> None:
    monday = upcoming(Weekday.MONDAY)
    appointment = create_appointment(_request(doctor, treatment, monday), current_user=patient_user, db=db)

    updated = update_appointment(
        appointment.id,
        UpdateAppointmentRequest(time_slot='14:00-15:00', notes='Afternoon works better'),
        current_user=patient_user,
        db=db,
    )

    assert updated.time_slot == '14:00-15:00'
    assert updated.date == monday
    assert updated.notes == 'Afternoon works better'


def test_reschedule_onto_booked_slot_conflicts(
    db, doctor, treatment, open_week, patient_user, other_patient_user, upcoming,
) -> None:
    monday = upcoming(Weekday.MONDAY)
    create_appointment(_request(doctor, treatment, monday, '09:00-10:00'), current_user=other_patient_user, db=db)
    appointment = create_appointment(_request(doctor, treatment, monday), current_user=patient_user, db=db)

    with pytest.raises(HTTPException) as exception_info:
        update_appointment(
            appointment.id,
            UpdateAppointmentRequest(time_slot='09:00-10:00'),
            current_user=patient_user,
            db=db,
        )

    assert exception_info.value.status_code == 409


def test_non_participants_cannot_read_or_delete(
    db, doctor, treatment, open_week, patient_user, other_patient_user, upcoming,
) -> None:
    appointment = create_appointment(
        _request(doctor, treatment, upcoming(Weekday.MONDAY)),
        current_user=patient_user,
        db=db,
    )

    with pytest.raises(HTTPException) as read_error:
        get_appointment(appointment.id, current_user=other_patient_user, db=db)
    with pytest.raises(HTTPException) as delete_error:
        delete_appointment(appointment.id, current_user=other_patient_user, db=db)

    assert read_error.value.status_code == 403
    assert delete_error.value.status_code == 403
    assert list_appointments(current_user=other_patient_user, db=db) == []


def test_participant_delete_removes_appointment(db, doctor, treatment, open_week, patient_user, upcoming) -> None:
    appointment = create_appointment(
        _request(doctor, treatment, upcoming(Weekday.MONDAY)),
        current_user=patient_user,
        db=db,
    )

    response = delete_appointment(appointment.id, current_user=patient_user, db=db)

    assert response['success'] is True
    assert db.query(Appointment).count() == 0
