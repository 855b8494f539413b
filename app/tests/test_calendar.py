"""
Tests for the leave calendar
"""
from datetime import date

import pytest
from fastapi import status
from app.core.exceptions import NotFoundError, ValidationError
from app.models.leave import LeaveStatus
from app.services import calendar_service


def test_self_events_only_approved_and_own(db, employee, colleague, annual_leave, add_request):
    own = add_request(employee, annual_leave, date(2025, 3, 3), date(2025, 3, 4), reason="Family trip")
    add_request(employee, annual_leave, date(2025, 3, 10), date(2025, 3, 10), status=LeaveStatus.PENDING)
    add_request(colleague, annual_leave, date(2025, 3, 3), date(2025, 3, 3))

    events = calendar_service.get_self_leave_events(db, employee.id)

    assert [e["id"] for e in events] == [own.id]
    event = events[0]
    assert event["title"] == "Annual Leave"
    assert event["reason"] == "Family trip"
    assert event["color"] == "#22c55e"
    assert event["department"] == "Engineering"
    assert (event["start"], event["end"]) == (date(2025, 3, 3), date(2025, 3, 4))


def test_window_includes_leave_overlapping_its_edges(db, employee, annual_leave, add_request):
    spanning = add_request(employee, annual_leave, date(2025, 2, 24), date(2025, 3, 7))
    inside = add_request(employee, annual_leave, date(2025, 3, 12), date(2025, 3, 13))
    trailing = add_request(employee, annual_leave, date(2025, 3, 28), date(2025, 4, 2))
    add_request(employee, annual_leave, date(2025, 4, 1), date(2025, 4, 2))

    events = calendar_service.get_self_leave_events(db, employee.id, date(2025, 3, 1), date(2025, 3, 31))

    assert [e["id"] for e in events] == [spanning.id, inside.id, trailing.id]


def test_inverted_window_rejected(db, employee):
    with pytest.raises(ValidationError):
        calendar_service.get_self_leave_events(db, employee.id, date(2025, 3, 31), date(2025, 3, 1))


def test_team_events_hide_reasons_and_inactive_people(
    db, organization, employee, colleague, make_employee, annual_leave, add_request
):
    add_request(employee, annual_leave, date(2025, 5, 5), date(2025, 5, 6), reason="Dentist")
    add_request(colleague, annual_leave, date(2025, 5, 1), date(2025, 5, 2))
    gone = make_employee(first_name="Ivy", last_name="Gone", active=False)
    add_request(gone, annual_leave, date(2025, 5, 3), date(2025, 5, 3))

    events = calendar_service.get_team_leave_events(db, organization.id)

    assert [e["employee_id"] for e in events] == [colleague.id, employee.id]
    assert events[1]["title"] == "Alice Employee - Annual Leave"
    assert all(e["reason"] is None for e in events)


def test_team_events_by_department(db, organization, employee, sales, make_employee, annual_leave, add_request):
    seller = make_employee(first_name="Sam", department=sales)
    add_request(employee, annual_leave, date(2025, 5, 5), date(2025, 5, 6))
    add_request(seller, annual_leave, date(2025, 5, 7), date(2025, 5, 7))

    events = calendar_service.get_team_leave_events(db, organization.id, department_id=sales.id)

    assert [e["employee_id"] for e in events] == [seller.id]
    assert events[0]["department"] == "Sales"


def test_team_events_unknown_department(db, other_organization, engineering):
    with pytest.raises(NotFoundError):
        calendar_service.get_team_leave_events(db, other_organization.id, department_id=engineering.id)


def test_team_events_stay_in_organization(db, other_organization, employee, annual_leave, add_request):
    add_request(employee, annual_leave, date(2025, 5, 5), date(2025, 5, 6))

    assert calendar_service.get_team_leave_events(db, other_organization.id) == []


def test_calendar_endpoint(client, employee, colleague, annual_leave, add_request, auth_headers):
    add_request(employee, annual_leave, date(2025, 7, 1), date(2025, 7, 2), reason="Beach")
    add_request(colleague, annual_leave, date(2025, 7, 3), date(2025, 7, 3))
    window = "start_date=2025-07-01&end_date=2025-07-31"

    response = client.get(f"/api/v1/calendar/leaves?type=SELF&{window}", headers=auth_headers(employee))
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert len(data) == 1
    assert data[0]["reason"] == "Beach"
    assert data[0]["start"] == "2025-07-01"

    response = client.get(f"/api/v1/calendar/leaves?type=TEAM&{window}", headers=auth_headers(employee))
    assert response.status_code == status.HTTP_200_OK
    assert [e["employee_name"] for e in response.json()] == ["Alice Employee", "Bob Colleague"]


def test_calendar_endpoint_validates_input(client, employee, auth_headers):
    response = client.get("/api/v1/calendar/leaves?type=EVERYONE", headers=auth_headers(employee))
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    response = client.get(
        "/api/v1/calendar/leaves?type=SELF&start_date=2025-07-31&end_date=2025-07-01",
        headers=auth_headers(employee),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["code"] == "VALIDATION_ERROR"
