"""
Tests for submitting, editing and reading leave requests
"""
from datetime import date, timedelta

import pytest
from fastapi import status
from sqlalchemy import inspect as sa_inspect
from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.models.leave import LeaveBalance, LeaveRequest, LeaveStatus, LeaveType
from app.services.leave_service import LeaveRequestService, count_leave_days
from app.utils.datetime_utils import today_utc

NEXT_YEAR = today_utc().year + 1


def d(month, day, year=NEXT_YEAR):
    return date(year, month, day)


def create(db, employee, leave_type, start, end, **kwargs):
    return LeaveRequestService(db, **kwargs).create(
        employee.id, employee.organization_id, leave_type.id, start, end
    )


# ----------------------------------------------------------------------
# Day counting
# ----------------------------------------------------------------------

def test_calendar_policy_counts_inclusive_span():
    assert count_leave_days(date(2025, 6, 1), date(2025, 6, 5)) == 5
    assert count_leave_days(date(2025, 6, 1), date(2025, 6, 1)) == 1


def test_business_policy_skips_weekends():
    # 2025-06-06 is a Friday, 2025-06-09 a Monday
    assert count_leave_days(date(2025, 6, 6), date(2025, 6, 9), "business") == 2
    assert count_leave_days(date(2025, 6, 7), date(2025, 6, 8), "business") == 0


def test_inverted_range_counts_zero():
    assert count_leave_days(date(2025, 6, 5), date(2025, 6, 1)) == 0


def test_unknown_policy_is_an_error():
    with pytest.raises(ValueError):
        count_leave_days(date(2025, 6, 1), date(2025, 6, 2), "lunar")


# ----------------------------------------------------------------------
# Create
# ----------------------------------------------------------------------

def test_create_leave_is_pending_and_does_not_touch_balance(db, employee, annual_leave, make_balance):
    balance = make_balance(employee, annual_leave, 2025, total_days=10)

    leave = create(db, employee, annual_leave, date(2025, 6, 1), date(2025, 6, 5))

    assert leave.status == LeaveStatus.PENDING
    assert leave.total_days == 5
    db.refresh(balance)
    assert balance.used_days == 0


def test_create_rejects_end_before_start(db, employee, annual_leave):
    with pytest.raises(ValidationError):
        create(db, employee, annual_leave, date(2025, 6, 5), date(2025, 6, 1))


def test_create_rejects_cross_year_range(db, employee, annual_leave):
    with pytest.raises(ValidationError):
        create(db, employee, annual_leave, date(2025, 12, 30), date(2026, 1, 2))


def test_create_rejects_leave_type_of_other_organization(db, employee, other_organization):
    foreign = LeaveType(organization_id=other_organization.id, name="Foreign", max_days_per_year=5)
    db.add(foreign)
    db.commit()

    with pytest.raises(ValidationError):
        create(db, employee, foreign, date(2025, 6, 1), date(2025, 6, 2))


def test_create_weekend_only_under_business_policy(db, employee, annual_leave):
    with pytest.raises(ValidationError):
        create(db, employee, annual_leave, date(2025, 6, 7), date(2025, 6, 8), day_count_policy="business")
    assert db.query(LeaveRequest).count() == 0


def test_business_policy_total_days(db, employee, annual_leave):
    leave = create(db, employee, annual_leave, date(2025, 6, 2), date(2025, 6, 8), day_count_policy="business")
    assert leave.total_days == 5


def test_overlapping_request_conflicts(db, employee, annual_leave):
    create(db, employee, annual_leave, date(2025, 6, 1), date(2025, 6, 5))

    with pytest.raises(ConflictError):
        create(db, employee, annual_leave, date(2025, 6, 5), date(2025, 6, 7))
    with pytest.raises(ConflictError):
        create(db, employee, annual_leave, date(2025, 5, 30), date(2025, 6, 1))
    assert db.query(LeaveRequest).count() == 1


def test_adjacent_requests_do_not_overlap(db, employee, annual_leave):
    create(db, employee, annual_leave, date(2025, 6, 1), date(2025, 6, 5))
    second = create(db, employee, annual_leave, date(2025, 6, 6), date(2025, 6, 7))
    assert second.id is not None


def test_overlap_ignores_other_employees_and_closed_requests(db, employee, colleague, annual_leave):
    first = create(db, employee, annual_leave, date(2025, 6, 1), date(2025, 6, 5))
    create(db, colleague, annual_leave, date(2025, 6, 1), date(2025, 6, 5))

    LeaveRequestService(db).cancel(first.id, employee.id)
    again = create(db, employee, annual_leave, date(2025, 6, 2), date(2025, 6, 3))

    assert again.status == LeaveStatus.PENDING


# ----------------------------------------------------------------------
# Update
# ----------------------------------------------------------------------

def test_update_recomputes_days_and_excludes_itself_from_overlap(db, employee, annual_leave):
    leave = create(db, employee, annual_leave, date(2025, 6, 1), date(2025, 6, 5))

    updated = LeaveRequestService(db).update(
        leave.id, employee.id, employee.organization_id,
        {"start_date": date(2025, 6, 3), "end_date": date(2025, 6, 9), "reason": "Trip extended"},
    )

    assert updated.total_days == 7
    assert updated.reason == "Trip extended"
    assert updated.status == LeaveStatus.PENDING


def test_update_overlapping_another_request_conflicts(db, employee, annual_leave):
    create(db, employee, annual_leave, date(2025, 6, 1), date(2025, 6, 5))
    second = create(db, employee, annual_leave, date(2025, 6, 10), date(2025, 6, 12))

    with pytest.raises(ConflictError):
        LeaveRequestService(db).update(
            second.id, employee.id, employee.organization_id, {"start_date": date(2025, 6, 4)}
        )


def test_update_by_non_owner_forbidden(db, employee, colleague, annual_leave):
    leave = create(db, employee, annual_leave, date(2025, 6, 1), date(2025, 6, 5))

    with pytest.raises(ForbiddenError):
        LeaveRequestService(db).update(leave.id, colleague.id, colleague.organization_id, {"reason": "x"})


def test_update_non_pending_is_invalid_state(db, employee, annual_leave):
    leave = create(db, employee, annual_leave, date(2025, 6, 1), date(2025, 6, 5))
    LeaveRequestService(db).cancel(leave.id, employee.id)

    with pytest.raises(InvalidStateError):
        LeaveRequestService(db).update(leave.id, employee.id, employee.organization_id, {"reason": "x"})


# ----------------------------------------------------------------------
# Check balance
# ----------------------------------------------------------------------

def test_check_balance_allowed(db, employee, annual_leave, make_balance):
    make_balance(employee, annual_leave, 2025, total_days=10, carried_over=2, used_days=1)

    result = LeaveRequestService(db).check_balance(
        employee.id, employee.organization_id, annual_leave.id, date(2025, 6, 1), date(2025, 6, 5)
    )

    assert result["is_allowed"] is True
    assert result["requested_days"] == 5
    assert result["available_days"] == 11
    assert result["current_balance"] == {
        "total_days": 10, "used_days": 1, "available_days": 11, "carried_over": 2, "year": 2025,
    }
    assert result["conflicts"] == []


def test_check_balance_reports_every_conflict(db, employee, annual_leave, make_balance):
    make_balance(employee, annual_leave, 2025, total_days=2)
    existing = create(db, employee, annual_leave, date(2025, 6, 2), date(2025, 6, 3))

    result = LeaveRequestService(db).check_balance(
        employee.id, employee.organization_id, annual_leave.id, date(2025, 6, 1), date(2025, 6, 5)
    )

    kinds = [c["type"] for c in result["conflicts"]]
    assert kinds == ["insufficient_balance", "overlapping_leave"]
    assert result["is_allowed"] is False
    assert [o["id"] for o in result["overlapping_leaves"]] == [existing.id]


def test_check_balance_without_balance_record(db, employee, annual_leave):
    result = LeaveRequestService(db).check_balance(
        employee.id, employee.organization_id, annual_leave.id, date(2025, 6, 1), date(2025, 6, 2)
    )
    assert [c["type"] for c in result["conflicts"]] == ["no_balance_record"]
    assert result["current_balance"] is None


def test_check_balance_invalid_and_weekend_dates(db, employee, annual_leave, make_balance):
    make_balance(employee, annual_leave, 2025)
    service = LeaveRequestService(db, day_count_policy="business")

    inverted = service.check_balance(
        employee.id, employee.organization_id, annual_leave.id, date(2025, 6, 5), date(2025, 6, 1)
    )
    weekend = service.check_balance(
        employee.id, employee.organization_id, annual_leave.id, date(2025, 6, 7), date(2025, 6, 8)
    )

    assert [c["type"] for c in inverted["conflicts"]] == ["invalid_dates"]
    assert [c["type"] for c in weekend["conflicts"]] == ["weekend_only"]


def test_check_balance_is_read_only(db, employee, annual_leave, make_balance):
    make_balance(employee, annual_leave, 2025, total_days=10)
    LeaveRequestService(db).check_balance(
        employee.id, employee.organization_id, annual_leave.id, date(2025, 6, 1), date(2025, 6, 5)
    )
    assert db.query(LeaveRequest).count() == 0
    assert db.query(LeaveBalance).one().used_days == 0


# ----------------------------------------------------------------------
# Read access
# ----------------------------------------------------------------------

def test_get_by_id_access_rules(db, employee, colleague, manager, outsider, annual_leave):
    leave = create(db, employee, annual_leave, date(2025, 6, 1), date(2025, 6, 5))
    service = LeaveRequestService(db)

    assert service.get_by_id(leave.id, employee.id).id == leave.id
    assert service.get_by_id(leave.id, manager.id).id == leave.id
    with pytest.raises(ForbiddenError):
        service.get_by_id(leave.id, colleague.id)
    with pytest.raises(NotFoundError):
        service.get_by_id(leave.id, outsider.id)
    with pytest.raises(NotFoundError):
        service.get_by_id(9999, employee.id)


def test_list_filters_and_paginates(db, employee, colleague, annual_leave, sick_leave):
    create(db, employee, annual_leave, date(2025, 3, 1), date(2025, 3, 2))
    create(db, employee, sick_leave, date(2025, 4, 1), date(2025, 4, 1))
    create(db, employee, annual_leave, date(2025, 5, 1), date(2025, 5, 3))
    create(db, colleague, annual_leave, date(2025, 5, 1), date(2025, 5, 3))
    service = LeaveRequestService(db)

    items, total = service.list(employee.id)
    assert total == 3
    assert [i.start_date for i in items] == [date(2025, 5, 1), date(2025, 4, 1), date(2025, 3, 1)]

    items, total = service.list(employee.id, leave_type_id=annual_leave.id, start_date=date(2025, 4, 1))
    assert total == 1

    items, total = service.list(employee.id, page=2, limit=2)
    assert total == 3
    assert len(items) == 1

    with pytest.raises(ValidationError):
        service.list(employee.id, limit=101)


def test_pending_review_requires_manager(db, employee, colleague, manager, annual_leave):
    create(db, employee, annual_leave, date(2025, 6, 1), date(2025, 6, 5))
    create(db, manager, annual_leave, date(2025, 6, 1), date(2025, 6, 5))
    service = LeaveRequestService(db)

    with pytest.raises(ForbiddenError):
        service.list_pending_for_review(colleague.id)

    items, total = service.list_pending_for_review(manager.id)
    assert total == 1
    assert items[0].employee_id == employee.id


# ----------------------------------------------------------------------
# Comments
# ----------------------------------------------------------------------

def test_internal_comments_hidden_from_employee(db, employee, manager, annual_leave):
    leave = create(db, employee, annual_leave, date(2025, 6, 1), date(2025, 6, 5))
    service = LeaveRequestService(db)

    service.add_comment(leave.id, employee.id, "Family trip")
    service.add_comment(leave.id, manager.id, "Check coverage first", is_internal=True)

    assert [c.content for c in service.list_comments(leave.id, employee.id)] == ["Family trip"]
    assert len(service.list_comments(leave.id, manager.id)) == 2


def test_employee_cannot_add_internal_comment(db, employee, annual_leave):
    leave = create(db, employee, annual_leave, date(2025, 6, 1), date(2025, 6, 5))
    with pytest.raises(ForbiddenError):
        LeaveRequestService(db).add_comment(leave.id, employee.id, "secret", is_internal=True)


def test_blank_comment_rejected(db, employee, annual_leave):
    leave = create(db, employee, annual_leave, date(2025, 6, 1), date(2025, 6, 5))
    with pytest.raises(ValidationError):
        LeaveRequestService(db).add_comment(leave.id, employee.id, "   ")


# ----------------------------------------------------------------------
# HTTP
# ----------------------------------------------------------------------

def test_create_endpoint(client, employee, annual_leave, auth_headers):
    response = client.post(
        "/api/v1/leaves",
        json={"leave_type_id": annual_leave.id, "start_date": str(d(6, 1)),
              "end_date": str(d(6, 5)), "reason": "Vacation"},
        headers=auth_headers(employee),
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["total_days"] == 5
    assert data["leave_type"]["name"] == "Annual Leave"
    assert data["created_at"].endswith("Z")


def test_create_endpoint_requires_auth(client, annual_leave):
    response = client.post(
        "/api/v1/leaves",
        json={"leave_type_id": annual_leave.id, "start_date": str(d(6, 1)), "end_date": str(d(6, 5))},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_create_endpoint_rejects_past_start(client, employee, annual_leave, auth_headers):
    yesterday = today_utc() - timedelta(days=1)
    response = client.post(
        "/api/v1/leaves",
        json={"leave_type_id": annual_leave.id, "start_date": str(yesterday), "end_date": str(yesterday)},
        headers=auth_headers(employee),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_create_endpoint_overlap_is_409(client, employee, annual_leave, auth_headers):
    headers = auth_headers(employee)
    body = {"leave_type_id": annual_leave.id, "start_date": str(d(6, 1)), "end_date": str(d(6, 5))}
    assert client.post("/api/v1/leaves", json=body, headers=headers).status_code == 201

    response = client.post(
        "/api/v1/leaves",
        json={**body, "start_date": str(d(6, 3)), "end_date": str(d(6, 4))},
        headers=headers,
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["code"] == "CONFLICT"


def test_check_balance_endpoint(client, employee, annual_leave, make_balance, auth_headers):
    make_balance(employee, annual_leave, NEXT_YEAR, total_days=3)

    response = client.post(
        "/api/v1/leaves/check-balance",
        json={"leave_type_id": annual_leave.id, "start_date": str(d(6, 1)), "end_date": str(d(6, 5))},
        headers=auth_headers(employee),
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["is_allowed"] is False
    assert data["conflicts"][0]["type"] == "insufficient_balance"


def test_detail_endpoint_includes_visible_comments(client, db, employee, manager, annual_leave, auth_headers):
    leave = create(db, employee, annual_leave, d(6, 1), d(6, 5))
    service = LeaveRequestService(db)
    service.add_comment(leave.id, manager.id, "Public note")
    service.add_comment(leave.id, manager.id, "Internal note", is_internal=True)

    response = client.get(f"/api/v1/leaves/{leave.id}", headers=auth_headers(employee))

    assert response.status_code == status.HTTP_200_OK
    assert [c["content"] for c in response.json()["comments"]] == ["Public note"]


def test_detail_endpoint_does_not_load_all_comments(client, db, employee, manager, annual_leave, auth_headers):
    leave = create(db, employee, annual_leave, d(6, 1), d(6, 5))
    LeaveRequestService(db).add_comment(leave.id, manager.id, "Internal note", is_internal=True)
    db.expire_all()

    response = client.get(f"/api/v1/leaves/{leave.id}", headers=auth_headers(employee))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["comments"] == []
    assert "comments" in sa_inspect(leave).unloaded


def test_patch_endpoint(client, db, employee, annual_leave, auth_headers):
    leave = create(db, employee, annual_leave, d(6, 1), d(6, 5))

    response = client.patch(
        f"/api/v1/leaves/{leave.id}", json={"end_date": str(d(6, 2))}, headers=auth_headers(employee)
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["total_days"] == 2


def test_list_endpoint(client, db, employee, annual_leave, auth_headers):
    create(db, employee, annual_leave, d(6, 1), d(6, 5))
    create(db, employee, annual_leave, d(7, 1), d(7, 1))

    response = client.get("/api/v1/leaves?limit=1", headers=auth_headers(employee))

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["total"] == 2
    assert data["total_pages"] == 2
    assert len(data["items"]) == 1
