"""
Tests for department management
"""
import pytest
from fastapi import status
from app.core.exceptions import ConflictError, NotFoundError
from app.models.audit_log import AuditLog
from app.schemas.department import DepartmentCreate, DepartmentUpdate
from app.services import department_service


def test_create_department(db, organization, hr_admin):
    department = department_service.create_department(
        db, organization.id, DepartmentCreate(name="  Finance "), hr_admin.id
    )

    assert department.name == "Finance"
    assert department.active is True
    audit = db.query(AuditLog).filter(AuditLog.entity_type == "department").one()
    assert audit.action == "CREATE"
    assert audit.actor_id == hr_admin.id


def test_duplicate_department_name_is_case_insensitive(db, organization, hr_admin, engineering):
    with pytest.raises(ConflictError):
        department_service.create_department(db, organization.id, DepartmentCreate(name="ENGINEERING"), hr_admin.id)


def test_same_department_name_in_other_organization(db, other_organization, outsider, engineering):
    department = department_service.create_department(
        db, other_organization.id, DepartmentCreate(name="Engineering"), outsider.id
    )
    assert department.organization_id == other_organization.id


def test_list_departments_by_name_and_active_flag(db, organization, hr_admin, engineering, sales):
    department_service.update_department(db, organization.id, sales.id, DepartmentUpdate(active=False), hr_admin.id)

    assert [d.name for d in department_service.list_departments(db, organization.id)] == ["Engineering", "Sales"]
    assert [d.name for d in department_service.list_departments(db, organization.id, active_only=True)] == ["Engineering"]
    assert [d.name for d in department_service.list_departments(db, organization.id, active_only=False)] == ["Sales"]


def test_rename_to_taken_name_conflicts(db, organization, hr_admin, engineering, sales):
    with pytest.raises(ConflictError):
        department_service.update_department(db, organization.id, sales.id, DepartmentUpdate(name="engineering"), hr_admin.id)

    renamed = department_service.update_department(db, organization.id, sales.id, DepartmentUpdate(name="Sales EMEA"), hr_admin.id)
    assert renamed.name == "Sales EMEA"


def test_department_of_other_organization_not_found(db, other_organization, engineering):
    with pytest.raises(NotFoundError):
        department_service.get_department(db, other_organization.id, engineering.id)


def test_departments_endpoint(client, employee, hr_admin, sales, auth_headers):
    response = client.get("/api/v1/departments", headers=auth_headers(employee))
    assert response.status_code == status.HTTP_200_OK
    assert [d["name"] for d in response.json()] == ["Engineering", "Sales"]

    response = client.post("/api/v1/departments", json={"name": "Legal"}, headers=auth_headers(employee))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post("/api/v1/departments", json={"name": "Legal"}, headers=auth_headers(hr_admin))
    assert response.status_code == status.HTTP_201_CREATED
    legal_id = response.json()["id"]

    response = client.patch(f"/api/v1/departments/{legal_id}", json={"active": False}, headers=auth_headers(hr_admin))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["active"] is False

    response = client.post("/api/v1/departments", json={"name": "sales"}, headers=auth_headers(hr_admin))
    assert response.status_code == status.HTTP_409_CONFLICT


def test_department_endpoint_hides_other_tenants(client, outsider, engineering, auth_headers):
    response = client.get(f"/api/v1/departments/{engineering.id}", headers=auth_headers(outsider))
    assert response.status_code == status.HTTP_404_NOT_FOUND
