import pytest
from bson import ObjectId
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


# ── Helpers ───────────────────────────────────────────────────────────────────

async def _create_project(ac: AsyncClient, headers: dict, company_id: str, **overrides) -> dict:
    payload = {
        "name": "Warehouse Fitout",
        "company_id": company_id,
        "start_date": "2026-02-01T00:00:00",
        "status": "planning",
        "budget": 50000,
    }
    payload.update(overrides)
    resp = await ac.post("/api/projects", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


# ── CREATE + GET + LIST ───────────────────────────────────────────────────────

async def test_create_and_get_project(async_client: AsyncClient, manager_headers: dict, company: dict, clean_db):
    data = await _create_project(async_client, manager_headers, company["id"])
    assert data["company_name"] == company["name"]
    assert data["manpower_allocated"] == 0.0
    project_id = data["id"]

    # back-reference on the company
    stored_company = clean_db.companies.find_one({"_id": ObjectId(company["id"])})
    assert ObjectId(project_id) in stored_company["projects"]

    listing = await async_client.get("/api/projects", params={"company_id": company["id"]}, headers=manager_headers)
    assert [p["id"] for p in listing.json()["data"]] == [project_id]

    detail = await async_client.get(f"/api/projects/{project_id}", headers=manager_headers)
    assert detail.status_code == 200
    body = detail.json()["data"]
    assert body["payments"] == []
    assert body["expenses"] == []
    assert body["resources"] == []


async def test_create_project_unknown_company(async_client: AsyncClient, admin_headers: dict):
    payload = {"name": "Orphan", "company_id": str(ObjectId()), "start_date": "2026-02-01T00:00:00"}
    resp = await async_client.post("/api/projects", json=payload, headers=admin_headers)
    assert resp.status_code == 404


async def test_end_date_before_start_date(async_client: AsyncClient, admin_headers: dict, company: dict):
    payload = {
        "name": "Backwards",
        "company_id": company["id"],
        "start_date": "2026-02-01T00:00:00",
        "end_date": "2026-01-01T00:00:00",
    }
    resp = await async_client.post("/api/projects", json=payload, headers=admin_headers)
    assert resp.status_code == 400
    assert "End date cannot be before start date" in resp.json()["message"]


async def test_filter_projects_by_status(async_client: AsyncClient, admin_headers: dict, company: dict):
    await _create_project(async_client, admin_headers, company["id"], name="A", status="planning")
    await _create_project(async_client, admin_headers, company["id"], name="B", status="completed")

    resp = await async_client.get("/api/projects", params={"status": "completed"}, headers=admin_headers)
    assert [p["name"] for p in resp.json()["data"]] == ["B"]


async def test_move_project_between_companies(async_client: AsyncClient, admin_headers: dict, project: dict, clean_db):
    other = await async_client.post("/api/companies", json={"name": "Initech"}, headers=admin_headers)
    other_id = other.json()["data"]["id"]

    resp = await async_client.put(f"/api/projects/{project['id']}", json={"company_id": other_id}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["company_name"] == "Initech"

    old_company = clean_db.companies.find_one({"_id": ObjectId(project["company_id"])})
    new_company = clean_db.companies.find_one({"_id": ObjectId(other_id)})
    assert ObjectId(project["id"]) not in old_company["projects"]
    assert ObjectId(project["id"]) in new_company["projects"]


# ── DELETE guards ─────────────────────────────────────────────────────────────

async def test_delete_project_blocked_by_transactions(async_client: AsyncClient, admin_headers: dict, project: dict):
    await async_client.post(
        f"/api/projects/{project['id']}/payments",
        json={"amount": 100, "date": "2026-03-01T00:00:00"},
        headers=admin_headers,
    )
    resp = await async_client.delete(f"/api/projects/{project['id']}", headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Cannot delete project with associated transactions"


async def test_delete_project_blocked_by_any_allocation(async_client: AsyncClient, admin_headers: dict, project: dict, resource: dict, clean_db):
    alloc = await async_client.post(
        f"/api/resources/project/{project['id']}/allocate",
        json={"resource_id": resource["id"], "hours_allocated": 40, "start_date": "2026-03-01T00:00:00"},
        headers=admin_headers,
    )
    assert alloc.status_code == 201

    resp = await async_client.delete(f"/api/projects/{project['id']}", headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Cannot delete project with allocated resources"

    # deallocated history still references the project
    allocation_id = alloc.json()["data"]["id"]
    released = await async_client.delete(f"/api/resources/project-allocation/{allocation_id}", headers=admin_headers)
    assert released.status_code == 200
    resp = await async_client.delete(f"/api/projects/{project['id']}", headers=admin_headers)
    assert resp.status_code == 400
    assert clean_db.projects.count_documents({"_id": ObjectId(project["id"])}) == 1


async def test_delete_unused_project(async_client: AsyncClient, admin_headers: dict, project: dict, clean_db):
    resp = await async_client.delete(f"/api/projects/{project['id']}", headers=admin_headers)
    assert resp.status_code == 200

    company = clean_db.companies.find_one({"_id": ObjectId(project["company_id"])})
    assert ObjectId(project["id"]) not in company["projects"]


async def test_delete_project_admin_only(async_client: AsyncClient, manager_headers: dict, project: dict):
    resp = await async_client.delete(f"/api/projects/{project['id']}", headers=manager_headers)
    assert resp.status_code == 403


# ── Project shortcuts ─────────────────────────────────────────────────────────

async def test_project_payment_and_expense(async_client: AsyncClient, manager_headers: dict, user_headers: dict, project: dict):
    payment = await async_client.post(
        f"/api/projects/{project['id']}/payments",
        json={"amount": 2500, "date": "2026-03-01T00:00:00", "status": "paid"},
        headers=manager_headers,
    )
    assert payment.status_code == 201
    assert payment.json()["data"]["approval_status"] == "approved"

    denied = await async_client.post(
        f"/api/projects/{project['id']}/payments",
        json={"amount": 10, "date": "2026-03-01T00:00:00"},
        headers=user_headers,
    )
    assert denied.status_code == 403

    expense = await async_client.post(
        f"/api/projects/{project['id']}/expenses",
        json={"amount": 300, "date": "2026-03-02T00:00:00", "category": "fuel"},
        headers=user_headers,
    )
    assert expense.status_code == 201
    assert expense.json()["data"]["approval_status"] == "pending"

    detail = await async_client.get(f"/api/projects/{project['id']}", headers=user_headers)
    body = detail.json()["data"]
    assert len(body["payments"]) == 1
    assert len(body["expenses"]) == 1
