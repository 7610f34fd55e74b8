import pytest
from datetime import datetime
from bson import ObjectId
from httpx import AsyncClient
from pymongo.errors import DuplicateKeyError

pytestmark = pytest.mark.asyncio


# ── Helpers ───────────────────────────────────────────────────────────────────

async def _allocate(ac: AsyncClient, headers: dict, project_id: str, resource_id: str, hours: float = 40):
    return await ac.post(
        f"/api/resources/project/{project_id}/allocate",
        json={"resource_id": resource_id, "hours_allocated": hours, "start_date": "2026-03-01T00:00:00"},
        headers=headers,
    )


def _manpower(db, project_id: str) -> float:
    return db.projects.find_one({"_id": ObjectId(project_id)})["manpower_allocated"]


async def _second_project(ac: AsyncClient, headers: dict, company_id: str) -> str:
    resp = await ac.post(
        "/api/projects",
        json={"name": "Second Site", "company_id": company_id, "start_date": "2026-01-01T00:00:00"},
        headers=headers,
    )
    return resp.json()["data"]["id"]


# ── Resources CRUD ────────────────────────────────────────────────────────────

async def test_create_and_filter_resources(async_client: AsyncClient, manager_headers: dict, user_headers: dict):
    created = await async_client.post(
        "/api/resources",
        json={"name": "Asha Fitter", "role": "fitter", "hourly_rate": 80, "skills": ["pipes"], "email": ""},
        headers=manager_headers,
    )
    assert created.status_code == 201
    data = created.json()["data"]
    assert data["is_active"] is True
    assert data["email"] is None

    denied = await async_client.post("/api/resources", json={"name": "Nope"}, headers=user_headers)
    assert denied.status_code == 403

    listing = await async_client.get("/api/resources", params={"role": "fitter"}, headers=user_headers)
    assert [r["name"] for r in listing.json()["data"]] == ["Asha Fitter"]


async def test_negative_rate_rejected(async_client: AsyncClient, admin_headers: dict):
    resp = await async_client.post("/api/resources", json={"name": "Cheap", "hourly_rate": -1}, headers=admin_headers)
    assert resp.status_code == 400


async def test_get_resource_with_allocations(async_client: AsyncClient, admin_headers: dict, project: dict, resource: dict):
    await _allocate(async_client, admin_headers, project["id"], resource["id"])
    resp = await async_client.get(f"/api/resources/{resource['id']}", headers=admin_headers)
    assert resp.status_code == 200
    allocations = resp.json()["data"]["allocations"]
    assert len(allocations) == 1
    assert allocations[0]["project_name"] == project["name"]


async def test_update_resource_rate(async_client: AsyncClient, admin_headers: dict, resource: dict):
    resp = await async_client.put(f"/api/resources/{resource['id']}", json={"hourly_rate": 120}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["hourly_rate"] == 120


# ── Allocation exclusivity ────────────────────────────────────────────────────

async def test_resource_holds_one_active_allocation(async_client: AsyncClient, admin_headers: dict, project: dict, resource: dict, clean_db):
    first = await _allocate(async_client, admin_headers, project["id"], resource["id"], hours=40)
    assert first.status_code == 201
    assert first.json()["data"]["resource_name"] == resource["name"]
    assert _manpower(clean_db, project["id"]) == 40

    other_project = await _second_project(async_client, admin_headers, project["company_id"])
    second = await _allocate(async_client, admin_headers, other_project, resource["id"])
    assert second.status_code == 400
    assert second.json()["message"] == "Resource is already allocated to an active project"

    # after release the resource is free again
    await async_client.delete(f"/api/resources/project-allocation/{first.json()['data']['id']}", headers=admin_headers)
    third = await _allocate(async_client, admin_headers, other_project, resource["id"])
    assert third.status_code == 201


async def test_partial_unique_index_guards_active_allocations(project: dict, resource: dict, clean_db):
    base = {"project_id": ObjectId(project["id"]), "resource_id": ObjectId(resource["id"]), "hours_allocated": 1}
    clean_db.project_resources.insert_one({**base, "is_active": True})
    # inactive history rows are unrestricted
    clean_db.project_resources.insert_one({**base, "is_active": False})
    clean_db.project_resources.insert_one({**base, "is_active": False})
    with pytest.raises(DuplicateKeyError):
        clean_db.project_resources.insert_one({**base, "is_active": True})


async def test_allocation_requires_elevated_role(async_client: AsyncClient, user_headers: dict, project: dict, resource: dict):
    resp = await _allocate(async_client, user_headers, project["id"], resource["id"])
    assert resp.status_code == 403


async def test_allocation_unknown_resource(async_client: AsyncClient, admin_headers: dict, project: dict):
    resp = await _allocate(async_client, admin_headers, project["id"], str(ObjectId()))
    assert resp.status_code == 404


async def test_update_allocation_adjusts_manpower(async_client: AsyncClient, admin_headers: dict, project: dict, resource: dict, clean_db):
    alloc = await _allocate(async_client, admin_headers, project["id"], resource["id"], hours=40)
    allocation_id = alloc.json()["data"]["id"]

    resp = await async_client.put(f"/api/resources/project-allocation/{allocation_id}", json={"hours_allocated": 25}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["hours_allocated"] == 25
    assert _manpower(clean_db, project["id"]) == 25


async def test_deallocate_floors_manpower(async_client: AsyncClient, admin_headers: dict, project: dict, resource: dict, clean_db):
    alloc = await _allocate(async_client, admin_headers, project["id"], resource["id"], hours=40)
    allocation_id = alloc.json()["data"]["id"]
    # counter drifted below the allocation
    clean_db.projects.update_one({"_id": ObjectId(project["id"])}, {"$set": {"manpower_allocated": 10}})

    resp = await async_client.delete(f"/api/resources/project-allocation/{allocation_id}", headers=admin_headers)
    assert resp.status_code == 200
    assert _manpower(clean_db, project["id"]) == 0

    stored = clean_db.project_resources.find_one({"_id": ObjectId(allocation_id)})
    assert stored["is_active"] is False
    assert isinstance(stored["end_date"], datetime)

    again = await async_client.delete(f"/api/resources/project-allocation/{allocation_id}", headers=admin_headers)
    assert again.status_code == 400


async def test_project_allocations_listing(async_client: AsyncClient, admin_headers: dict, project: dict, resource: dict):
    alloc = await _allocate(async_client, admin_headers, project["id"], resource["id"])
    await async_client.delete(f"/api/resources/project-allocation/{alloc.json()['data']['id']}", headers=admin_headers)
    await _allocate(async_client, admin_headers, project["id"], resource["id"], hours=10)

    active = await async_client.get(f"/api/resources/project/{project['id']}", headers=admin_headers)
    assert [a["hours_allocated"] for a in active.json()["data"]] == [10]

    everything = await async_client.get(f"/api/resources/project/{project['id']}", params={"include_inactive": "true"}, headers=admin_headers)
    assert len(everything.json()["data"]) == 2


async def test_soft_delete_resource_releases_allocations(async_client: AsyncClient, admin_headers: dict, project: dict, resource: dict, clean_db):
    await _allocate(async_client, admin_headers, project["id"], resource["id"], hours=30)

    resp = await async_client.delete(f"/api/resources/{resource['id']}", headers=admin_headers)
    assert resp.status_code == 200

    stored = clean_db.resources.find_one({"_id": ObjectId(resource["id"])})
    assert stored["is_active"] is False
    assert clean_db.project_resources.count_documents({"is_active": True}) == 0
    assert _manpower(clean_db, project["id"]) == 0

    inactive = await _allocate(async_client, admin_headers, project["id"], resource["id"])
    assert inactive.status_code == 400


async def test_resources_summary(async_client: AsyncClient, admin_headers: dict, project: dict, resource: dict):
    await async_client.post("/api/resources", json={"name": "Helper", "hourly_rate": 50}, headers=admin_headers)
    await _allocate(async_client, admin_headers, project["id"], resource["id"], hours=40)

    resp = await async_client.get("/api/resources/summary", headers=admin_headers)
    assert resp.json()["data"] == {
        "total_resources": 2,
        "active_resources": 2,
        "total_allocated_hours": 40,
        "average_hourly_rate": 75.0,
        "projects_with_resources": 1,
    }
