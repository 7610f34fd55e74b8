from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from typing import Optional
from datetime import datetime
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from database import resources_collection, allocations_collection, projects_collection
from models.resource import ResourceCreate, ResourceUpdate, AllocationCreate, AllocationUpdate
from models.user import UserModel
from routes.deps import get_current_user, require_elevated
from routes.projects import get_project_or_404
from utils.reporting import summarize_resources
from utils.serializers import parse_object_id, populate_names, success
from logging_config import get_logger

router = APIRouter(prefix="/api/resources", tags=["Resources"])
logger = get_logger("resources")

ALREADY_ALLOCATED = "Resource is already allocated to an active project"


async def _get_resource_or_404(resource_id) -> dict:
    resource = await resources_collection.find_one({"_id": parse_object_id(resource_id, "resource ID")})
    if not resource:
        raise HTTPException(status_code=404, detail="Resource not found")
    return resource


async def _get_allocation_or_404(allocation_id) -> dict:
    allocation = await allocations_collection.find_one({"_id": parse_object_id(allocation_id, "allocation ID")})
    if not allocation:
        raise HTTPException(status_code=404, detail="Allocation not found")
    return allocation


async def _adjust_manpower(project_id, delta: float):
    if not delta:
        return
    # Floor at zero so a stale counter never goes negative
    await projects_collection.update_one(
        {"_id": project_id},
        [{"$set": {
            "manpower_allocated": {"$max": [0, {"$add": [{"$ifNull": ["$manpower_allocated", 0]}, delta]}]},
            "updated_at": datetime.now(),
        }}]
    )


async def _with_resource_details(allocations: list) -> list:
    resource_ids = list({a["resource_id"] for a in allocations})
    resources = {}
    if resource_ids:
        async for r in resources_collection.find({"_id": {"$in": resource_ids}}):
            resources[r["_id"]] = r
    for allocation in allocations:
        resource = resources.get(allocation["resource_id"]) or {}
        allocation["resource_name"] = resource.get("name", "Unknown Resource")
        allocation["resource_role"] = resource.get("role")
        allocation["hourly_rate"] = resource.get("hourly_rate")
    return allocations

# -----------------------------------------------------------------------------
# Resources CRUD
# -----------------------------------------------------------------------------
@router.get("")
async def get_resources(
    active: Optional[bool] = Query(None),
    role: Optional[str] = Query(None),
    current_user: UserModel = Depends(get_current_user)
):
    query = {}
    if active is not None:
        query["is_active"] = active
    if role:
        query["role"] = role
    resources = await resources_collection.find(query).sort("name", 1).to_list(None)
    return success(resources)


@router.get("/summary")
async def get_resources_summary(current_user: UserModel = Depends(get_current_user)):
    resources = await resources_collection.find({}, {"is_active": 1, "hourly_rate": 1}).to_list(None)
    active_allocations = await allocations_collection.find(
        {"is_active": True}, {"project_id": 1, "hours_allocated": 1}
    ).to_list(None)
    return success(summarize_resources(resources, active_allocations))


@router.get("/{resource_id}")
async def get_resource(resource_id: str, current_user: UserModel = Depends(get_current_user)):
    resource = await _get_resource_or_404(resource_id)
    allocations = await allocations_collection.find({"resource_id": resource["_id"]}).sort("start_date", -1).to_list(None)
    resource["allocations"] = await populate_names(allocations, "project_id", projects_collection, "project_name", default="Unknown Project")
    return success(resource)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_resource(payload: ResourceCreate = Body(...), current_user: UserModel = Depends(require_elevated)):
    now = datetime.now()
    doc = payload.model_dump()
    doc["is_active"] = True
    doc["created_at"] = now
    doc["updated_at"] = now

    result = await resources_collection.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Resource created", extra={"data": {"id": str(result.inserted_id), "role": payload.role}})
    return success(doc, message="Resource created successfully")


@router.put("/{resource_id}")
async def update_resource(resource_id: str, payload: ResourceUpdate = Body(...), current_user: UserModel = Depends(require_elevated)):
    resource = await _get_resource_or_404(resource_id)

    update_data = payload.model_dump(exclude_unset=True, exclude_none=True)
    update_data["updated_at"] = datetime.now()
    updated = await resources_collection.find_one_and_update(
        {"_id": resource["_id"]},
        {"$set": update_data},
        return_document=ReturnDocument.AFTER
    )
    if "hourly_rate" in update_data:
        # Reports price all past hours at the current rate
        logger.info("Resource hourly rate changed", extra={"data": {"resource_id": resource_id, "from": resource.get("hourly_rate"), "to": update_data["hourly_rate"]}})
    return success(updated)


@router.delete("/{resource_id}")
async def delete_resource(resource_id: str, current_user: UserModel = Depends(require_elevated)):
    """Soft delete: the resource and its open allocations are deactivated, history is kept."""
    resource = await _get_resource_or_404(resource_id)
    now = datetime.now()

    active_allocations = await allocations_collection.find({"resource_id": resource["_id"], "is_active": True}).to_list(None)
    for allocation in active_allocations:
        await allocations_collection.update_one(
            {"_id": allocation["_id"]},
            {"$set": {"is_active": False, "end_date": now, "updated_at": now}}
        )
        await _adjust_manpower(allocation["project_id"], -(allocation.get("hours_allocated") or 0.0))

    await resources_collection.update_one({"_id": resource["_id"]}, {"$set": {"is_active": False, "updated_at": now}})
    logger.info("Resource deactivated", extra={"data": {"resource_id": resource_id, "allocations_closed": len(active_allocations)}})
    return success(message="Resource deleted successfully")

# -----------------------------------------------------------------------------
# Project Allocations
# -----------------------------------------------------------------------------
@router.post("/project/{project_id}/allocate", status_code=status.HTTP_201_CREATED)
async def allocate_resource(project_id: str, payload: AllocationCreate = Body(...), current_user: UserModel = Depends(require_elevated)):
    project = await get_project_or_404(project_id)
    resource = await _get_resource_or_404(payload.resource_id)
    if not resource.get("is_active", True):
        raise HTTPException(status_code=400, detail="Resource is not active")

    if await allocations_collection.find_one({"resource_id": resource["_id"], "is_active": True}, {"_id": 1}):
        logger.warning("Allocation blocked: resource busy", extra={"data": {"resource_id": payload.resource_id, "project_id": project_id}})
        raise HTTPException(status_code=400, detail=ALREADY_ALLOCATED)

    now = datetime.now()
    doc = {
        "project_id": project["_id"],
        "resource_id": resource["_id"],
        "hours_allocated": payload.hours_allocated,
        "start_date": payload.start_date,
        "end_date": payload.end_date,
        "is_active": True,
        "created_by": parse_object_id(current_user.id),
        "created_at": now,
        "updated_at": now,
    }
    try:
        result = await allocations_collection.insert_one(doc)
    except DuplicateKeyError:
        # Lost the race against a concurrent allocation of the same resource
        raise HTTPException(status_code=400, detail=ALREADY_ALLOCATED)
    doc["_id"] = result.inserted_id

    await _adjust_manpower(project["_id"], payload.hours_allocated)
    await _with_resource_details([doc])
    logger.info("Resource allocated", extra={"data": {"resource_id": payload.resource_id, "project_id": project_id, "hours": payload.hours_allocated}})
    return success(doc, message="Resource allocated successfully")


@router.get("/project/{project_id}")
async def get_project_resources(
    project_id: str,
    include_inactive: bool = Query(False),
    current_user: UserModel = Depends(get_current_user)
):
    project = await get_project_or_404(project_id)
    query = {"project_id": project["_id"]}
    if not include_inactive:
        query["is_active"] = True
    allocations = await allocations_collection.find(query).sort("start_date", -1).to_list(None)
    return success(await _with_resource_details(allocations))


@router.put("/project-allocation/{allocation_id}")
async def update_allocation(allocation_id: str, payload: AllocationUpdate = Body(...), current_user: UserModel = Depends(require_elevated)):
    allocation = await _get_allocation_or_404(allocation_id)
    if not allocation.get("is_active"):
        raise HTTPException(status_code=400, detail="Cannot update an inactive allocation")

    update_data = payload.model_dump(exclude_unset=True, exclude_none=True)
    start = update_data.get("start_date", allocation.get("start_date"))
    end = update_data.get("end_date", allocation.get("end_date"))
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="End date cannot be before start date")

    update_data["updated_at"] = datetime.now()
    updated = await allocations_collection.find_one_and_update(
        {"_id": allocation["_id"]},
        {"$set": update_data},
        return_document=ReturnDocument.AFTER
    )

    if "hours_allocated" in update_data:
        delta = update_data["hours_allocated"] - (allocation.get("hours_allocated") or 0.0)
        await _adjust_manpower(allocation["project_id"], delta)

    await _with_resource_details([updated])
    return success(updated)


@router.delete("/project-allocation/{allocation_id}")
async def remove_allocation(allocation_id: str, current_user: UserModel = Depends(require_elevated)):
    allocation = await _get_allocation_or_404(allocation_id)
    now = datetime.now()

    deactivated = await allocations_collection.find_one_and_update(
        {"_id": allocation["_id"], "is_active": True},
        {"$set": {"is_active": False, "end_date": now, "updated_at": now}},
        return_document=ReturnDocument.AFTER
    )
    if deactivated is None:
        raise HTTPException(status_code=400, detail="Allocation is already inactive")

    await _adjust_manpower(allocation["project_id"], -(allocation.get("hours_allocated") or 0.0))
    logger.info("Resource deallocated", extra={"data": {"allocation_id": allocation_id, "project_id": str(allocation["project_id"])}})
    return success(message="Resource removed from project successfully")
