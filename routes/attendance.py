from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from typing import List, Optional
from datetime import datetime
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from database import attendance_collection, allocations_collection, resources_collection, projects_collection
from models.attendance import AttendanceCreate, AttendanceUpdate
from models.user import UserModel
from routes.deps import get_current_user, require_elevated
from utils.reporting import build_attendance_report
from utils.serializers import parse_object_id, success
from utils.timesheet import compute_total_hours, attendance_day, period_range
from logging_config import get_logger

router = APIRouter(prefix="/api/attendance", tags=["Attendance"])
logger = get_logger("attendance")

DUPLICATE_DAY = "Attendance record already exists for this resource on this date"


def _total_hours_or_400(check_in_time: str, check_out_time: str) -> float:
    try:
        return compute_total_hours(check_in_time, check_out_time)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


async def _load_by_id(collection, ids) -> dict:
    ids = [i for i in set(ids) if i is not None]
    if not ids:
        return {}
    return {doc["_id"]: doc async for doc in collection.find({"_id": {"$in": ids}})}


async def _records_for_allocations(allocation_ids: List, month: Optional[int], year: Optional[int]) -> List[dict]:
    query = {"project_resource_id": {"$in": allocation_ids}}
    bounds = period_range(month, year)
    if bounds:
        query["date"] = {"$gte": bounds[0], "$lt": bounds[1]}
    return await attendance_collection.find(query).sort("date", -1).to_list(None)


async def _enrich_records(records: List[dict], allocations: dict) -> List[dict]:
    resources = await _load_by_id(resources_collection, [a.get("resource_id") for a in allocations.values()])
    projects = await _load_by_id(projects_collection, [a.get("project_id") for a in allocations.values()])
    for record in records:
        allocation = allocations.get(record.get("project_resource_id")) or {}
        resource = resources.get(allocation.get("resource_id")) or {}
        project = projects.get(allocation.get("project_id")) or {}
        record["resource_id"] = allocation.get("resource_id")
        record["resource_name"] = resource.get("name", "Unknown Resource")
        record["project_id"] = allocation.get("project_id")
        record["project_name"] = project.get("name", "Unknown Project")
    return records


@router.post("", status_code=status.HTTP_201_CREATED)
async def record_attendance(payload: AttendanceCreate = Body(...), current_user: UserModel = Depends(require_elevated)):
    allocation = await allocations_collection.find_one(
        {"_id": parse_object_id(payload.project_resource_id, "allocation ID")}
    )
    if not allocation:
        raise HTTPException(status_code=404, detail="Resource allocation not found")
    if not allocation.get("is_active"):
        raise HTTPException(status_code=400, detail="Cannot record attendance for an inactive allocation")

    total_hours = _total_hours_or_400(payload.check_in_time, payload.check_out_time)
    day = attendance_day(payload.date)

    if await attendance_collection.find_one({"project_resource_id": allocation["_id"], "date": day}, {"_id": 1}):
        raise HTTPException(status_code=400, detail=DUPLICATE_DAY)

    now = datetime.now()
    doc = {
        "project_resource_id": allocation["_id"],
        "date": day,
        "check_in_time": payload.check_in_time,
        "check_out_time": payload.check_out_time,
        "total_hours": total_hours,
        "created_by": parse_object_id(current_user.id),
        "created_at": now,
        "updated_at": now,
    }
    try:
        result = await attendance_collection.insert_one(doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail=DUPLICATE_DAY)
    doc["_id"] = result.inserted_id

    logger.info("Attendance recorded", extra={"data": {"allocation_id": payload.project_resource_id, "date": str(payload.date), "hours": total_hours}})
    return success(doc, message="Attendance recorded successfully")


@router.get("/report")
async def attendance_report(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    project_id: Optional[str] = Query(None),
    current_user: UserModel = Depends(get_current_user)
):
    """Hours, days and cost per (resource, project). Cost uses today's hourly rate."""
    query = {}
    if project_id:
        query["project_id"] = parse_object_id(project_id, "project ID")
    allocations = {a["_id"]: a async for a in allocations_collection.find(query)}

    # A month without a year is ignored; a year alone covers the whole year
    period_month = month if year else None
    records = []
    if allocations:
        records = await _records_for_allocations(list(allocations.keys()), period_month, year)

    resources = await _load_by_id(resources_collection, [a.get("resource_id") for a in allocations.values()])
    projects = await _load_by_id(projects_collection, [a.get("project_id") for a in allocations.values()])
    report = build_attendance_report(records, allocations, resources, projects, month=period_month, year=year)
    return success(report)


@router.get("/project/{project_id}")
async def get_project_attendance(
    project_id: str,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    current_user: UserModel = Depends(get_current_user)
):
    oid = parse_object_id(project_id, "project ID")
    allocations = {a["_id"]: a async for a in allocations_collection.find({"project_id": oid})}
    if not allocations:
        return success([])
    records = await _records_for_allocations(list(allocations.keys()), month, year)
    return success(await _enrich_records(records, allocations))


@router.get("/resource/{resource_id}")
async def get_resource_attendance(
    resource_id: str,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    current_user: UserModel = Depends(get_current_user)
):
    oid = parse_object_id(resource_id, "resource ID")
    allocations = {a["_id"]: a async for a in allocations_collection.find({"resource_id": oid})}
    if not allocations:
        return success([])
    records = await _records_for_allocations(list(allocations.keys()), month, year)
    return success(await _enrich_records(records, allocations))


@router.put("/{attendance_id}")
async def update_attendance(attendance_id: str, payload: AttendanceUpdate = Body(...), current_user: UserModel = Depends(require_elevated)):
    oid = parse_object_id(attendance_id, "attendance ID")
    record = await attendance_collection.find_one({"_id": oid})
    if not record:
        raise HTTPException(status_code=404, detail="Attendance record not found")

    check_in = payload.check_in_time or record["check_in_time"]
    check_out = payload.check_out_time or record["check_out_time"]
    total_hours = _total_hours_or_400(check_in, check_out)

    updated = await attendance_collection.find_one_and_update(
        {"_id": oid},
        {"$set": {
            "check_in_time": check_in,
            "check_out_time": check_out,
            "total_hours": total_hours,
            "updated_at": datetime.now(),
        }},
        return_document=ReturnDocument.AFTER
    )
    return success(updated)


@router.delete("/{attendance_id}")
async def delete_attendance(attendance_id: str, current_user: UserModel = Depends(require_elevated)):
    result = await attendance_collection.delete_one({"_id": parse_object_id(attendance_id, "attendance ID")})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Attendance record not found")
    logger.info("Attendance deleted", extra={"data": {"attendance_id": attendance_id}})
    return success(message="Attendance record deleted successfully")
