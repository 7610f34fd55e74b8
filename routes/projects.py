from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from typing import Optional
from datetime import datetime
from database import companies_collection, projects_collection, transactions_collection, allocations_collection, resources_collection
from models.project import ProjectCreate, ProjectUpdate, ProjectStatusName
from models.finance import ProjectPaymentCreate, ProjectExpenseCreate
from models.user import UserModel
from routes.deps import get_current_user, require_elevated, require_admin
from constants import TransactionTypes, REVENUE_TYPES
from utils.approval import build_transaction_document
from utils.serializers import parse_object_id, parse_object_ids, populate_names, success
from logging_config import get_logger

router = APIRouter(prefix="/api/projects", tags=["Projects"])
logger = get_logger("projects")


async def get_project_or_404(project_id) -> dict:
    project = await projects_collection.find_one({"_id": parse_object_id(project_id, "project ID")})
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


async def _get_company_or_404(company_id: str) -> dict:
    company = await companies_collection.find_one({"_id": parse_object_id(company_id, "company ID")}, {"name": 1})
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")
    return company


@router.get("")
async def get_projects(
    status_filter: Optional[ProjectStatusName] = Query(None, alias="status"),
    company_id: Optional[str] = Query(None),
    current_user: UserModel = Depends(get_current_user)
):
    query = {}
    if status_filter:
        query["status"] = status_filter
    if company_id:
        query["company_id"] = parse_object_id(company_id, "company ID")

    projects = await projects_collection.find(query).sort("created_at", -1).to_list(None)
    await populate_names(projects, "company_id", companies_collection, "company_name", default="")
    return success(projects)


@router.get("/{project_id}")
async def get_project(project_id: str, current_user: UserModel = Depends(get_current_user)):
    """READ ONE: project with its payments, expenses and active allocations"""
    project = await get_project_or_404(project_id)
    oid = project["_id"]

    await populate_names([project], "company_id", companies_collection, "company_name", default="")
    project["payments"] = await transactions_collection.find(
        {"project_id": oid, "type": {"$in": list(REVENUE_TYPES)}}
    ).sort("date", -1).to_list(None)
    project["expenses"] = await transactions_collection.find(
        {"project_id": oid, "type": TransactionTypes.EXPENSE}
    ).sort("date", -1).to_list(None)

    allocations = await allocations_collection.find({"project_id": oid, "is_active": True}).sort("start_date", -1).to_list(None)
    project["resources"] = await populate_names(allocations, "resource_id", resources_collection, "resource_name")
    return success(project)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_project(payload: ProjectCreate = Body(...), current_user: UserModel = Depends(require_elevated)):
    company = await _get_company_or_404(payload.company_id)

    now = datetime.now()
    doc = payload.model_dump()
    doc["company_id"] = company["_id"]
    doc["managers"] = parse_object_ids(payload.managers, "manager ID")
    doc["team"] = parse_object_ids(payload.team, "team member ID")
    doc["manpower_allocated"] = 0.0
    doc["created_by"] = parse_object_id(current_user.id)
    doc["created_at"] = now
    doc["updated_at"] = now

    result = await projects_collection.insert_one(doc)
    doc["_id"] = result.inserted_id

    # Best-effort back-reference sync, not atomic with the insert
    await companies_collection.update_one({"_id": company["_id"]}, {"$addToSet": {"projects": result.inserted_id}})

    doc["company_name"] = company.get("name", "")
    logger.info("Project created", extra={"data": {"id": str(result.inserted_id), "company_id": payload.company_id}})
    return success(doc, message="Project created successfully")


@router.put("/{project_id}")
async def update_project(project_id: str, payload: ProjectUpdate = Body(...), current_user: UserModel = Depends(require_elevated)):
    project = await get_project_or_404(project_id)
    oid = project["_id"]

    update_data = payload.model_dump(exclude_unset=True)
    # Dates may be cleared explicitly; everything else ignores nulls
    update_data = {k: v for k, v in update_data.items() if v is not None or k == "end_date"}

    start = update_data.get("start_date", project.get("start_date"))
    end = update_data.get("end_date", project.get("end_date"))
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="End date cannot be before start date")

    old_company_id = project.get("company_id")
    new_company_id = None
    if "company_id" in update_data:
        company = await _get_company_or_404(update_data["company_id"])
        new_company_id = company["_id"]
        update_data["company_id"] = new_company_id
    if "managers" in update_data:
        update_data["managers"] = parse_object_ids(update_data["managers"], "manager ID")
    if "team" in update_data:
        update_data["team"] = parse_object_ids(update_data["team"], "team member ID")

    update_data["updated_at"] = datetime.now()
    await projects_collection.update_one({"_id": oid}, {"$set": update_data})

    if new_company_id is not None and new_company_id != old_company_id:
        # Best-effort: move the back-reference between companies
        await companies_collection.update_one({"_id": old_company_id}, {"$pull": {"projects": oid}})
        await companies_collection.update_one({"_id": new_company_id}, {"$addToSet": {"projects": oid}})
        logger.info("Project moved between companies", extra={"data": {"project_id": project_id, "from": str(old_company_id), "to": str(new_company_id)}})

    updated = await projects_collection.find_one({"_id": oid})
    await populate_names([updated], "company_id", companies_collection, "company_name", default="")
    return success(updated)


@router.delete("/{project_id}")
async def delete_project(project_id: str, current_user: UserModel = Depends(require_admin)):
    project = await get_project_or_404(project_id)
    oid = project["_id"]

    if await transactions_collection.count_documents({"project_id": oid}, limit=1):
        raise HTTPException(status_code=400, detail="Cannot delete project with associated transactions")
    # Inactive allocations still carry attendance history for the project
    if await allocations_collection.count_documents({"project_id": oid}, limit=1):
        raise HTTPException(status_code=400, detail="Cannot delete project with allocated resources")

    await projects_collection.delete_one({"_id": oid})
    await companies_collection.update_one({"_id": project.get("company_id")}, {"$pull": {"projects": oid}})

    logger.info("Project deleted", extra={"data": {"project_id": project_id}})
    return success(message="Project deleted successfully")


@router.post("/{project_id}/payments", status_code=status.HTTP_201_CREATED)
async def add_project_payment(project_id: str, payload: ProjectPaymentCreate, current_user: UserModel = Depends(require_elevated)):
    project = await get_project_or_404(project_id)
    doc = build_transaction_document(
        TransactionTypes.PAYMENT,
        payload.amount,
        project["_id"],
        payload.date,
        current_user,
        description=payload.description,
        status=payload.status,
    )
    result = await transactions_collection.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Payment added to project", extra={"data": {"project_id": project_id, "amount": payload.amount}})
    return success(doc, message="Payment added successfully")


@router.post("/{project_id}/expenses", status_code=status.HTTP_201_CREATED)
async def add_project_expense(project_id: str, payload: ProjectExpenseCreate, current_user: UserModel = Depends(get_current_user)):
    project = await get_project_or_404(project_id)
    doc = build_transaction_document(
        TransactionTypes.EXPENSE,
        payload.amount,
        project["_id"],
        payload.date,
        current_user,
        description=payload.description,
        category=payload.category,
        attachments=[a.model_dump() for a in payload.attachments],
    )
    result = await transactions_collection.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Expense added to project", extra={"data": {"project_id": project_id, "amount": payload.amount, "approval_status": doc["approval_status"]}})
    return success(doc, message="Expense added successfully")
