# routes/companies.py
from fastapi import APIRouter, Body, Depends, HTTPException, status
from datetime import datetime
from database import companies_collection, projects_collection
from models.company import CompanyCreate, CompanyUpdate
from models.user import UserModel
from routes.deps import get_current_user, require_elevated, require_admin
from utils.serializers import parse_object_id, parse_object_ids, success
from logging_config import get_logger

router = APIRouter(
    prefix="/api/companies",
    tags=["Companies"]
)
logger = get_logger("companies")


async def _ensure_unique_email(email, exclude_id=None):
    # Pre-check only; two concurrent creates with the same email can both pass
    if not email:
        return
    query = {"contact_info.email": email}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    if await companies_collection.find_one(query, {"_id": 1}):
        raise HTTPException(status_code=400, detail="Company with this email already exists")


@router.get("")
async def get_companies(current_user: UserModel = Depends(get_current_user)):
    companies = await companies_collection.find({}).sort("name", 1).to_list(None)
    return success(companies)


@router.get("/{company_id}")
async def get_company(company_id: str, current_user: UserModel = Depends(get_current_user)):
    """READ ONE: company with a short summary of its projects"""
    oid = parse_object_id(company_id, "company ID")
    company = await companies_collection.find_one({"_id": oid})
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")

    projects = await projects_collection.find(
        {"company_id": oid},
        {"name": 1, "status": 1, "start_date": 1, "end_date": 1}
    ).to_list(None)
    company["projects"] = projects
    return success(company)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_company(payload: CompanyCreate = Body(...), current_user: UserModel = Depends(require_elevated)):
    await _ensure_unique_email(payload.contact_info.email)

    now = datetime.now()
    doc = payload.model_dump()
    doc["managers"] = parse_object_ids(payload.managers, "manager ID")
    doc["projects"] = []
    doc["created_at"] = now
    doc["updated_at"] = now

    result = await companies_collection.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Company created", extra={"data": {"id": str(result.inserted_id), "name": payload.name}})
    return success(doc, message="Company created successfully")


@router.put("/{company_id}")
async def update_company(company_id: str, payload: CompanyUpdate = Body(...), current_user: UserModel = Depends(require_elevated)):
    oid = parse_object_id(company_id, "company ID")
    if not await companies_collection.find_one({"_id": oid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Company not found")

    update_data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if payload.contact_info is not None:
        await _ensure_unique_email(payload.contact_info.email, exclude_id=oid)
    if "managers" in update_data:
        update_data["managers"] = parse_object_ids(update_data["managers"], "manager ID")
    update_data["updated_at"] = datetime.now()

    await companies_collection.update_one({"_id": oid}, {"$set": update_data})
    company = await companies_collection.find_one({"_id": oid})
    logger.info("Company updated", extra={"data": {"company_id": company_id, "fields": list(update_data.keys())}})
    return success(company)


@router.delete("/{company_id}")
async def delete_company(company_id: str, current_user: UserModel = Depends(require_admin)):
    oid = parse_object_id(company_id, "company ID")
    if not await companies_collection.find_one({"_id": oid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Company not found")

    if await projects_collection.count_documents({"company_id": oid}, limit=1):
        logger.warning("Company deletion blocked: has projects", extra={"data": {"company_id": company_id}})
        raise HTTPException(status_code=400, detail="Cannot delete company with associated projects")

    await companies_collection.delete_one({"_id": oid})
    logger.info("Company deleted", extra={"data": {"company_id": company_id}})
    return success(message="Company deleted successfully")
