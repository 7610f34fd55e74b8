from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from typing import Optional
from datetime import datetime
from database import material_requests_collection, material_purchases_collection, transactions_collection, projects_collection, users_collection
from models.material import MaterialRequestCreate, MaterialPurchaseCreate, MaterialExpenseCreate, MaterialRequestStatusName
from models.finance import RejectRequest
from models.user import UserModel
from routes.deps import get_current_user, require_elevated, require_admin
from routes.projects import get_project_or_404
from constants import Roles, TransactionTypes, MaterialRequestStatus, ExpenseCategories, PaymentStatus
from utils.approval import build_transaction_document, approve_material_request, reject_material_request
from utils.serializers import parse_object_id, populate_names, success
from logging_config import get_logger

router = APIRouter(prefix="/api/materials", tags=["Materials"])
logger = get_logger("materials")


def _project_filter(project_id: Optional[str]) -> dict:
    return {"project_id": parse_object_id(project_id, "project ID")} if project_id else {}

# -----------------------------------------------------------------------------
# 1. Material Requests
# -----------------------------------------------------------------------------
@router.get("/requests")
async def get_material_requests(
    project_id: Optional[str] = Query(None),
    status_filter: Optional[MaterialRequestStatusName] = Query(None, alias="status"),
    current_user: UserModel = Depends(get_current_user)
):
    query = _project_filter(project_id)
    if status_filter:
        query["status"] = status_filter
    requests = await material_requests_collection.find(query).sort("created_at", -1).to_list(None)
    await populate_names(requests, "project_id", projects_collection, "project_name", default="Unknown Project")
    await populate_names(requests, "requested_by", users_collection, "requested_by_name")
    return success(requests)


@router.post("/requests", status_code=status.HTTP_201_CREATED)
async def create_material_request(payload: MaterialRequestCreate = Body(...), current_user: UserModel = Depends(get_current_user)):
    project = await get_project_or_404(payload.project_id)

    now = datetime.now()
    doc = payload.model_dump()
    doc.update({
        "project_id": project["_id"],
        "status": MaterialRequestStatus.PENDING,
        "requested_by": parse_object_id(current_user.id),
        "approved_by": None,
        "approved_at": None,
        "rejected_by": None,
        "rejected_at": None,
        "rejection_reason": None,
        "created_at": now,
        "updated_at": now,
    })
    result = await material_requests_collection.insert_one(doc)
    doc["_id"] = result.inserted_id

    logger.info("Material request created", extra={"data": {"id": str(result.inserted_id), "project_id": payload.project_id}})
    return success(doc, message="Material request created successfully")


@router.put("/requests/{request_id}/approve")
async def approve_request(request_id: str, current_user: UserModel = Depends(require_elevated)):
    updated = await approve_material_request(parse_object_id(request_id, "material request ID"), current_user)
    return success(updated, message="Material request approved successfully")


@router.put("/requests/{request_id}/reject")
async def reject_request(request_id: str, payload: RejectRequest = Body(...), current_user: UserModel = Depends(require_elevated)):
    updated = await reject_material_request(parse_object_id(request_id, "material request ID"), current_user, payload.reason)
    return success(updated, message="Material request rejected successfully")


@router.delete("/requests/{request_id}")
async def delete_material_request(request_id: str, current_user: UserModel = Depends(get_current_user)):
    oid = parse_object_id(request_id, "material request ID")
    request = await material_requests_collection.find_one({"_id": oid}, {"requested_by": 1})
    if not request:
        raise HTTPException(status_code=404, detail="Material request not found")
    if str(request.get("requested_by")) != current_user.id and current_user.role != Roles.ADMIN:
        raise HTTPException(status_code=403, detail="Not authorized to delete this material request")

    await material_requests_collection.delete_one({"_id": oid})
    logger.info("Material request deleted", extra={"data": {"request_id": request_id}})
    return success(message="Material request deleted successfully")

# -----------------------------------------------------------------------------
# 2. Material Purchases
# -----------------------------------------------------------------------------
@router.get("/purchases")
async def get_material_purchases(project_id: Optional[str] = Query(None), current_user: UserModel = Depends(get_current_user)):
    purchases = await material_purchases_collection.find(_project_filter(project_id)).sort("purchase_date", -1).to_list(None)
    await populate_names(purchases, "project_id", projects_collection, "project_name", default="Unknown Project")
    await populate_names(purchases, "created_by", users_collection, "created_by_name")
    return success(purchases)


@router.post("/purchases", status_code=status.HTTP_201_CREATED)
async def create_material_purchase(payload: MaterialPurchaseCreate = Body(...), current_user: UserModel = Depends(require_elevated)):
    """
    Record a purchase and the expense that pays for it.

    The writes are not atomic: if the expense cannot be written or linked,
    whatever was inserted is removed again before the error propagates.
    """
    project = await get_project_or_404(payload.project_id)
    request_oid = None
    if payload.material_request_id:
        request_oid = parse_object_id(payload.material_request_id, "material request ID")
        if not await material_requests_collection.find_one({"_id": request_oid}, {"_id": 1}):
            raise HTTPException(status_code=404, detail="Material request not found")

    now = datetime.now()
    purchase = payload.model_dump(exclude={"material_request_id"})
    purchase.update({
        "project_id": project["_id"],
        "material_request_id": request_oid,
        "attachments": [a.model_dump() for a in payload.attachments],
        "created_by": parse_object_id(current_user.id),
        "expense_id": None,
        "created_at": now,
        "updated_at": now,
    })

    # Phase 1: the purchase itself
    result = await material_purchases_collection.insert_one(purchase)
    purchase["_id"] = result.inserted_id

    # Phase 2: the linked expense
    expense_result = None
    try:
        expense = build_transaction_document(
            TransactionTypes.EXPENSE,
            payload.total_amount,
            project["_id"],
            payload.purchase_date,
            current_user,
            description=f"Material Purchase: {payload.description}",
            category=ExpenseCategories.MATERIALS,
            status=PaymentStatus.PAID,
            attachments=purchase["attachments"],
        )
        expense_result = await transactions_collection.insert_one(expense)
        await material_purchases_collection.update_one(
            {"_id": purchase["_id"]},
            {"$set": {"expense_id": expense_result.inserted_id}}
        )
    except Exception:
        logger.error("Expense for material purchase failed, rolling back purchase", extra={"data": {"purchase_id": str(purchase["_id"])}}, exc_info=True)
        if expense_result is not None:
            await transactions_collection.delete_one({"_id": expense_result.inserted_id})
        await material_purchases_collection.delete_one({"_id": purchase["_id"]})
        raise
    purchase["expense_id"] = expense_result.inserted_id

    if request_oid is not None:
        await material_requests_collection.update_one(
            {"_id": request_oid},
            {"$set": {"status": MaterialRequestStatus.PURCHASED, "updated_at": datetime.now()}}
        )

    logger.info(
        "Material purchase recorded",
        extra={"data": {"purchase_id": str(purchase["_id"]), "expense_id": str(expense_result.inserted_id), "amount": payload.total_amount}}
    )
    return success(purchase, message="Material purchase recorded successfully")


@router.delete("/purchases/{purchase_id}")
async def delete_material_purchase(purchase_id: str, current_user: UserModel = Depends(require_admin)):
    oid = parse_object_id(purchase_id, "purchase ID")
    purchase = await material_purchases_collection.find_one({"_id": oid}, {"expense_id": 1})
    if not purchase:
        raise HTTPException(status_code=404, detail="Material purchase not found")

    await material_purchases_collection.delete_one({"_id": oid})
    if purchase.get("expense_id"):
        await transactions_collection.delete_one({"_id": purchase["expense_id"]})

    logger.info("Material purchase deleted", extra={"data": {"purchase_id": purchase_id}})
    return success(message="Material purchase deleted successfully")

# -----------------------------------------------------------------------------
# 3. Material Expenses (ad-hoc, no purchase record)
# -----------------------------------------------------------------------------
@router.get("/expenses")
async def get_material_expenses(project_id: Optional[str] = Query(None), current_user: UserModel = Depends(get_current_user)):
    query = _project_filter(project_id)
    query.update({"type": TransactionTypes.EXPENSE, "category": ExpenseCategories.MATERIALS})
    expenses = await transactions_collection.find(query).sort("date", -1).to_list(None)
    await populate_names(expenses, "project_id", projects_collection, "project_name", default="Unknown Project")
    await populate_names(expenses, "created_by", users_collection, "created_by_name")
    return success(expenses)


@router.post("/expenses", status_code=status.HTTP_201_CREATED)
async def create_material_expenses(payload: MaterialExpenseCreate = Body(...), current_user: UserModel = Depends(get_current_user)):
    project = await get_project_or_404(payload.project_id)

    docs = []
    for item in payload.items:
        doc = build_transaction_document(
            TransactionTypes.EXPENSE,
            item.amount,
            project["_id"],
            payload.date,
            current_user,
            description=f"Material Expense: {item.description}",
            category=ExpenseCategories.MATERIALS,
        )
        doc["notes"] = item.notes
        docs.append(doc)

    result = await transactions_collection.insert_many(docs)
    for doc, inserted_id in zip(docs, result.inserted_ids):
        doc["_id"] = inserted_id

    logger.info("Material expenses added", extra={"data": {"project_id": payload.project_id, "count": len(docs)}})
    return success(docs, message=f"{len(docs)} material expense(s) added successfully")
