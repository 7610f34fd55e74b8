from fastapi import APIRouter, Body, Depends
from typing import List
from datetime import datetime
from database import transactions_collection, material_requests_collection, projects_collection, users_collection
from models.finance import RejectRequest
from models.user import UserModel
from routes.deps import require_elevated
from constants import TransactionTypes, ApprovalStatus, MaterialRequestStatus
from utils.approval import approve_transaction, reject_transaction, approve_material_request, reject_material_request
from utils.serializers import parse_object_id, populate_names, success
from logging_config import get_logger

router = APIRouter(prefix="/api/approvals", tags=["Approvals"])
logger = get_logger("approvals")


def _approval_item(doc: dict, kind: str, creator_field: str) -> dict:
    if kind == "expense":
        amount = doc.get("amount")
        date = doc.get("date")
        status = doc.get("approval_status")
    else:
        amount = doc.get("estimated_cost")
        date = doc.get("created_at")
        status = doc.get("status")

    return {
        "id": str(doc["_id"]),
        "type": kind,
        "description": doc.get("description"),
        "amount": amount,
        "category": doc.get("category"),
        "quantity": doc.get("quantity"),
        "urgency": doc.get("urgency"),
        "project_id": str(doc["project_id"]) if doc.get("project_id") else None,
        "project_name": doc.get("project_name"),
        "created_by": {
            "id": str(doc[creator_field]) if doc.get(creator_field) else None,
            "name": doc.get("creator_name") or "Unknown User",
        },
        "created_at": doc.get("created_at"),
        "date": date,
        "status": status,
    }


@router.get("/pending")
async def get_pending_approvals(current_user: UserModel = Depends(require_elevated)):
    """
    Everything waiting on a decision.
    Payments and income approve themselves on creation, so only expenses show up here.
    """
    expenses = await transactions_collection.find(
        {"type": TransactionTypes.EXPENSE, "approval_status": ApprovalStatus.PENDING}
    ).to_list(None)
    requests = await material_requests_collection.find({"status": MaterialRequestStatus.PENDING}).to_list(None)

    for docs, creator_field in ((expenses, "created_by"), (requests, "requested_by")):
        await populate_names(docs, "project_id", projects_collection, "project_name", default="Unknown Project")
        await populate_names(docs, creator_field, users_collection, "creator_name")

    items: List[dict] = [_approval_item(e, "expense", "created_by") for e in expenses]
    items += [_approval_item(r, "material", "requested_by") for r in requests]
    items.sort(key=lambda item: item["created_at"] or item["date"] or datetime.min, reverse=True)

    logger.debug("Pending approvals listed", extra={"data": {"expenses": len(expenses), "materials": len(requests)}})
    return success(items)


@router.put("/finances/{transaction_id}/approve")
async def approve_finance(transaction_id: str, current_user: UserModel = Depends(require_elevated)):
    updated = await approve_transaction(parse_object_id(transaction_id, "transaction ID"), current_user)
    return success(updated, message="Transaction approved successfully")


@router.put("/finances/{transaction_id}/reject")
async def reject_finance(transaction_id: str, payload: RejectRequest = Body(...), current_user: UserModel = Depends(require_elevated)):
    updated = await reject_transaction(parse_object_id(transaction_id, "transaction ID"), current_user, payload.reason)
    return success(updated, message="Transaction rejected successfully")


@router.put("/materials/{request_id}/approve")
async def approve_material(request_id: str, current_user: UserModel = Depends(require_elevated)):
    updated = await approve_material_request(parse_object_id(request_id, "material request ID"), current_user)
    return success(updated, message="Material request approved successfully")


@router.put("/materials/{request_id}/reject")
async def reject_material(request_id: str, payload: RejectRequest = Body(...), current_user: UserModel = Depends(require_elevated)):
    updated = await reject_material_request(parse_object_id(request_id, "material request ID"), current_user, payload.reason)
    return success(updated, message="Material request rejected successfully")
