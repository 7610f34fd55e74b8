"""
Approval workflow for financial transactions and material requests.

Pure rules (initial status, who may edit) are plain functions; transitions are
single conditional writes so a concurrent duplicate request cannot overwrite
the first approver/rejector.
"""
from datetime import datetime
from typing import Iterable, Optional
from bson import ObjectId
from fastapi import HTTPException
from pymongo import ReturnDocument

from constants import Roles, ELEVATED_ROLES, TransactionTypes, ApprovalStatus, MaterialRequestStatus, ExpenseCategories
from database import transactions_collection, material_requests_collection
from models.user import UserModel
from logging_config import get_logger

logger = get_logger("approvals")


def is_elevated(role: str) -> bool:
    return role in ELEVATED_ROLES


def is_top_privilege(role: str) -> bool:
    return role == Roles.ADMIN


def initial_approval_status(tx_type: str, actor_role: str) -> str:
    """Expenses wait for approval unless an admin files them; revenue is auto-approved."""
    if tx_type == TransactionTypes.EXPENSE:
        return ApprovalStatus.APPROVED if is_top_privilege(actor_role) else ApprovalStatus.PENDING
    return ApprovalStatus.APPROVED


def initial_approval_fields(tx_type: str, actor: UserModel, now: Optional[datetime] = None) -> dict:
    status = initial_approval_status(tx_type, actor.role)
    if status == ApprovalStatus.APPROVED:
        # self-attributed approval
        return {
            "approval_status": status,
            "approved_by": ObjectId(actor.id),
            "approved_at": now or datetime.now(),
        }
    return {"approval_status": status, "approved_by": None, "approved_at": None}


def build_transaction_document(
    tx_type: str,
    amount: float,
    project_id: ObjectId,
    date: datetime,
    actor: UserModel,
    description: Optional[str] = None,
    category: Optional[str] = None,
    status: str = "pending",
    attachments: Optional[list] = None,
) -> dict:
    """Assemble a transaction ready for insert, approval fields included."""
    now = datetime.now()
    if tx_type == TransactionTypes.EXPENSE:
        category = category or ExpenseCategories.OTHER
    doc = {
        "type": tx_type,
        "amount": amount,
        "description": description,
        "category": category,
        "project_id": project_id,
        "date": date,
        "status": status,
        "attachments": attachments or [],
        "created_by": ObjectId(actor.id),
        "rejection_reason": None,
        "rejected_by": None,
        "rejected_at": None,
        "created_at": now,
        "updated_at": now,
    }
    doc.update(initial_approval_fields(tx_type, actor, now))
    return doc


def ensure_can_update(transaction: dict, actor: UserModel) -> None:
    """Only the creator or an elevated actor edits, and only while pending unless admin."""
    if str(transaction.get("created_by")) != actor.id and not is_elevated(actor.role):
        raise HTTPException(status_code=403, detail="Not authorized to update this transaction")
    if transaction.get("approval_status") != ApprovalStatus.PENDING and not is_top_privilege(actor.role):
        raise HTTPException(status_code=400, detail="Cannot update transaction that is already approved or rejected")


async def _transition(
    collection,
    doc_id: ObjectId,
    status_field: str,
    blocked: Iterable[str],
    changes: dict,
    not_found: str,
    conflicts: dict,
) -> dict:
    current = await collection.find_one({"_id": doc_id}, {status_field: 1})
    if not current:
        raise HTTPException(status_code=404, detail=not_found)
    if current.get(status_field) in blocked:
        raise HTTPException(status_code=400, detail=conflicts[current.get(status_field)])

    updated = await collection.find_one_and_update(
        {"_id": doc_id, status_field: {"$nin": list(blocked)}},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        # Another request moved it between the read and the write
        latest = await collection.find_one({"_id": doc_id}, {status_field: 1})
        if not latest:
            raise HTTPException(status_code=404, detail=not_found)
        raise HTTPException(status_code=400, detail=conflicts.get(latest.get(status_field), "Status changed concurrently"))
    return updated


async def approve_transaction(transaction_id: ObjectId, actor: UserModel) -> dict:
    now = datetime.now()
    updated = await _transition(
        transactions_collection,
        transaction_id,
        "approval_status",
        blocked=[ApprovalStatus.APPROVED],
        changes={
            "approval_status": ApprovalStatus.APPROVED,
            "approved_by": ObjectId(actor.id),
            "approved_at": now,
            "rejection_reason": None,
            "rejected_by": None,
            "rejected_at": None,
            "updated_at": now,
        },
        not_found="Transaction not found",
        conflicts={ApprovalStatus.APPROVED: "Transaction already approved"},
    )
    logger.info("Transaction approved", extra={"data": {"transaction_id": str(transaction_id), "by": actor.id}})
    return updated


async def reject_transaction(transaction_id: ObjectId, actor: UserModel, reason: str) -> dict:
    if not reason or not reason.strip():
        raise HTTPException(status_code=400, detail="Rejection reason is required")
    now = datetime.now()
    updated = await _transition(
        transactions_collection,
        transaction_id,
        "approval_status",
        blocked=[ApprovalStatus.REJECTED],
        changes={
            "approval_status": ApprovalStatus.REJECTED,
            "rejected_by": ObjectId(actor.id),
            "rejected_at": now,
            "rejection_reason": reason.strip(),
            "approved_by": None,
            "approved_at": None,
            "updated_at": now,
        },
        not_found="Transaction not found",
        conflicts={ApprovalStatus.REJECTED: "Transaction already rejected"},
    )
    logger.info("Transaction rejected", extra={"data": {"transaction_id": str(transaction_id), "by": actor.id}})
    return updated


MATERIAL_CONFLICTS = {
    MaterialRequestStatus.APPROVED: "Material request already approved",
    MaterialRequestStatus.REJECTED: "Material request already rejected",
    MaterialRequestStatus.PURCHASED: "Material request already purchased",
}


async def approve_material_request(request_id: ObjectId, actor: UserModel) -> dict:
    now = datetime.now()
    updated = await _transition(
        material_requests_collection,
        request_id,
        "status",
        blocked=[MaterialRequestStatus.APPROVED, MaterialRequestStatus.PURCHASED],
        changes={
            "status": MaterialRequestStatus.APPROVED,
            "approved_by": ObjectId(actor.id),
            "approved_at": now,
            "rejection_reason": None,
            "rejected_by": None,
            "rejected_at": None,
            "updated_at": now,
        },
        not_found="Material request not found",
        conflicts=MATERIAL_CONFLICTS,
    )
    logger.info("Material request approved", extra={"data": {"request_id": str(request_id), "by": actor.id}})
    return updated


async def reject_material_request(request_id: ObjectId, actor: UserModel, reason: str) -> dict:
    if not reason or not reason.strip():
        raise HTTPException(status_code=400, detail="Rejection reason is required")
    now = datetime.now()
    updated = await _transition(
        material_requests_collection,
        request_id,
        "status",
        blocked=[MaterialRequestStatus.REJECTED, MaterialRequestStatus.PURCHASED],
        changes={
            "status": MaterialRequestStatus.REJECTED,
            "rejected_by": ObjectId(actor.id),
            "rejected_at": now,
            "rejection_reason": reason.strip(),
            "approved_by": None,
            "approved_at": None,
            "updated_at": now,
        },
        not_found="Material request not found",
        conflicts=MATERIAL_CONFLICTS,
    )
    logger.info("Material request rejected", extra={"data": {"request_id": str(request_id), "by": actor.id}})
    return updated
