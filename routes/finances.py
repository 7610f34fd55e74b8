from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from typing import List, Optional
from datetime import datetime
from database import (
    transactions_collection, projects_collection, users_collection,
    expense_categories_collection, material_purchases_collection,
)
from models.finance import (
    TransactionCreate, TransactionUpdate, RejectRequest, ExpenseCategoryCreate,
    TransactionTypeName, PaymentStatusName, ApprovalStatusName,
)
from models.user import UserModel
from routes.deps import get_current_user, require_elevated, require_admin
from constants import TransactionTypes, ApprovalStatus, ExpenseCategories, REVENUE_TYPES, MONTH_LABELS
from utils.approval import (
    build_transaction_document, ensure_can_update, approve_transaction, reject_transaction,
    initial_approval_fields, is_elevated,
)
from utils.reporting import summarize_transactions, category_breakdown, month_bounds
from utils.serializers import parse_object_id, populate_names, success
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from logging_config import get_logger

router = APIRouter(prefix="/api/finances", tags=["Finances"])
logger = get_logger("finances")

# Revenue is always counted, expenses only once approved
COUNTED_FILTER = [
    {"type": {"$in": list(REVENUE_TYPES)}},
    {"type": TransactionTypes.EXPENSE, "approval_status": ApprovalStatus.APPROVED},
]

# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------
def date_range_filter(start_date: Optional[datetime], end_date: Optional[datetime]) -> dict:
    if not (start_date or end_date):
        return {}
    date_filter = {}
    if start_date:
        date_filter["$gte"] = start_date
    if end_date:
        date_filter["$lte"] = end_date
    return {"date": date_filter}


async def enrich_transactions(transactions: List[dict]) -> List[dict]:
    await populate_names(transactions, "project_id", projects_collection, "project_name", default="Unknown Project")
    await populate_names(transactions, "created_by", users_collection, "created_by_name")
    await populate_names(transactions, "approved_by", users_collection, "approved_by_name")
    await populate_names(transactions, "rejected_by", users_collection, "rejected_by_name")
    return transactions


async def ensure_project_exists(project_id: str):
    oid = parse_object_id(project_id, "project ID")
    if not await projects_collection.find_one({"_id": oid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Project not found")
    return oid


async def sum_amount(match: dict) -> float:
    rows = await transactions_collection.aggregate([
        {"$match": match},
        {"$group": {"_id": None, "total": {"$sum": "$amount"}}}
    ]).to_list(1)
    return rows[0]["total"] if rows else 0.0


async def known_expense_categories() -> List[str]:
    categories = await expense_categories_collection.find({}, {"name": 1}).sort("name", 1).to_list(None)
    return [c["name"] for c in categories]

# -----------------------------------------------------------------------------
# Listing & Reports
# -----------------------------------------------------------------------------
@router.get("")
async def get_transactions(
    project_id: Optional[str] = None,
    type: Optional[TransactionTypeName] = None,
    status_filter: Optional[PaymentStatusName] = Query(None, alias="status"),
    approval_status: Optional[ApprovalStatusName] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: UserModel = Depends(get_current_user)
):
    query = {}
    if type:
        query["type"] = type
    if status_filter:
        query["status"] = status_filter
    if approval_status:
        query["approval_status"] = approval_status
    if project_id:
        query["project_id"] = parse_object_id(project_id, "project ID")
        # Project ledgers only show what counts towards the project's money
        query["$or"] = COUNTED_FILTER
    query.update(date_range_filter(start_date, end_date))

    transactions = await transactions_collection.find(query).sort("date", -1).to_list(None)
    return success(await enrich_transactions(transactions))


@router.get("/summary")
async def get_summary(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    company_id: Optional[str] = None,
    project_id: Optional[str] = None,
    current_user: UserModel = Depends(get_current_user)
):
    query = date_range_filter(start_date, end_date)
    if project_id:
        query["project_id"] = parse_object_id(project_id, "project ID")
    elif company_id:
        projects = await projects_collection.find(
            {"company_id": parse_object_id(company_id, "company ID")}, {"_id": 1}
        ).to_list(None)
        query["project_id"] = {"$in": [p["_id"] for p in projects]}
    query["$or"] = COUNTED_FILTER

    transactions = await transactions_collection.find(
        query, {"type": 1, "amount": 1, "status": 1, "approval_status": 1}
    ).to_list(None)
    return success(summarize_transactions(transactions))


@router.get("/chart-data")
async def get_chart_data(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    current_user: UserModel = Depends(get_current_user)
):
    """Monthly income vs approved expenses, one pair of range queries per month."""
    year = year or datetime.now().year
    income_data = []
    expense_data = []

    for month in range(1, 13):
        start, end = month_bounds(year, month)
        in_month = {"$gte": start, "$lt": end}
        income_data.append(await sum_amount({"type": {"$in": list(REVENUE_TYPES)}, "date": in_month}))
        expense_data.append(await sum_amount({
            "type": TransactionTypes.EXPENSE,
            "approval_status": ApprovalStatus.APPROVED,
            "date": in_month,
        }))

    return success({
        "year": year,
        "labels": MONTH_LABELS,
        "datasets": [
            {"label": "Income", "data": income_data},
            {"label": "Expenses", "data": expense_data},
        ],
    })


@router.get("/category-expenses")
async def get_category_expenses(current_user: UserModel = Depends(get_current_user)):
    expenses = await transactions_collection.find(
        {"type": TransactionTypes.EXPENSE, "approval_status": ApprovalStatus.APPROVED},
        {"type": 1, "amount": 1, "category": 1, "approval_status": 1}
    ).to_list(None)
    breakdown = category_breakdown(expenses, await known_expense_categories())
    return success({
        "labels": list(breakdown.keys()),
        "datasets": [{"data": list(breakdown.values())}],
        "breakdown": breakdown,
    })


@router.get("/export")
async def export_transactions(
    format: str = "json",
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: UserModel = Depends(get_current_user)
):
    transactions = await transactions_collection.find(date_range_filter(start_date, end_date)).sort("date", -1).to_list(None)
    await enrich_transactions(transactions)

    rows = [
        {
            "id": str(t["_id"]),
            "type": t.get("type"),
            "amount": t.get("amount"),
            "description": t.get("description"),
            "category": t.get("category"),
            "project": t.get("project_name"),
            "date": t["date"].strftime("%Y-%m-%d") if t.get("date") else None,
            "status": t.get("status"),
            "approval_status": t.get("approval_status"),
            "created_by": t.get("created_by_name") or "Unknown User",
            "approved_by": t.get("approved_by_name") or "Not Approved",
        }
        for t in transactions
    ]
    logger.info("Transactions exported", extra={"data": {"rows": len(rows), "format": format}})
    return success(rows, format=format)

# -----------------------------------------------------------------------------
# Expense Categories
# -----------------------------------------------------------------------------
@router.get("/expense-categories")
async def get_expense_categories(current_user: UserModel = Depends(get_current_user)):
    return success(await known_expense_categories())


@router.post("/expense-categories", status_code=status.HTTP_201_CREATED)
async def create_expense_category(payload: ExpenseCategoryCreate, current_user: UserModel = Depends(require_elevated)):
    if await expense_categories_collection.find_one({"name": payload.category}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="Category already exists")
    try:
        await expense_categories_collection.insert_one({"name": payload.category, "created_at": datetime.now()})
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Category already exists")

    logger.info("Expense category added", extra={"data": {"category": payload.category}})
    return success(message="Category added successfully", category=payload.category)

# -----------------------------------------------------------------------------
# Transactions CRUD
# -----------------------------------------------------------------------------
@router.get("/{transaction_id}")
async def get_transaction(transaction_id: str, current_user: UserModel = Depends(get_current_user)):
    transaction = await transactions_collection.find_one({"_id": parse_object_id(transaction_id, "transaction ID")})
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")
    await enrich_transactions([transaction])
    return success(transaction)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_transaction(payload: TransactionCreate = Body(...), current_user: UserModel = Depends(get_current_user)):
    # Revenue entries are recorded by managers/admins only
    if payload.type != TransactionTypes.EXPENSE and not is_elevated(current_user.role):
        raise HTTPException(status_code=403, detail="Only admins or managers can record payments and income")

    project_oid = await ensure_project_exists(payload.project_id)
    doc = build_transaction_document(
        payload.type,
        payload.amount,
        project_oid,
        payload.date,
        current_user,
        description=payload.description,
        category=payload.category,
        status=payload.status,
        attachments=[a.model_dump() for a in payload.attachments],
    )
    result = await transactions_collection.insert_one(doc)
    doc["_id"] = result.inserted_id

    logger.info(
        "Transaction created",
        extra={"data": {"id": str(result.inserted_id), "type": payload.type, "amount": payload.amount, "approval_status": doc["approval_status"]}}
    )
    return success(doc, message="Transaction created successfully")


@router.put("/{transaction_id}")
async def update_transaction(transaction_id: str, payload: TransactionUpdate = Body(...), current_user: UserModel = Depends(get_current_user)):
    oid = parse_object_id(transaction_id, "transaction ID")
    transaction = await transactions_collection.find_one({"_id": oid})
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")

    ensure_can_update(transaction, current_user)

    update_data = payload.model_dump(exclude_unset=True, exclude_none=True)
    new_type = update_data.get("type")
    if new_type and new_type != transaction.get("type"):
        if new_type != TransactionTypes.EXPENSE and not is_elevated(current_user.role):
            raise HTTPException(status_code=403, detail="Only admins or managers can record payments and income")
        # A retyped transaction starts its approval over
        update_data.update(initial_approval_fields(new_type, current_user))
        update_data.update({"rejection_reason": None, "rejected_by": None, "rejected_at": None})
        if new_type == TransactionTypes.EXPENSE and not (update_data.get("category") or transaction.get("category")):
            update_data["category"] = ExpenseCategories.OTHER
    if "project_id" in update_data:
        update_data["project_id"] = await ensure_project_exists(update_data["project_id"])
    update_data["updated_at"] = datetime.now()

    updated = await transactions_collection.find_one_and_update(
        {"_id": oid},
        {"$set": update_data},
        return_document=ReturnDocument.AFTER
    )
    logger.info("Transaction updated", extra={"data": {"id": transaction_id, "fields": list(update_data.keys())}})
    return success(updated)


@router.delete("/{transaction_id}")
async def delete_transaction(transaction_id: str, current_user: UserModel = Depends(require_admin)):
    oid = parse_object_id(transaction_id, "transaction ID")
    result = await transactions_collection.delete_one({"_id": oid})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Transaction not found")

    # A purchase without its expense is meaningless; remove it too
    purchases = await material_purchases_collection.delete_many({"expense_id": oid})
    logger.info("Transaction deleted", extra={"data": {"id": transaction_id, "purchases_removed": purchases.deleted_count}})
    return success(message="Transaction deleted successfully")

# -----------------------------------------------------------------------------
# Approval Workflow
# -----------------------------------------------------------------------------
@router.put("/{transaction_id}/approve")
async def approve(transaction_id: str, current_user: UserModel = Depends(require_elevated)):
    updated = await approve_transaction(parse_object_id(transaction_id, "transaction ID"), current_user)
    return success(updated, message="Transaction approved successfully")


@router.put("/{transaction_id}/reject")
async def reject(transaction_id: str, payload: RejectRequest = Body(...), current_user: UserModel = Depends(require_elevated)):
    updated = await reject_transaction(parse_object_id(transaction_id, "transaction ID"), current_user, payload.reason)
    return success(updated, message="Transaction rejected successfully")
