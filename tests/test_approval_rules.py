import pytest
from bson import ObjectId
from datetime import datetime
from fastapi import HTTPException

from models.user import UserModel
from utils.approval import (
    initial_approval_status, initial_approval_fields, build_transaction_document, ensure_can_update,
)


def _user(role: str) -> UserModel:
    return UserModel(id=str(ObjectId()), name=f"{role} user", email=f"{role}@rules.com", role=role)


@pytest.mark.parametrize("role,expected", [
    ("admin", "approved"),
    ("manager", "pending"),
    ("user", "pending"),
])
def test_expense_initial_status_depends_on_creator(role, expected):
    assert initial_approval_status("expense", role) == expected


@pytest.mark.parametrize("tx_type", ["payment", "income"])
@pytest.mark.parametrize("role", ["admin", "manager", "user"])
def test_revenue_is_always_approved(tx_type, role):
    assert initial_approval_status(tx_type, role) == "approved"


def test_auto_approval_is_self_attributed():
    admin = _user("admin")
    now = datetime(2026, 3, 1, 12, 0)
    fields = initial_approval_fields("expense", admin, now)
    assert fields == {"approval_status": "approved", "approved_by": ObjectId(admin.id), "approved_at": now}


def test_pending_expense_has_no_approver():
    fields = initial_approval_fields("expense", _user("user"))
    assert fields["approval_status"] == "pending"
    assert fields["approved_by"] is None
    assert fields["approved_at"] is None


def test_expense_category_defaults_to_other():
    doc = build_transaction_document("expense", 50.0, ObjectId(), datetime(2026, 3, 1), _user("user"))
    assert doc["category"] == "other"
    assert doc["status"] == "pending"
    assert doc["rejection_reason"] is None
    assert doc["attachments"] == []


def test_payment_document_keeps_no_category():
    manager = _user("manager")
    doc = build_transaction_document("payment", 500.0, ObjectId(), datetime(2026, 3, 1), manager, status="paid")
    assert doc["category"] is None
    assert doc["approval_status"] == "approved"
    assert doc["approved_by"] == ObjectId(manager.id)
    assert doc["created_by"] == ObjectId(manager.id)


# ── Who may edit ──────────────────────────────────────────────────────────────

def _transaction(creator: UserModel, approval_status: str) -> dict:
    return {"created_by": ObjectId(creator.id), "approval_status": approval_status}


def test_creator_can_edit_pending_transaction():
    user = _user("user")
    ensure_can_update(_transaction(user, "pending"), user)


def test_other_plain_user_cannot_edit():
    creator, other = _user("user"), _user("user")
    with pytest.raises(HTTPException) as exc:
        ensure_can_update(_transaction(creator, "pending"), other)
    assert exc.value.status_code == 403


@pytest.mark.parametrize("approval_status", ["approved", "rejected"])
def test_decided_transaction_is_frozen_for_non_admins(approval_status):
    creator = _user("user")
    with pytest.raises(HTTPException) as exc:
        ensure_can_update(_transaction(creator, approval_status), _user("manager"))
    assert exc.value.status_code == 400
    assert "already approved or rejected" in exc.value.detail


def test_admin_can_edit_decided_transaction():
    ensure_can_update(_transaction(_user("user"), "approved"), _user("admin"))
