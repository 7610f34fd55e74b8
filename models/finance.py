from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Literal
from datetime import datetime

TransactionTypeName = Literal['expense', 'payment', 'income']
PaymentStatusName = Literal['paid', 'pending', 'overdue']
ApprovalStatusName = Literal['pending', 'approved', 'rejected']

# -----------------------------------------------------------------------------
# 1. Attachments
# -----------------------------------------------------------------------------
class AttachmentModel(BaseModel):
    # data is an opaque (base64) blob, url points at external storage
    name: str
    url: Optional[str] = None
    data: Optional[str] = None
    content_type: Optional[str] = None
    size: Optional[int] = Field(default=None, ge=0)

# -----------------------------------------------------------------------------
# 2. Transactions
# -----------------------------------------------------------------------------
class TransactionCreate(BaseModel):
    type: TransactionTypeName
    amount: float = Field(ge=0)
    description: Optional[str] = None
    category: Optional[str] = None
    project_id: str = Field(min_length=1)
    date: datetime
    status: PaymentStatusName = "pending"
    attachments: List[AttachmentModel] = Field(default_factory=list)

    model_config = ConfigDict(extra='ignore')


class TransactionUpdate(BaseModel):
    type: Optional[TransactionTypeName] = None
    amount: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = None
    category: Optional[str] = None
    project_id: Optional[str] = None
    date: Optional[datetime] = None
    status: Optional[PaymentStatusName] = None
    attachments: Optional[List[AttachmentModel]] = None

    model_config = ConfigDict(extra='ignore')


class RejectRequest(BaseModel):
    reason: str = ""

    @field_validator('reason', mode='after')
    @classmethod
    def reason_required(cls, v):
        if not v.strip():
            raise ValueError("Rejection reason is required")
        return v.strip()

# -----------------------------------------------------------------------------
# 3. Project shortcuts (payment / expense added from a project page)
# -----------------------------------------------------------------------------
class ProjectPaymentCreate(BaseModel):
    amount: float = Field(ge=0)
    date: datetime
    status: PaymentStatusName = "pending"
    description: Optional[str] = None


class ProjectExpenseCreate(BaseModel):
    amount: float = Field(ge=0)
    date: datetime
    category: str = Field(min_length=1)
    description: Optional[str] = None
    attachments: List[AttachmentModel] = Field(default_factory=list)

# -----------------------------------------------------------------------------
# 4. Expense Categories
# -----------------------------------------------------------------------------
class ExpenseCategoryCreate(BaseModel):
    category: str = ""

    @field_validator('category', mode='after')
    @classmethod
    def category_required(cls, v):
        if not v.strip():
            raise ValueError("Category name is required")
        return v.strip()
