from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Literal
from datetime import datetime
from models.finance import AttachmentModel

MaterialRequestStatusName = Literal['pending', 'approved', 'rejected', 'purchased']

class MaterialRequestCreate(BaseModel):
    project_id: str = Field(min_length=1)
    description: str = Field(min_length=1)
    part_no: Optional[str] = None
    quantity: float = Field(gt=0)
    estimated_cost: Optional[float] = Field(default=None, ge=0)
    urgency: Literal['low', 'medium', 'high'] = 'medium'
    notes: Optional[str] = None

    model_config = ConfigDict(extra='ignore')


class MaterialPurchaseCreate(BaseModel):
    project_id: str = Field(min_length=1)
    material_request_id: Optional[str] = None
    description: str = Field(min_length=1)
    part_no: Optional[str] = None
    hsn: Optional[str] = None
    quantity: float = Field(gt=0)
    price: float = Field(ge=0)
    gst: float = Field(default=0.0, ge=0)
    total_amount: float = Field(ge=0)
    vendor: Optional[str] = None
    purchase_date: datetime
    invoice_number: Optional[str] = None
    attachments: List[AttachmentModel] = Field(default_factory=list)

    model_config = ConfigDict(extra='ignore')


class MaterialExpenseItem(BaseModel):
    description: str = Field(min_length=1)
    amount: float = Field(ge=0)
    notes: Optional[str] = None


class MaterialExpenseCreate(BaseModel):
    project_id: str = Field(min_length=1)
    date: datetime
    items: List[MaterialExpenseItem] = Field(min_length=1)

    model_config = ConfigDict(extra='ignore')
