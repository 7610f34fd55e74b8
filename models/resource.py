from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator, model_validator
from typing import Optional, List
from datetime import datetime

class ResourceCreate(BaseModel):
    name: str = Field(min_length=1)
    role: Optional[str] = None
    hourly_rate: float = Field(default=0.0, ge=0)
    skills: List[str] = Field(default_factory=list)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

    model_config = ConfigDict(extra='ignore')

    @field_validator('email', mode='before')
    @classmethod
    def empty_str_to_none(cls, v):
        if v == "":
            return None
        return v


class ResourceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    role: Optional[str] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    skills: Optional[List[str]] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

    model_config = ConfigDict(extra='ignore')


class AllocationCreate(BaseModel):
    resource_id: str = Field(min_length=1)
    hours_allocated: float = Field(default=0.0, ge=0)
    start_date: datetime
    end_date: Optional[datetime] = None

    model_config = ConfigDict(extra='ignore')

    @model_validator(mode='after')
    def check_date_range(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class AllocationUpdate(BaseModel):
    hours_allocated: Optional[float] = Field(default=None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    model_config = ConfigDict(extra='ignore')
