from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Optional, List, Literal
from datetime import datetime

ProjectStatusName = Literal['planning', 'in-progress', 'on-hold', 'completed', 'cancelled']

class ProjectCreate(BaseModel):
    name: str = Field(min_length=1)
    company_id: str
    description: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    status: ProjectStatusName = "planning"
    budget: Optional[float] = Field(default=None, ge=0)
    managers: List[str] = Field(default_factory=list)
    team: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra='ignore')

    @model_validator(mode='after')
    def check_date_range(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    company_id: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[ProjectStatusName] = None
    budget: Optional[float] = Field(default=None, ge=0)
    managers: Optional[List[str]] = None
    team: Optional[List[str]] = None

    model_config = ConfigDict(extra='ignore')
