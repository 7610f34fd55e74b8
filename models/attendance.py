from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
import datetime as dt

# 24h clock, e.g. "09:30"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

class AttendanceCreate(BaseModel):
    project_resource_id: str = Field(min_length=1)
    date: dt.date
    check_in_time: str = Field(pattern=TIME_PATTERN)
    check_out_time: str = Field(pattern=TIME_PATTERN)

    model_config = ConfigDict(extra='ignore')


class AttendanceUpdate(BaseModel):
    check_in_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    check_out_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)

    model_config = ConfigDict(extra='ignore')
