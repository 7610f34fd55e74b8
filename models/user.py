from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator
from typing import Optional, Literal
from datetime import datetime

RoleName = Literal['admin', 'manager', 'user']

class UserModel(BaseModel):
    """Authenticated caller, built from a stored user document."""
    id: str
    name: str
    email: EmailStr
    role: RoleName = "user"
    manager_id: Optional[str] = None
    profile_image: Optional[str] = None
    theme: Literal['light', 'dark'] = "light"
    created_at: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore"
    )

    @classmethod
    def from_document(cls, doc: dict) -> "UserModel":
        data = {k: v for k, v in doc.items() if k not in ("_id", "password_hash")}
        data["id"] = str(doc["_id"])
        if data.get("manager_id") is not None:
            data["manager_id"] = str(data["manager_id"])
        return cls(**data)


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: RoleName = "user"

    @field_validator('email', mode='after')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator('email', mode='after')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[RoleName] = None
    manager_id: Optional[str] = None
    theme: Optional[Literal['light', 'dark']] = None
    profile_image: Optional[str] = None

    model_config = ConfigDict(extra='ignore')


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own account."""
    name: Optional[str] = Field(default=None, min_length=1)
    theme: Optional[Literal['light', 'dark']] = None
    profile_image: Optional[str] = None

    model_config = ConfigDict(extra='ignore')
