# models/company.py
from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator
from typing import Optional, List

class AddressModel(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class ContactInfoModel(BaseModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    website: Optional[str] = None

    @field_validator('email', mode='before')
    @classmethod
    def empty_str_to_none(cls, v):
        if v == "":
            return None
        return v


class CompanyCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    logo: Optional[str] = None
    address: AddressModel = Field(default_factory=AddressModel)
    contact_info: ContactInfoModel = Field(default_factory=ContactInfoModel)
    managers: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra='ignore')


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    logo: Optional[str] = None
    address: Optional[AddressModel] = None
    contact_info: Optional[ContactInfoModel] = None
    managers: Optional[List[str]] = None

    model_config = ConfigDict(extra='ignore')
