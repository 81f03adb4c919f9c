# app/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

Role = Literal["buyer", "seller", "agent", "student"]


# ---------------- Registration ----------------

class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(alias="firstName", min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, alias="lastName", max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)
    role: Role
    school_id: Optional[str] = Field(default=None, alias="schoolId", max_length=100)
    business_reg_number: Optional[str] = Field(default=None, alias="businessRegNumber", max_length=100)
    address: Optional[str] = Field(default=None, max_length=500)
    profile_image_url: Optional[str] = Field(default=None, alias="profileImageUrl", max_length=2048)
    terms_accepted: bool = Field(alias="termsAccepted")

    # password is left untouched; it is hashed as submitted
    @field_validator(
        "email", "first_name", "last_name", "phone", "school_id",
        "business_reg_number", "address", "profile_image_url",
        mode="before",
    )
    @classmethod
    def _strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("terms_accepted")
    @classmethod
    def _must_accept_terms(cls, v: bool) -> bool:
        if not v:
            raise ValueError("Terms and conditions must be accepted")
        return v

    @field_validator("last_name", "phone", "school_id", "business_reg_number", "address", "profile_image_url")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class UserPublic(BaseModel):
    id: int
    email: EmailStr
    first_name: str
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: str
    school_id: Optional[str] = None
    business_reg_number: Optional[str] = None
    address: Optional[str] = None
    profile_image_url: Optional[str] = None
    terms_accepted: bool
    terms_accepted_at: Optional[datetime] = None
    verified_status: bool
    email_verified: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------- Email verification ----------------

class VerifyEmailRequest(BaseModel):
    email: EmailStr
    code: str = Field(pattern=r"^\d{6}$")


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class OkResult(BaseModel):
    success: bool
    message: Optional[str] = None
