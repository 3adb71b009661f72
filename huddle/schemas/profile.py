from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..models.enums import ProfileRole


class ProfileSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str | None = None
    display_name: str
    avatar_url: str | None = None


class ProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    auth_user_id: str
    email: str
    full_name: str | None = None
    avatar_url: str | None = None
    role: ProfileRole
    is_active: bool
    is_available: bool
    created_at: datetime


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(None, max_length=200)
    avatar_url: str | None = Field(None, max_length=500)
    is_available: bool | None = None


class ProfileAdminUpdate(BaseModel):
    role: ProfileRole | None = None
    is_active: bool | None = None


class AdminEmailCreate(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class AdminEmailRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    added_by_id: int | None = None
    created_at: datetime
