from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

from app.modules.profiles.models import Role


class OrganizationSummary(BaseModel):
    id: str
    name: str
    slug: str
    industry: Optional[str] = None
    company_size: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Profile(BaseModel):
    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: Role = Role.USER
    organization_id: Optional[str] = None
    email_verified: bool = False
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    organization: Optional[OrganizationSummary] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    @property
    def organization_name(self) -> Optional[str]:
        return self.organization.name if self.organization else None


class ProfileUpdate(BaseModel):
    """Self-service fields."""
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)


class AdminProfileUpdate(ProfileUpdate):
    role: Optional[Role] = None
    organization_id: Optional[str] = None
    is_active: Optional[bool] = None
    email_verified: Optional[bool] = None
