from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from app.modules.profiles.schemas import Profile


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    first_name: str = ""
    last_name: str = ""
    organization_name: Optional[str] = Field(default=None, max_length=200)
    industry: Optional[str] = None
    company_size: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    email: EmailStr


class UpdatePasswordRequest(BaseModel):
    new_password: str


class UserInfo(BaseModel):
    id: str
    email: str
    email_verified: bool


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None


class RegisterData(BaseModel):
    user: UserInfo
    session: Optional[TokenResponse] = None
    profile: Optional[Profile] = None


class LoginData(BaseModel):
    user: UserInfo
    session: TokenResponse


class CurrentUser(BaseModel):
    user: UserInfo
    profile: Optional[Profile] = None
