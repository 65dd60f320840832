from typing import Literal
from pydantic import BaseModel, ConfigDict, EmailStr, constr
from datetime import datetime

class UserRegister(BaseModel):
    email: EmailStr
    password: constr(min_length=6)
    full_name: str | None = None

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class UserVerify(BaseModel):
    email: EmailStr
    code: str

class ForgotPasswordRequest(BaseModel):
    email: EmailStr

class ResetPasswordRequest(BaseModel):
    email: EmailStr
    code: str
    new_password: constr(min_length=6)

class UserOut(BaseModel):
    id: str
    email: EmailStr
    full_name: str | None
    role: str
    is_verified: bool
    is_active: bool = True
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"

class AdminUserCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: constr(min_length=6)
    full_name: constr(strip_whitespace=True, min_length=1)
    role: Literal["student", "admin"] = "admin"

class UserStatusPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    is_active: bool | None = None
