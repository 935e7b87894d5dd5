from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field

class RegisterIn(BaseModel):
    username: str = Field(min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_]+$")
    email: EmailStr
    password: str = Field(min_length=8, max_length=255)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    branch_id: int | None = Field(default=None, ge=1, description="Branch the customer asks to join")

class LoginIn(BaseModel):
    login: str = Field(min_length=1, description="Username or email")
    password: str = Field(min_length=1)

class RejectIn(BaseModel):
    reason: str | None = Field(default=None, max_length=500)

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    role: str
    approval_status: str
    pending_branch_id: int | None = None
    branch_id: int | None = None
    rejection_reason: str | None = None
    id_picture_path: str | None = None
    created_at: datetime

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut
