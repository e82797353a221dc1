from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class SignUpRequest(BaseModel):
    institution_id: str = Field(..., json_schema_extra={"example": "FPE/CS/21/0042"})
    display_name: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    identifier: str  # institution ID or display name
    password: str


class User(BaseModel):
    id: str
    login_identifier: EmailStr
    display_name: str
    institution_id: str
    created_at: datetime


class Session(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    login_identifier: str
    expires_at: datetime
    jti: Optional[str] = None
