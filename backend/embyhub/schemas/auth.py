from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=128)

class IdentityOut(BaseModel):
    id: int
    username: str
    name: str
    role: str
    created_at: Optional[datetime] = None

class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: IdentityOut

class MeResponse(BaseModel):
    authenticated: bool
    user: Optional[IdentityOut] = None

class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6, max_length=128)
