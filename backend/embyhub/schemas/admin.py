from pydantic import BaseModel, Field
from typing import Optional, List, Any
from datetime import datetime
from embyhub.schemas.auth import IdentityOut

class CreateServerRequest(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    url: str = Field(min_length=1, max_length=255)
    api_key: str = Field(min_length=1, max_length=255)
    enabled: bool = True

class UpdateServerRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=128)
    url: Optional[str] = Field(default=None, max_length=255)
    api_key: Optional[str] = Field(default=None, max_length=255)  # empty/None keeps the stored key
    enabled: Optional[bool] = None

class TestConnectionRequest(BaseModel):
    url: str
    api_key: str

class ServerOut(BaseModel):
    id: int
    name: str
    url: str
    api_key: str  # always redacted
    enabled: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class ServerList(BaseModel):
    items: List[ServerOut]
    total: int

class TestConnectionOut(BaseModel):
    ok: bool
    detail: str
    meta: Optional[dict[str, Any]] = None

class CreateIdentityRequest(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6, max_length=128)
    name: str = Field(min_length=1, max_length=128)
    role: str = Field(default="reseller", pattern="^(administrator|reseller)$")

class UpdateIdentityRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=128)
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)

class IdentityList(BaseModel):
    items: List[IdentityOut]
    total: int
