from pydantic import BaseModel, Field
from typing import Optional, List, Union, Any
from datetime import datetime

class CreateAccountRequest(BaseModel):
    server_id: int
    name: str = Field(min_length=1, max_length=128)
    password: Optional[str] = Field(default=None, max_length=128)
    expiration_date: Optional[str] = None  # YYYY-MM-DD or ISO-8601
    connect_email: Optional[str] = Field(default=None, max_length=255)
    template: Optional[str] = Field(default=None, max_length=128)  # template user name on the server
    is_admin: bool = False
    libraries: Union[List[str], str, None] = "all"  # "all", list of folder ids, or None to keep template access

class EditAccountRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=128)
    password: Optional[str] = Field(default=None, max_length=128)
    connect_email: Optional[str] = Field(default=None, max_length=255)  # "" unlinks

class ToggleRequest(BaseModel):
    enable: bool

class SetExpirationRequest(BaseModel):
    expiration_date: Optional[str] = None  # null clears

class ExtendRequest(BaseModel):
    months: int = Field(default=1, ge=1, le=120)

class SessionOut(BaseModel):
    id: Optional[str] = None
    device_name: Optional[str] = None
    client: Optional[str] = None
    application_version: Optional[str] = None
    server_id: Optional[int] = None
    now_playing: Optional[dict[str, Any]] = None
    last_activity: Optional[str] = None

class AccountOut(BaseModel):
    id: str
    name: Optional[str] = None
    server_id: int
    server_name: Optional[str] = None
    last_activity_date: Optional[str] = None
    last_login_date: Optional[str] = None
    is_disabled: bool = False
    is_administrator: bool = False
    is_online: bool = False
    active_sessions: List[SessionOut] = []
    days_inactive: Optional[int] = None
    has_connect: bool = False
    connect_email: Optional[str] = None
    expiration_date: Optional[datetime] = None
    subscription_status: str
    days_left: Optional[int] = None
    created_by: Optional[int] = None
    creator_name: Optional[str] = None

class SubscriptionOut(BaseModel):
    account_id: str
    server_id: int
    expiration_date: Optional[datetime] = None
    created_by: Optional[int] = None
