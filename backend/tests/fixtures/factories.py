"""
Factories for panel rows and Emby-shaped payloads.
"""
from datetime import datetime
from typing import Optional

from embyhub.core.rbac import PanelRole
from embyhub.core.security import create_session_token
from embyhub.models.panel_identity import PanelIdentity
from embyhub.models.server import Server
from embyhub.services import identity_store, server_registry

EMBY_A = "http://emby-a.test"
EMBY_B = "http://emby-b.test"


async def make_server(db, name: str = "Server A", url: str = EMBY_A, api_key: str = "key-a", enabled: bool = True) -> Server:
    return await server_registry.add(db, name, url, api_key, enabled=enabled)


async def make_identity(
    db,
    username: str = "reseller1",
    role: PanelRole = PanelRole.reseller,
    password: str = "secret123",
    name: Optional[str] = None,
) -> PanelIdentity:
    return await identity_store.create(db, username, password, name or username.title(), role)


def auth_headers(identity: PanelIdentity) -> dict:
    return {"Authorization": f"Bearer {create_session_token(identity.id)}"}


def make_user(
    id: str = "u1",
    name: Optional[str] = None,
    is_admin: bool = False,
    disabled: bool = False,
    last_activity: Optional[str] = None,
    **kwargs,
) -> dict:
    """Emby /Users item."""
    user = {
        "Id": id,
        "Name": name or f"user-{id}",
        "Policy": {"IsAdministrator": is_admin, "IsDisabled": disabled, "EnableAllFolders": True},
        **kwargs,
    }
    if last_activity:
        user["LastActivityDate"] = last_activity
    return user


def make_session(
    id: str = "s1",
    user_id: str = "u1",
    playing: bool = False,
    last_activity: Optional[str] = None,
    remote_control: bool = False,
) -> dict:
    """Emby /Sessions item."""
    s = {
        "Id": id,
        "UserId": user_id,
        "DeviceName": "Living room TV",
        "Client": "Emby Web",
        "ApplicationVersion": "4.8.0",
        "SupportsRemoteControl": remote_control,
    }
    if playing:
        s["NowPlayingItem"] = {"Name": "Some Movie", "Type": "Movie"}
    if last_activity:
        s["LastActivityDate"] = last_activity
    return s


def emby_ts(dt: datetime) -> str:
    """Format like Emby does: 7 fractional digits and a trailing Z."""
    return dt.strftime("%Y-%m-%dT%H:%M:%S.%f") + "0Z"
