from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any

import httpx

from embyhub.services.adapters.base import (
    CreatedAccount,
    StepReport,
    TestConnectionResult,
    UpstreamRejectedError,
    UpstreamUnavailableError,
)
from embyhub.services.http_client import build_async_client

logger = logging.getLogger(__name__)


def _short_err(e: Exception, size: int = 220) -> str:
    return str(e).strip().replace("\n", " ")[:size]


def _error_message(r: httpx.Response) -> str | None:
    try:
        js = r.json()
    except ValueError:
        js = None
    if isinstance(js, dict):
        msg = js.get("message") or js.get("Message") or js.get("error")
        if msg:
            return str(msg)[:300]
    text = (r.text or "").strip()
    return text[:300] or None


class EmbyAdapter:
    """Emby REST client bound to one server (base url + api key).

    Every call authenticates with the X-Emby-Token header and is bounded by
    `timeout`. Nothing is retried.
    """

    # client types whose display preferences are copied from a template user
    DISPLAY_PREF_CLIENTS = ("emby", "webclient", "android", "web", "ios", "roku", "kodi")

    def __init__(self, base_url: str, api_key: str, verify_ssl: bool = True, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self._api_key = api_key or ""

    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json", "X-Emby-Token": self._api_key}

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        payload: Any = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            async with build_async_client(timeout=self.timeout, verify=self.verify_ssl) as client:
                r = await client.request(method, url, headers=self._headers(), params=params, json=payload)
        except httpx.TimeoutException as e:
            raise UpstreamUnavailableError(f"Timeout {method} {path}") from e
        except httpx.TransportError as e:
            raise UpstreamUnavailableError(f"Connection failed {method} {path}: {_short_err(e, 160)}") from e
        if r.status_code >= 400:
            raise UpstreamRejectedError(r.status_code, _error_message(r), method, path)
        return r

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        r = await self._request("GET", path, params=params)
        return r.json() if r.content else None

    async def _post_json(self, path: str, payload: Any = None, params: dict[str, Any] | None = None) -> Any:
        r = await self._request("POST", path, params=params, payload=payload)
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError:
            return None

    async def _delete(self, path: str, params: dict[str, Any] | None = None) -> None:
        await self._request("DELETE", path, params=params)

    async def test_connection(self) -> TestConnectionResult:
        try:
            js = await self._get_json("/System/Info")
            info = js if isinstance(js, dict) else {}
            return TestConnectionResult(
                ok=True,
                detail="ok",
                meta={"server_name": info.get("ServerName"), "version": info.get("Version")},
            )
        except Exception as e:
            return TestConnectionResult(ok=False, detail=_short_err(e))

    # users

    async def list_users(self) -> list[dict[str, Any]]:
        js = await self._get_json("/Users")
        return [u for u in js if isinstance(u, dict)] if isinstance(js, list) else []

    async def get_user(self, user_id: str) -> dict[str, Any]:
        js = await self._get_json(f"/Users/{user_id}")
        return js if isinstance(js, dict) else {}

    async def get_user_by_name(self, name: str) -> dict[str, Any] | None:
        wanted = (name or "").strip().lower()
        for u in await self.list_users():
            if str(u.get("Name") or "").lower() == wanted:
                return u
        return None

    async def _post_policy(self, user_id: str, policy: dict[str, Any]) -> None:
        await self._post_json(f"/Users/{user_id}/Policy", policy)

    async def set_disabled(self, user_id: str, disabled: bool) -> None:
        """Flip Policy.IsDisabled.

        Read-modify-write of the whole policy object: two concurrent toggles of
        the same user can interleave and the last write wins.
        """
        if disabled:
            try:
                await self.logout_user_sessions(user_id)
            except Exception as e:
                logger.warning("emby session logout before disable failed user=%s err=%s", user_id, _short_err(e))
        user = await self.get_user(user_id)
        policy = dict(user.get("Policy") or {})
        policy["IsDisabled"] = bool(disabled)
        await self._post_policy(user_id, policy)

    async def create_user(
        self,
        name: str,
        password: str | None = None,
        template: str | None = None,
        is_admin: bool | None = None,
        libraries: list[str] | str | None = None,
    ) -> CreatedAccount:
        template_user: dict[str, Any] | None = None
        if template:
            try:
                template_user = await self.get_user_by_name(template)
            except Exception as e:
                logger.warning("emby template lookup failed template=%s err=%s", template, _short_err(e))
            if template_user is None:
                logger.warning("emby template user not found template=%s server=%s", template, self.base_url)

        payload: dict[str, Any] = {"Name": name}
        if password:
            payload["Password"] = password
        js = await self._post_json("/Users/New", payload)
        new_id = str((js or {}).get("Id") or "")
        if not new_id:
            raise UpstreamRejectedError(500, "Emby did not return the new user id", "POST", "/Users/New")

        report = StepReport()
        if template_user:
            try:
                report = await self.clone_template(new_id, str(template_user.get("Id")))
            except Exception as e:
                logger.warning("emby template clone failed user=%s err=%s", new_id, _short_err(e))
                report.failed("template", _short_err(e))

        overrides: dict[str, Any] = {}
        if is_admin is not None:
            overrides["IsAdministrator"] = bool(is_admin)
        if libraries == "all":
            overrides["EnableAllFolders"] = True
            overrides["EnabledFolders"] = []
        elif isinstance(libraries, list) and libraries:
            overrides["EnableAllFolders"] = False
            overrides["EnabledFolders"] = [str(x) for x in libraries]

        if overrides:
            try:
                current = await self.get_user(new_id)
                policy = {**(current.get("Policy") or {}), **overrides}
                await self._post_policy(new_id, policy)
                report.succeeded("policy_overrides")
            except Exception as e:
                logger.warning("emby policy override failed user=%s err=%s", new_id, _short_err(e))
                report.failed("policy_overrides", _short_err(e))

        try:
            user = await self.get_user(new_id)
        except Exception as e:
            logger.warning("emby re-read of new user failed user=%s err=%s", new_id, _short_err(e))
            user = js if isinstance(js, dict) else {"Id": new_id, "Name": name}
        return CreatedAccount(user=user, template_found=template_user is not None, report=report)

    async def clone_template(self, new_user_id: str, template_user_id: str) -> StepReport:
        """Copy policy, configuration and display preferences; each piece is independent."""
        report = StepReport()
        template = await self.get_user(template_user_id)

        if template.get("Policy"):
            try:
                policy = copy.deepcopy(template["Policy"])
                policy.pop("UserId", None)
                await self._post_policy(new_user_id, policy)
                report.succeeded("policy")
            except Exception as e:
                logger.warning("emby clone policy failed user=%s err=%s", new_user_id, _short_err(e))
                report.failed("policy", _short_err(e))

        if template.get("Configuration"):
            try:
                config = copy.deepcopy(template["Configuration"])
                config.pop("UserId", None)
                config.pop("IsAdministrator", None)
                await self._post_json(f"/Users/{new_user_id}/Configuration", config)
                report.succeeded("configuration")
            except Exception as e:
                logger.warning("emby clone configuration failed user=%s err=%s", new_user_id, _short_err(e))
                report.failed("configuration", _short_err(e))

        for client_name in self.DISPLAY_PREF_CLIENTS:
            step = f"display_preferences:{client_name}"
            try:
                prefs = await self._get_json(
                    "/DisplayPreferences/usersettings",
                    params={"userId": template_user_id, "client": client_name},
                )
                custom = (prefs or {}).get("CustomPrefs") if isinstance(prefs, dict) else None
                if not custom:
                    continue
                await self._post_json(
                    "/DisplayPreferences/usersettings",
                    {
                        "UserId": new_user_id,
                        "Client": client_name,
                        "CustomPrefs": custom,
                        "SortOrder": prefs.get("SortOrder") or "Ascending",
                    },
                    params={"userId": new_user_id, "client": client_name},
                )
                report.succeeded(step, f"{len(custom)} prefs")
            except UpstreamRejectedError as e:
                if e.upstream_status == 404:
                    continue
                logger.warning("emby clone %s failed user=%s err=%s", step, new_user_id, _short_err(e))
                report.failed(step, _short_err(e))
            except Exception as e:
                logger.warning("emby clone %s failed user=%s err=%s", step, new_user_id, _short_err(e))
                report.failed(step, _short_err(e))
        return report

    async def update_user(self, user_id: str, name: str | None = None, password: str | None = None) -> dict[str, Any]:
        if name:
            current = await self.get_user(user_id)
            await self._post_json(f"/Users/{user_id}", {**current, "Name": name})
        if password:
            await self.set_password(user_id, password)
        return await self.get_user(user_id)

    async def set_password(self, user_id: str, new_password: str) -> None:
        await self._post_json(
            f"/Users/{user_id}/Password",
            {"Id": user_id, "NewPw": new_password, "ResetPassword": False},
        )

    async def delete_user(self, user_id: str) -> None:
        await self.logout_user_sessions(user_id)
        await self._delete(f"/Users/{user_id}")

    # sessions

    async def list_sessions(self) -> list[dict[str, Any]]:
        js = await self._get_json("/Sessions")
        return [s for s in js if isinstance(s, dict)] if isinstance(js, list) else []

    async def stop_playback(self, session_id: str) -> bool:
        """Return False when the session had nothing playing (Emby answers 400/404)."""
        try:
            await self._post_json(f"/Sessions/{session_id}/Playing/Stop")
        except UpstreamRejectedError as e:
            if e.upstream_status in (400, 404):
                return False
            raise
        return True

    async def force_logout(self, session_id: str) -> StepReport:
        """Best-effort: servers differ in which of these they honour."""
        report = StepReport()
        steps = (
            ("stop_playback", lambda: self.stop_playback(session_id)),
            (
                "message",
                lambda: self._post_json(
                    f"/Sessions/{session_id}/Message",
                    {"Header": "Session closed", "Text": "Your session was closed by the administrator", "TimeoutMs": 5000},
                ),
            ),
            ("close_app", lambda: self._post_json(f"/Sessions/{session_id}/Command", {"Name": "CloseApp"})),
            ("logout", lambda: self._delete("/Sessions/Logout", params={"sessionId": session_id})),
        )
        for step, call in steps:
            try:
                await call()
                report.succeeded(step)
            except Exception as e:
                logger.info("emby force_logout step=%s session=%s failed: %s", step, session_id, _short_err(e))
                report.failed(step, _short_err(e))
        return report

    async def logout_user_sessions(self, user_id: str) -> int:
        sessions = [s for s in await self.list_sessions() if str(s.get("UserId") or "") == str(user_id)]
        await asyncio.gather(*(self.force_logout(str(s.get("Id"))) for s in sessions))
        return len(sessions)

    # misc

    async def list_libraries(self) -> list[dict[str, Any]]:
        js = await self._get_json("/Library/VirtualFolders")
        return [x for x in js if isinstance(x, dict)] if isinstance(js, list) else []

    async def link_connect(self, user_id: str, email: str) -> None:
        try:
            await self._post_json(f"/Users/{user_id}/Connect/Link", params={"ConnectUsername": email})
        except UpstreamRejectedError as e:
            if e.upstream_status == 400:
                raise UpstreamRejectedError(400, "Emby Connect email is invalid or already in use", e.method, e.path) from e
            raise

    async def unlink_connect(self, user_id: str) -> None:
        await self._delete(f"/Users/{user_id}/Connect/Link")
