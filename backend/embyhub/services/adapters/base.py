from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from embyhub.core.errors import UpstreamError


class AdapterError(UpstreamError):
    """Generic adapter error (network/auth/panel response)."""


class UpstreamRejectedError(AdapterError):
    """Media server answered with a non-2xx status."""

    def __init__(self, upstream_status: int, message: str | None, method: str = "", path: str = ""):
        self.upstream_status = int(upstream_status)
        self.upstream_message = message or None
        self.method = method
        self.path = path
        # 4xx means the request itself was bad; anything else is the server's fault
        self.status_code = 400 if 400 <= self.upstream_status < 500 else 500
        super().__init__(message or f"HTTP {upstream_status} {method} {path}".strip())


class UpstreamUnavailableError(AdapterError):
    """Timeout, refused connection, DNS failure... worth retrying by hand."""

    status_code = 500
    transient = True


@dataclass
class TestConnectionResult:
    __test__ = False  # not a pytest class

    ok: bool
    detail: str
    meta: dict[str, Any] | None = None


@dataclass
class StepOutcome:
    step: str
    ok: bool
    detail: str | None = None


@dataclass
class StepReport:
    """Outcomes of independent best-effort remote steps; partial success is success."""

    outcomes: list[StepOutcome] = field(default_factory=list)

    def succeeded(self, step: str, detail: str | None = None) -> None:
        self.outcomes.append(StepOutcome(step=step, ok=True, detail=detail))

    def failed(self, step: str, detail: str) -> None:
        self.outcomes.append(StepOutcome(step=step, ok=False, detail=detail))

    @property
    def failures(self) -> list[StepOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def as_list(self) -> list[dict[str, Any]]:
        return [{"step": o.step, "ok": o.ok, "detail": o.detail} for o in self.outcomes]


@dataclass(frozen=True)
class UpstreamAccountFlags:
    """Flags an Emby user carries on the media server itself (Policy.*)."""

    is_administrator: bool = False
    is_disabled: bool = False

    @classmethod
    def from_user(cls, user: dict[str, Any] | None) -> "UpstreamAccountFlags":
        policy = (user or {}).get("Policy") or {}
        return cls(
            is_administrator=bool(policy.get("IsAdministrator")),
            is_disabled=bool(policy.get("IsDisabled")),
        )


@dataclass
class CreatedAccount:
    user: dict[str, Any]
    template_found: bool = False
    report: StepReport = field(default_factory=StepReport)


class MediaServerAdapter(Protocol):
    async def test_connection(self) -> TestConnectionResult: ...

    async def list_users(self) -> list[dict[str, Any]]: ...

    async def get_user(self, user_id: str) -> dict[str, Any]: ...

    async def list_sessions(self) -> list[dict[str, Any]]: ...

    async def stop_playback(self, session_id: str) -> bool: ...

    async def force_logout(self, session_id: str) -> StepReport: ...

    async def set_disabled(self, user_id: str, disabled: bool) -> None: ...

    async def create_user(
        self,
        name: str,
        password: str | None = None,
        template: str | None = None,
        is_admin: bool | None = None,
        libraries: list[str] | str | None = None,
    ) -> CreatedAccount: ...

    async def update_user(self, user_id: str, name: str | None = None, password: str | None = None) -> dict[str, Any]: ...

    async def delete_user(self, user_id: str) -> None: ...

    async def list_libraries(self) -> list[dict[str, Any]]: ...

    async def link_connect(self, user_id: str, email: str) -> None: ...

    async def unlink_connect(self, user_id: str) -> None: ...
