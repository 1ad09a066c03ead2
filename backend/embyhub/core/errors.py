from __future__ import annotations


class PanelError(Exception):
    """Base for errors that map to a client-visible HTTP status."""

    status_code: int = 500
    default_detail: str = "Internal error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(PanelError):
    status_code = 400
    default_detail = "Invalid input"


class AuthenticationError(PanelError):
    status_code = 401
    default_detail = "Not authenticated"


class AuthorizationError(PanelError):
    status_code = 403
    default_detail = "Not allowed"


class NotFoundError(PanelError):
    status_code = 404
    default_detail = "Not found"


class UpstreamError(PanelError):
    """The media server rejected or failed a call."""

    status_code = 500
    default_detail = "Media server request failed"
    transient = False


class PersistenceError(PanelError):
    status_code = 500
    default_detail = "Database error"
