from __future__ import annotations

import enum


class PanelRole(str, enum.Enum):
    """Role of a panel operator. Unrelated to the Emby-side IsAdministrator flag."""

    administrator = "administrator"
    reseller = "reseller"


def parse_role(value: str | None) -> PanelRole | None:
    try:
        return PanelRole((value or "").strip().lower())
    except ValueError:
        return None
