from __future__ import annotations
from dataclasses import asdict, dataclass

@dataclass
class SweepStats:
    scanned_entries: int = 0
    candidates: int = 0
    skipped_admins: int = 0
    skipped_disabled: int = 0
    skipped_servers: int = 0
    missing_accounts: int = 0
    remote_actions: int = 0
    remote_failures: int = 0

    def as_dict(self) -> dict:
        return asdict(self)
