import argparse
import asyncio
from embyhub.core.db import AsyncSessionLocal, create_tables, engine
from embyhub.core.errors import PanelError
from embyhub.core.rbac import PanelRole
from embyhub.services import identity_store
from embyhub.services.bootstrap import run_bootstrap
from embyhub.services.reconciliation import SweepResult, run_expiry_sweep, run_inactivity_sweep


async def init_db():
    await create_tables()
    async with AsyncSessionLocal() as db:
        await run_bootstrap(db)
    print("Tables created, bootstrap done")


async def create_admin(username: str, password: str, name: str | None):
    async with AsyncSessionLocal() as db:
        try:
            identity = await identity_store.create(db, username, password, name or username, PanelRole.administrator)
        except PanelError as e:
            raise SystemExit(e.detail)
        print("Created administrator:", identity.username)


async def change_password(username: str, password: str):
    async with AsyncSessionLocal() as db:
        identity = await identity_store.get_by_username(db, username)
        if not identity:
            raise SystemExit("User not found")
        try:
            await identity_store.reset_password(db, identity.id, password)
        except PanelError as e:
            raise SystemExit(e.detail)
        print("Password changed for:", identity.username)


def _print_sweep(label: str, result: SweepResult):
    mode = "DRY-RUN" if result.dry_run else "APPLIED"
    for c in result.candidates:
        extra = f"days_expired={c.days_expired}" if c.days_expired is not None else f"days_inactive={c.days_inactive}"
        state = "disabled" if c.disabled else "candidate"
        print(f"  [{state}] server={c.server_name}({c.server_id}) id={c.account_id} name={c.name} {extra}")
    for err in result.errors:
        print(f"  [ERR] server_id={err.get('server_id')} id={err.get('id')}: {err.get('error')}")
    s = result.stats
    print(
        f"[{label}:{mode}] scanned={s.scanned_entries} candidates={s.candidates} "
        f"disabled={result.disabled_count} failed={s.remote_failures} missing={s.missing_accounts}"
    )


async def sweep_expired(dry_run: bool):
    async with AsyncSessionLocal() as db:
        result = await run_expiry_sweep(db, dry_run=dry_run)
    _print_sweep("EXPIRY-SWEEP", result)


async def sweep_inactive(days: int, dry_run: bool):
    async with AsyncSessionLocal() as db:
        result = await run_inactivity_sweep(db, inactive_days=days, dry_run=dry_run)
    _print_sweep("INACTIVITY-SWEEP", result)


async def _run(coro):
    try:
        await coro
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(prog="emby-hub")
    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("init-db")

    c = sub.add_parser("create-admin")
    c.add_argument("--username", required=True)
    c.add_argument("--password", required=True)
    c.add_argument("--name")

    p = sub.add_parser("change-password")
    p.add_argument("--username", required=True)
    p.add_argument("--password", required=True)

    s = sub.add_parser("sweep-expired")
    s.add_argument("--dry-run", action="store_true")

    i = sub.add_parser("sweep-inactive")
    i.add_argument("--days", type=int, default=30)
    i.add_argument("--dry-run", action="store_true")

    args = parser.parse_args()
    if args.cmd == "init-db":
        asyncio.run(_run(init_db()))
    elif args.cmd == "create-admin":
        asyncio.run(_run(create_admin(args.username, args.password, args.name)))
    elif args.cmd == "change-password":
        asyncio.run(_run(change_password(args.username, args.password)))
    elif args.cmd == "sweep-expired":
        asyncio.run(_run(sweep_expired(args.dry_run)))
    elif args.cmd == "sweep-inactive":
        asyncio.run(_run(sweep_inactive(args.days, args.dry_run)))
    else:
        parser.print_help()

if __name__ == "__main__":
    main()
