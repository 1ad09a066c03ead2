from fastapi import APIRouter
from embyhub.api.v1.routes import (
    auth,
    accounts,
    sessions,
    servers,
    subscriptions,
    sweep,
    admin_servers,
    admin_identities,
)

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
api_router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
api_router.include_router(servers.router, prefix="/servers", tags=["servers"])
api_router.include_router(subscriptions.router, prefix="/subscriptions", tags=["subscriptions"])
api_router.include_router(sweep.router, tags=["sweep"])

api_router.include_router(admin_servers.router, prefix="/admin/servers", tags=["admin-servers"])
api_router.include_router(admin_identities.router, prefix="/admin/identities", tags=["admin-identities"])
