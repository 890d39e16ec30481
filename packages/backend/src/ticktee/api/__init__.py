"""API route aggregation.

All routers registered here get mounted in main.py under /api/v1.

Auth is applied at the include_router level: health, auth and the
product catalog are open, everything else needs a valid access token,
and /admin additionally needs the admin flag.
"""

from fastapi import APIRouter, Depends

from ticktee.api.admin import router as admin_router
from ticktee.api.auth import router as auth_router
from ticktee.api.health import router as health_router
from ticktee.api.messages import router as messages_router
from ticktee.api.orders import router as orders_router
from ticktee.api.point_transfers import router as point_transfers_router
from ticktee.api.products import router as products_router
from ticktee.api.users import router as users_router
from ticktee.auth.dependencies import get_current_user, require_admin

_auth = [Depends(get_current_user)]
_admin = [Depends(require_admin)]

api_router = APIRouter(prefix="/api/v1")

# Open routes
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(products_router, tags=["products"])

# Signed-in routes
api_router.include_router(orders_router, tags=["orders"], dependencies=_auth)
api_router.include_router(messages_router, tags=["messages"], dependencies=_auth)
api_router.include_router(point_transfers_router, tags=["point-transfers"], dependencies=_auth)
api_router.include_router(users_router, tags=["users"], dependencies=_auth)

# Admin routes
api_router.include_router(admin_router, tags=["admin"], dependencies=_admin)
