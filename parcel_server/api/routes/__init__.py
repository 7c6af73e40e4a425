"""
API Routes
"""
from fastapi import APIRouter

from parcel_server.api.routes.users import router as users_router
from parcel_server.api.routes.parcels import router as parcels_router
from parcel_server.api.routes.payments import router as payments_router
from parcel_server.api.routes.trackings import router as trackings_router
from parcel_server.api.routes.riders import router as riders_router

router = APIRouter()

router.include_router(users_router, prefix="/users", tags=["users"])
router.include_router(parcels_router, prefix="/parcels", tags=["parcels"])
# /create-payment-intent and /payments live at the root
router.include_router(payments_router)
router.include_router(trackings_router, prefix="/trackings", tags=["trackings"])
router.include_router(riders_router, prefix="/riders", tags=["riders"])
