from fastapi import APIRouter

# Import routers from modules
from gymcore.api.v1.endpoints import checkin, classes, worker

api_router = APIRouter()

# Check-in module (QR tokens)
api_router.include_router(checkin.router, prefix="/checkin", tags=["checkin"])

# Classes module (bookings, waitlist, roster)
api_router.include_router(classes.router, prefix="/classes", tags=["classes"])

# Worker module (sweeps and payment events, X-API-Key)
api_router.include_router(worker.router, prefix="/worker", tags=["worker"])
