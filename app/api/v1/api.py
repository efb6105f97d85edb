from fastapi import APIRouter

from app.api.v1.endpoints import auth, drivers, requests, subscriptions, vehicles

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(auth.router)
api_router.include_router(drivers.router)
api_router.include_router(vehicles.router)
api_router.include_router(requests.router)
api_router.include_router(subscriptions.router)
