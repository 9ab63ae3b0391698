from fastapi import APIRouter

from campaign_dispatcher.api.routes import entries, events, health

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(events.router, prefix="/events", tags=["webhook"])
api_router.include_router(entries.router, prefix="/entries", tags=["manual"])
