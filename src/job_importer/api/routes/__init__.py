"""Application routers."""

from fastapi import APIRouter

from . import health, scrape

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(scrape.router)
