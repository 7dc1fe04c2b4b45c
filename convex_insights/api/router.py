"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from convex_insights.api.ingest import router as ingest_router
from convex_insights.api.analytics import router as analytics_router
from convex_insights.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(ingest_router)
api_router.include_router(analytics_router)
api_router.include_router(health_router)
