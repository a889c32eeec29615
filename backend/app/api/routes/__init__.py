"""API routes."""

from fastapi import APIRouter

from app.api.routes import iiko

api_router = APIRouter()

api_router.include_router(iiko.router, prefix="/iiko", tags=["iiko"])
