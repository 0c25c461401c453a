"""API router for v1 endpoints."""

from fastapi import APIRouter

from app.api import chat, regulations

router = APIRouter()

# Assistant chat
router.include_router(chat.router, tags=["chat"])

# Regulations index refresh and run history
router.include_router(regulations.router, tags=["regulations"])
