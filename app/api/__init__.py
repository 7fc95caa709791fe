"""
API routes for the loan tracker.
"""

from fastapi import APIRouter

from app.api import auth, loans, sync
from app.api.admin import users_router

router = APIRouter()

# Include sub-routers
router.include_router(auth.router)
router.include_router(loans.router)
router.include_router(sync.router)
router.include_router(users_router)
