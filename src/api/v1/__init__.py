"""
API v1 routes.
"""

from fastapi import APIRouter

from src.api.v1 import quiz

router = APIRouter()

router.include_router(quiz.router, tags=["Quiz"])
