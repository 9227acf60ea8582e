"""Exam Platform - API v1 Router."""
from fastapi import APIRouter

from app.api.v1.attempts import router as attempts_router
from app.api.v1.exams import router as exams_router

api_router = APIRouter()

api_router.include_router(exams_router)
api_router.include_router(attempts_router)
