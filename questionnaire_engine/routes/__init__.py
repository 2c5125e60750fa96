"""APIRouter registration for the reference backend."""

from __future__ import annotations

from fastapi import APIRouter

from questionnaire_engine.routes.plant_questionnaire import router as plant_questionnaire_router
from questionnaire_engine.routes.test_support import router as test_support_router

api_router = APIRouter()
api_router.include_router(plant_questionnaire_router, tags=["PlantQuestionnaire"])
api_router.include_router(test_support_router, tags=["TestSupport"])

__all__ = ["api_router"]
