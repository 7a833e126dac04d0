from fastapi import APIRouter
from app.api import forms, pages

api_router = APIRouter()
api_router.include_router(forms.router, prefix="/api/forms", tags=["Forms"])

pages_router = APIRouter()
pages_router.include_router(pages.router, tags=["Pages"])
