from fastapi import APIRouter

api_router = APIRouter()

# Import route modules here
from app.routes import budgets, templates

api_router.include_router(budgets.router)
api_router.include_router(templates.router)
