from fastapi import APIRouter

from garmentflow.api.routes import assignments, lots, operators, templates, work_items

api_router = APIRouter()
api_router.include_router(templates.router)
api_router.include_router(operators.router)
api_router.include_router(lots.router)
api_router.include_router(work_items.router)
api_router.include_router(assignments.router)
