# backend-server/app/api/v1/api.py
from fastapi import APIRouter
from app.api.v1.endpoints import activity, dashboard, reports, templates, users

api_router = APIRouter()

api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(reports.router, prefix="/reports", tags=["Reports"])
api_router.include_router(templates.router, prefix="/templates", tags=["Templates"])
api_router.include_router(activity.router, prefix="/activities", tags=["Activities"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
