from fastapi import APIRouter

from projecthub.routers.audit_logs import router as audit_logs_router
from projecthub.routers.field_metadata import router as field_metadata_router
from projecthub.routers.finance_submodules import router as finance_submodules_router
from projecthub.routers.project_data import router as project_data_router
from projecthub.routers.projects import router as projects_router

api_router = APIRouter()
api_router.include_router(projects_router)
api_router.include_router(field_metadata_router)
api_router.include_router(finance_submodules_router)
api_router.include_router(project_data_router)
api_router.include_router(audit_logs_router)

__all__ = ["api_router"]
