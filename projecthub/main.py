import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from projecthub.config import get_settings
from projecthub.routers import api_router
from projecthub.services.audit_writer import audit_writer

settings = get_settings()
log_level_name = (settings.log_level or "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
logging.getLogger("projecthub").setLevel(log_level)

app = FastAPI(title=settings.app_name)

logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.frontend_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router, prefix="/api")


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, str]:
    return {"status": "ok"}


@app.on_event("shutdown")
async def shutdown_audit_writer() -> None:
    audit_writer.shutdown(wait=True)
