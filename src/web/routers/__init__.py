from fastapi import FastAPI

from src.web.routers.reports import router as report_templates_router
from src.web.routers.reports import download_router as report_downloads_router
from src.web.routers.scheduled_reports import router as scheduled_reports_router
from src.web.routers.scheduler import router as scheduler_router
from src.web.routers.notifications import router as notifications_router

def register_routers(app: FastAPI):
    """Register all routers with the application."""
    app.include_router(report_templates_router)
    app.include_router(report_downloads_router)
    app.include_router(scheduled_reports_router)
    app.include_router(scheduler_router)
    app.include_router(notifications_router)
