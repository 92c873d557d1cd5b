from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import contextlib
import logging

from src.core.config import settings
from src.core.database import engine, Base

# Import all models to ensure they are registered in Base.metadata
from src.staffing import database as staffing_db  # noqa
from src.notifications import database as notifications_db  # noqa
from src.reporting import database as reporting_db  # noqa

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


app = FastAPI(
    title="HTD Scheduled Reports",
    description="API for report templates, on-demand generation and scheduled report delivery",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Reporting", "description": "Report templates, generation and downloads"},
        {"name": "Scheduled Reports", "description": "Recurring report jobs and their recipients"},
        {"name": "Scheduler", "description": "Report poller administration (admin only)"},
        {"name": "Notifications", "description": "In-app notifications"},
    ]
)

from src.web.routers import register_routers
from src.web.scheduler import start_scheduler, stop_scheduler

register_routers(app)

@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize Database Tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Start Scheduler
    start_scheduler()

    yield

    # Stop Scheduler
    await stop_scheduler()

app.router.lifespan_context = lifespan

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"], # Vite Dev Server
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", include_in_schema=False)
async def health():
    return {"status": "ok", "environment": settings.environment}
