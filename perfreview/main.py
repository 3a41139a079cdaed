import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from perfreview.core.config import settings
from perfreview.core.errors import AppError
from perfreview.core.logging import setup_logging
from perfreview.db.session import SessionLocal
from perfreview.services.container import build_services

from perfreview.api.health import router as health_router
from perfreview.api.me import router as me_router
from perfreview.api.root import router as root_router
from perfreview.api.templates import router as templates_router
from perfreview.api.cycles import router as cycles_router
from perfreview.api.reviews import router as reviews_router
from perfreview.api.notifications import router as notifications_router
from perfreview.api.cron import router as cron_router

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # drain queued emails and notifications before the process exits
    app.state.services.close()


app = FastAPI(title="Performance Review Platform", lifespan=lifespan)
app.state.services = build_services(settings, SessionLocal)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("Request failed", extra={"path": request.url.path, "error": exc.message})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


app.include_router(root_router)
app.include_router(health_router)
app.include_router(me_router)
app.include_router(templates_router)
app.include_router(cycles_router)
app.include_router(reviews_router)
app.include_router(notifications_router)
app.include_router(cron_router)
