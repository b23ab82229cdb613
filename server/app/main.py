import logging

import app.models  # noqa: F401
from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.db import SessionLocal
from app.routers import approval_settings as approval_settings_router
from app.routers import membership_requests as membership_requests_router
from app.routers import whoami as whoami_router
from app.services.membership_errors import MembershipWorkflowError
from app.services.membership_requests import send_vote_reminders

logging.basicConfig(level=settings.LOG_LEVEL)

app = FastAPI(title="Sahakum Membership API", version="0.1.0")

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(timezone="UTC")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(whoami_router.router)
app.include_router(membership_requests_router.router)
app.include_router(approval_settings_router.router)


@app.exception_handler(MembershipWorkflowError)
async def membership_workflow_error_handler(request: Request, exc: MembershipWorkflowError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("membership_workflow_failure", extra={"path": request.url.path, "code": exc.code, "detail": str(exc)})
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc), "code": exc.code})


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok"}


def _run_vote_reminder_digest() -> None:
    with SessionLocal() as session:
        reminded = send_vote_reminders(session)
        if reminded:
            logger.info("vote_reminder_job", extra={"reminded": len(reminded)})


@app.on_event("startup")
def start_scheduled_jobs() -> None:
    if not settings.SCHEDULER_ENABLED:
        return
    if not scheduler.running:
        scheduler.start()
    scheduler.add_job(
        _run_vote_reminder_digest,
        trigger="cron",
        hour=2,
        minute=0,
        id="vote_reminder_digest",
        replace_existing=True,
    )


@app.on_event("shutdown")
def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
