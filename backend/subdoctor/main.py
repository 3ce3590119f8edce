import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from subdoctor.core.config import settings
from subdoctor.core.errors import TroubleshooterError
from subdoctor.core.security import escape_html
from subdoctor.routers import issues, troubleshooter

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {
        "name": "Troubleshooter",
        "description": "Analyze, search, timeline and export actions for one subscription.",
    },
    {"name": "Issues", "description": "Query, resolve, clean up and export the issue log."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Diagnostic service for recurring subscriptions. Explains what a "
        "subscription is, what it should be doing, what actually happened "
        "and where the two disagree."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


@app.exception_handler(TroubleshooterError)
async def troubleshooter_error_handler(request: Request, exc: TroubleshooterError) -> JSONResponse:
    logger.info("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=400, content={"success": False, "data": escape_html(exc.message)}
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400, content={"success": False, "data": "Invalid request parameters."}
    )


app.include_router(troubleshooter.router, prefix="/v1/troubleshooter", tags=["Troubleshooter"])
app.include_router(issues.router, prefix="/v1/troubleshooter/issues", tags=["Issues"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }
