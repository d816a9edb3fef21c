"""
Student Retention Risk Engine — FastAPI Application Entry Point

POST /v1/risk/assess                        → dropout risk assessment
POST /v1/chat/turn                          → support chat turn
PUT  /v1/students/{student_code}            → student record upsert
GET  /v1/students/{student_id}/predictions  → prediction log
GET  /v1/students/{student_id}/conversation → chat transcript
GET  /v1/risk/health                        → health check
GET  /docs                                  → OpenAPI / Swagger UI
"""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from retention_engine.api.chat_endpoint import fallback_chat_body
from retention_engine.api.chat_endpoint import router as chat_router
from retention_engine.api.risk_endpoint import router as risk_router
from retention_engine.api.student_endpoint import router as student_router
from retention_engine.core.config import get_settings

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer() if get_settings().app_env == "development"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(get_settings().log_level),
)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(
        "retention_engine_starting",
        model_version=settings.model_version_tag,
        fallback_model_version=settings.fallback_model_version_tag,
        text_generation_configured=bool(settings.gemini_api_key),
    )
    yield
    logger.info("retention_engine_shutting_down")


app = FastAPI(
    title="Student Retention Risk Engine",
    description="Dropout risk assessment and support-chat escalation service",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (dashboard + chat widget) ──
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_methods=["POST", "GET", "PUT"],
    allow_headers=["*"],
)

# ── Prometheus metrics ──
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── Routes ──
app.include_router(risk_router)
app.include_router(chat_router)
app.include_router(student_router)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc', ()) if p != 'body')}: {e.get('msg')}" for e in errors
    ) or "Malformed request"
    logger.info("request_rejected", path=request.url.path, error_count=len(errors))

    if request.url.path.startswith("/v1/chat"):
        # The chat channel never answers with a bare technical error
        body = fallback_chat_body()
        body["detail"] = message
        return JSONResponse(status_code=422, content=body)
    return JSONResponse(status_code=422, content={"error": message})


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": get_settings().app_name,
        "version": "1.0.0",
        "docs": "/docs",
        "assess": "POST /v1/risk/assess",
        "chat": "POST /v1/chat/turn",
    }
