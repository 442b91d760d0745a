import os

import sentry_sdk
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from expense_ocr.logging_config import setup_logging
from expense_ocr.middleware import RequestIDMiddleware, RequestLoggingMiddleware
from expense_ocr.ratelimit import limiter
from expense_ocr.receipt.errors import (
    ExtractionError,
    InvalidInput,
    MalformedModelOutput,
    TotalMismatch,
    UnvalidatedShape,
    UpstreamError,
)
from expense_ocr.routes import receipts
from expense_ocr.serializers import serialize_extraction_error

load_dotenv()

# Sentry
def init_sentry(dsn: str | None) -> None:
    if not dsn:
        return
    # The auto-detected OpenAI Agents integration is incompatible with the
    # installed openai-agents version (sentry-sdk expects a different internal API)
    disabled = []
    try:
        from sentry_sdk.integrations.openai_agents import OpenAIAgentsIntegration
        disabled.append(OpenAIAgentsIntegration)
    except ImportError:
        pass
    sentry_sdk.init(
        dsn=dsn,
        traces_sample_rate=0.1,
        send_default_pii=False,
        disabled_integrations=disabled,
    )


init_sentry(os.getenv("SENTRY_DSN"))

logger = setup_logging()

ERROR_STATUS_CODES = {
    InvalidInput: 400,
    UpstreamError: 502,
    MalformedModelOutput: 502,
    UnvalidatedShape: 502,
    TotalMismatch: 422,
}

app = FastAPI(title="Expense OCR API", version="0.1.0")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(ExtractionError)
async def extraction_error_handler(request: Request, exc: ExtractionError):
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    logger.warning(
        f"Receipt extraction error: {exc.message}",
        extra={"extra_data": {
            "kind": exc.kind,
            "path": request.url.path,
            "status": status_code,
            "request_id": getattr(request.state, "request_id", None),
        }},
    )
    return JSONResponse(status_code=status_code, content=serialize_extraction_error(exc))


# CORS
origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in origins],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestIDMiddleware)

# Routes
app.include_router(receipts.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok"}
