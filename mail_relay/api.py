"""
FastAPI application factory and HTTP handlers for the mail relay.

:func:`create_app` builds the JSON API around a :class:`MailRelayCore`.
Every response, including errors raised by the framework itself, uses the
``{"success": bool, "message": str}`` envelope; internals never leak into a
response body.
"""

from contextlib import asynccontextmanager
from typing import AsyncContextManager, Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException

from .batch import FAILED_PREFIX, SENT_MESSAGE
from .core import MailRelayCore
from .dispatcher import ConfigurationError
from .logger import get_logger
from .models import (
    BatchOutcome,
    BatchPayload,
    HealthResponse,
    SendEmailPayload,
    SendEmailResponse,
    StatusResponse,
)
from .security_headers import SecurityHeadersMiddleware

logger = get_logger("MailRelay.api")

HEALTH_MESSAGE = "Mail relay is running"
MISSING_SEND_FIELDS_MESSAGE = "Missing required fields: to_email, subject, or message"
INVALID_BATCH_MESSAGE = "Missing or invalid emails array"
RATE_LIMITED_MESSAGE = "Too many requests, please try again later."
INVALID_BODY_MESSAGE = "Invalid request body"
INTERNAL_ERROR_MESSAGE = "Internal server error"

HTTP_ERROR_MESSAGES = {
    status.HTTP_404_NOT_FOUND: "Not found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "Method not allowed",
}


def failure_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    """Build the error envelope returned by every failing endpoint."""
    body = StatusResponse(success=False, message=message).model_dump()
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def client_key(request: Request) -> str:
    """Rate limiting key: the caller's network address."""
    return request.client.host if request.client else "unknown"


def create_app(
    core: MailRelayCore,
    lifespan: Callable[[FastAPI], AsyncContextManager] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    core:
        The :class:`MailRelayCore` owning the transport, the dispatcher, the
        batch processor and the rate limiter.
    lifespan:
        Optional lifespan context manager. By default the core is started and
        stopped with the application.

    Returns
    -------
    FastAPI
        A configured application ready to be served by Uvicorn or any ASGI
        server.
    """
    if lifespan is None:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            await core.start()
            yield
            await core.stop()

    api = FastAPI(title="Mail Relay", lifespan=lifespan)
    api.state.core = core

    @api.middleware("http")
    async def rate_limit(request: Request, call_next):
        key = client_key(request)
        if not await core.rate_limiter.admit(key):
            core.metrics.inc_rate_limited()
            logger.warning("Rate limit exceeded for %s on %s %s", key, request.method, request.url.path)
            retry_after = core.rate_limiter.retry_after(key)
            return failure_response(
                status.HTTP_429_TOO_MANY_REQUESTS,
                RATE_LIMITED_MESSAGE,
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)

    # Inside the CORS and security header layers, so 500 envelopes carry them too.
    @api.middleware("http")
    async def catch_unhandled(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return failure_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)

    if core.settings.security_headers:
        api.add_middleware(SecurityHeadersMiddleware)
    # Added last so that it wraps rate limited responses too.
    api.add_middleware(
        CORSMiddleware,
        allow_origins=core.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @api.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("Invalid request body on %s %s: %s", request.method, request.url.path, exc.errors())
        return failure_response(status.HTTP_400_BAD_REQUEST, INVALID_BODY_MESSAGE)

    @api.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = HTTP_ERROR_MESSAGES.get(exc.status_code) or str(exc.detail)
        return failure_response(exc.status_code, message, headers=getattr(exc, "headers", None))

    @api.exception_handler(ConfigurationError)
    async def configuration_exception_handler(request: Request, exc: ConfigurationError):
        return failure_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @api.get("/api/health", response_model=HealthResponse)
    async def health():
        """Report whether a mail transport was configured at startup."""
        return HealthResponse(success=True, message=HEALTH_MESSAGE, email_configured=core.email_configured)

    @api.post("/api/send-email", response_model=SendEmailResponse, response_model_exclude_none=True)
    async def send_email(payload: SendEmailPayload):
        """Send one message straight through the dispatcher."""
        request = payload.to_request()
        if not request.is_complete:
            return failure_response(status.HTTP_400_BAD_REQUEST, MISSING_SEND_FIELDS_MESSAGE)
        if not core.email_configured:
            raise ConfigurationError()
        try:
            result = await core.dispatcher.send(request.recipient, request.subject, request.body)
        finally:
            await core.dispatcher.release()
        if not result.ok:
            return failure_response(status.HTTP_500_INTERNAL_SERVER_ERROR, FAILED_PREFIX + (result.error or ""))
        return SendEmailResponse(success=True, message=SENT_MESSAGE, message_id=result.message_id)

    async def run_batch(payload: BatchPayload, echo_recipient: bool):
        emails = payload.emails
        if not isinstance(emails, list):
            return failure_response(status.HTTP_400_BAD_REQUEST, INVALID_BATCH_MESSAGE)
        if not core.email_configured:
            raise ConfigurationError()
        limit = core.max_batch_size
        if limit and len(emails) > limit:
            return failure_response(status.HTTP_400_BAD_REQUEST, f"Too many emails in batch (max {limit})")
        try:
            return await core.batch.process(emails, echo_recipient=echo_recipient)
        finally:
            await core.dispatcher.release()

    @api.post("/api/send-batch", response_model=BatchOutcome, response_model_exclude_none=True)
    async def send_batch(payload: BatchPayload):
        """Send a list of messages in order, one result per item labelled by ``index``."""
        return await run_batch(payload, echo_recipient=False)

    @api.post("/api/send-batch-emails", response_model=BatchOutcome, response_model_exclude_none=True)
    async def send_batch_emails(payload: BatchPayload):
        """Legacy batch endpoint: results are labelled by ``to_email``."""
        return await run_batch(payload, echo_recipient=True)

    @api.get("/metrics")
    async def metrics():
        """Expose Prometheus metrics collected by the relay."""
        return Response(content=core.metrics.generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return api
