"""Storefront FastAPI application.

Usage:
    uvicorn storefront.api.app:create_app --factory --host 0.0.0.0 --port 8000

Every request runs inside the storefront domain context. Domain errors are
mapped to HTTP statuses here so the routers stay free of error handling.
With the in-memory queue backend, each write request also drains the queues
so the stock display and order history read models stay current.
"""

from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.exceptions import ValidationError

from storefront.bootstrap import Services, build_services
from storefront.domain import storefront
from storefront.exceptions import ConcurrencyConflict, NotFound, PartialReconciliationFailure
from storefront.utils.logging import bind_request_context, clear_request_context

logger = structlog.get_logger(__name__)


def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"errors": exc.messages})


def _not_found(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc), "kind": exc.kind, "id": exc.identifier})


def _conflict(request: Request, exc: ConcurrencyConflict) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "error": str(exc),
            "kind": exc.kind,
            "id": exc.identifier,
            "expected_revision": exc.expected,
            "actual_revision": exc.actual,
        },
    )


def _partial_failure(request: Request, exc: PartialReconciliationFailure) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "error": "Order saved but stock reconciliation is incomplete",
            "order_id": exc.order_id,
            "step": exc.step,
            "applied": [
                {"product_id": d.product_id, "change": d.change, "reason": d.reason.value} for d in exc.applied
            ],
            "pending": [{"product_id": p.product_id, "delta": p.delta, "reason": p.reason.value} for p in exc.pending],
        },
    )


def _drain_after_write(services: Services) -> None:
    """Keep the read models current when the queues live in this process.

    The write has already committed, so a failed drain is logged rather than
    turned into an error response. Unacked messages stay queued and the next
    write drains them again.
    """
    try:
        services.drain_local()
    except Exception:
        logger.exception("In-process notification drain failed")


def create_app(services: Services | None = None, init_domain: bool = True) -> FastAPI:
    """Build the API. Tests pass their own ``services`` and an initialized domain."""
    if init_domain:
        storefront.init()

    app = FastAPI(
        title="Storefront API",
        description="Products, carts and orders with stock reconciliation",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the storefront domain context and tag log lines with a request id."""
        bind_request_context(request_id=request.headers.get("x-request-id", str(uuid4())))
        try:
            with storefront.domain_context():
                response = await call_next(request)
                if request.method != "GET":
                    _drain_after_write(app.state.services)
        finally:
            clear_request_context()
        return response

    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(NotFound, _not_found)
    app.add_exception_handler(ConcurrencyConflict, _conflict)
    app.add_exception_handler(PartialReconciliationFailure, _partial_failure)

    if services is None:
        with storefront.domain_context():
            services = build_services()
    app.state.services = services

    from storefront.api.routes import cart_router, order_router, product_router

    app.include_router(product_router)
    app.include_router(cart_router)
    app.include_router(order_router)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"domain": storefront.name, **app.state.services.ready()})

    logger.info("Storefront API created", queue_backend=services.settings.queue_backend)
    return app
