"""Settlement FastAPI application.

Web server for order fulfillment, shipment tracking and refunds. Commands
are processed synchronously; every request is wrapped in the settlement
domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from [tool.protean] in pyproject.toml.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from settlement.domain import settlement  # noqa: E402
from settlement.utils.logging import add_context, clear_context, configure_logging

configure_logging()
settlement.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Settlement API",
    description="Order fulfillment, shipment tracking and refund issuance",
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
    """Push the settlement domain context for order routes."""
    if request.url.path.startswith("/orders"):
        add_context(method=request.method, path=request.url.path)
        try:
            with settlement.domain_context():
                response = await call_next(request)
        finally:
            clear_context()
        return response
    # Health check, docs, etc.
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers and error mapping
# ---------------------------------------------------------------------------
from settlement.api import order_router, register_settlement_handlers  # noqa: E402

app.include_router(order_router)
register_settlement_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {
                "settlement": {"name": settlement.name},
            },
        }
    )
