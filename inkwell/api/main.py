"""
Inkwell admin API.

Only the newsletter admin routes are mounted; the public site and
subscriber pages are served elsewhere.
"""

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from inkwell.adapters.email_delivery import DeliveryPoller
from inkwell.api.deps import build_delivery_runner, get_rules, get_settings
from inkwell.app_shell.config import validate_ops_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Check rules and env, then run the delivery poller when it is enabled."""
    try:
        rules = get_rules()
    except (FileNotFoundError, ValueError) as e:
        logger.critical("Rules load failed: %s", e)
        sys.exit(1)

    validate_ops_rules(rules)

    delivery = rules.ops.delivery
    app.state.delivery_poller = None
    if delivery.poll_interval_seconds > 0:
        app.state.delivery_poller = DeliveryPoller(
            build_delivery_runner(get_settings(), rules),
            interval_seconds=delivery.poll_interval_seconds,
            max_jobs=delivery.batch_size,
        )
        app.state.delivery_poller.start()

    try:
        yield
    finally:
        if app.state.delivery_poller is not None:
            app.state.delivery_poller.stop()


app = FastAPI(
    title="Inkwell API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Routers
from inkwell.api.routes import admin_newsletter  # noqa: E402

app.include_router(
    admin_newsletter.router, prefix="/api/admin/newsletters", tags=["Admin Newsletter"]
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Liveness probe; does not touch the database."""
    return {"status": "ok", "service": "inkwell"}
