"""netmeter — network traffic accounting agent.

FastAPI entry point: bootstraps config and ledger, runs the accounting loop
as a background task and serves the query endpoint.
"""

import asyncio
import os
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from . import __version__
from .api.router import api_router
from .dependencies import (
    get_accounting_loop,
    get_agent_config,
    get_app_settings,
    get_ledger,
    get_ledger_path,
)
from .errors import LedgerIOError, NetmeterError
from .middleware.error_handler import register_error_handlers
from .middleware.request_id import RequestIDMiddleware
from .utils.logging import get_logger, setup_logging

settings = get_app_settings()
setup_logging(
    debug=settings.debug,
    log_dir=settings.log_dir,
    log_max_bytes=settings.log_max_bytes,
    log_backup_count=settings.log_backup_count,
)
logger = get_logger("netmeter.main")


def _fatal_exit(error: BaseException) -> None:
    """Terminate the process after an unrecoverable accounting failure."""
    logger.critical("netmeter_fatal", error=str(error))
    os._exit(1)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    # --- Startup ---
    try:
        config = get_agent_config()
        ledger = get_ledger()
    except NetmeterError as e:
        logger.critical("netmeter_startup_failed", error=str(e))
        raise

    logger.info(
        "netmeter_starting",
        port=config.port,
        reset_day=config.reset_day,
        ledger=str(get_ledger_path()),
        sessions=len(ledger.sessions()),
    )

    accounting_loop = get_accounting_loop()
    accounting_loop.set_fatal_handler(_fatal_exit)
    await accounting_loop.start()

    logger.info("netmeter_started", app=settings.app_name)

    yield

    # --- Shutdown ---
    logger.info("netmeter_shutting_down")
    try:
        await asyncio.wait_for(accounting_loop.stop(), timeout=5.0)
    except asyncio.TimeoutError:
        logger.error("accounting_loop_stop_timeout")

    try:
        ledger.persist(get_ledger_path())
    except LedgerIOError as e:
        logger.error("final_ledger_persist_failed", error=str(e))
    logger.info("netmeter_stopped")


app = FastAPI(
    title="netmeter",
    description="Network traffic accounting agent",
    version=__version__,
    lifespan=lifespan,
)

register_error_handlers(app)
app.add_middleware(RequestIDMiddleware)
app.include_router(api_router)


def main():
    """Run the netmeter agent."""
    try:
        config = get_agent_config()
    except NetmeterError as e:
        logger.critical("netmeter_startup_failed", error=str(e))
        sys.exit(1)

    uvicorn.run(
        app,
        host=settings.host,
        port=config.port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
