# main.py
# Role: Application entry point for the finance tracker.
#       Configures logging, initializes the FastAPI app, creates database tables,
#       maps domain errors to JSON responses, and registers all route modules.

"""
Main FastAPI app for the personal finance tracker.

Here we only:
- set up logging
- create the FastAPI app
- create DB tables
- register error handlers
- include route modules
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from db import Base, engine
from app.config import LOG_LEVEL
from app.errors import InvalidOwner, StoreUnavailable
from app.routes_root import router as root_router
from app.routes_transactions import router as transactions_router


# -------------------------------------------------------------------
# Logging
# -------------------------------------------------------------------

logging.basicConfig(level=LOG_LEVEL)
LOGGER = logging.getLogger("finance_tracker")

# -------------------------------------------------------------------
# App & DB setup
# -------------------------------------------------------------------

# Create database tables (only if they don't exist yet).
Base.metadata.create_all(bind=engine)

# FastAPI application instance
app = FastAPI(title="Finance Tracker")

# -------------------------------------------------------------------
# Error handlers
# -------------------------------------------------------------------

@app.exception_handler(InvalidOwner)
async def invalid_owner_handler(request: Request, exc: InvalidOwner):
    return JSONResponse(status_code=401, content={"error": "Missing or invalid user identity"})


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"error": "Storage temporarily unavailable"})

# -------------------------------------------------------------------
# Include routers
# -------------------------------------------------------------------

# Root / health
app.include_router(root_router)

# Transactions CRUD and recurring catch-up
app.include_router(transactions_router)
