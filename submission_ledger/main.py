import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from submission_ledger.core.config import settings
from submission_ledger.core.errors import LedgerError, ledger_error_handler
from submission_ledger.core.logging_middleware import LoggingMiddleware
from submission_ledger.db.init_db import init_db
from submission_ledger.routers.assignments import router as assignments_router
from submission_ledger.routers.history import router as history_router
from submission_ledger.routers.reviews import router as reviews_router
from submission_ledger.routers.submissions import router as submissions_router

logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Submission Ledger", lifespan=lifespan)

# Middleware
app.add_middleware(LoggingMiddleware)

app.add_exception_handler(LedgerError, ledger_error_handler)


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Include routers
app.include_router(assignments_router, tags=["assignments"])
app.include_router(submissions_router, tags=["submissions"])
app.include_router(history_router, tags=["history"])
app.include_router(reviews_router, tags=["reviews"])
