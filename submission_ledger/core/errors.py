import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base for every error the ledger surfaces to its callers.

    ``kind`` is the stable machine-readable name, ``retryable`` tells the
    caller whether repeating the same call later can succeed without first
    refreshing its view of the thread.
    """

    kind = "ledger_error"
    http_status = status.HTTP_400_BAD_REQUEST
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind, "retryable": self.retryable}


class Conflict(LedgerError):
    # version race exhausted its attempts; retry the whole call after a backoff
    kind = "conflict"
    http_status = status.HTTP_409_CONFLICT
    retryable = True


class NotAllowed(LedgerError):
    kind = "not_allowed"
    http_status = status.HTTP_403_FORBIDDEN


class NotPending(LedgerError):
    kind = "not_pending"
    http_status = status.HTTP_409_CONFLICT


class StaleReview(LedgerError):
    kind = "stale_review"
    http_status = status.HTTP_409_CONFLICT


class NotFound(LedgerError):
    kind = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class InvalidDecision(LedgerError):
    kind = "invalid_decision"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class StoreUnavailable(LedgerError):
    kind = "store_unavailable"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class StoreTimeout(StoreUnavailable):
    kind = "store_timeout"
    http_status = status.HTTP_504_GATEWAY_TIMEOUT


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    logger.info(
        "%s %s rejected: %s (%s)",
        request.method,
        request.url.path,
        exc.kind,
        exc.message,
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())
