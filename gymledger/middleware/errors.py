import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from gymledger.services.errors import LedgerError, NotFound
from gymledger.utils.envelope import error

log = logging.getLogger("gymledger.errors")


def install_error_handlers(app: FastAPI) -> None:
    """
    Stable error envelopes; no stack traces leave the process.
    """

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        if isinstance(exc, NotFound):
            log.info("%s %s -> not found: %s", request.method, request.url.path, exc.message)
        elif exc.status_code >= 500:
            log.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
        else:
            log.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
        return error(exc.message, code=exc.code, status=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return error(str(exc.errors()), code="ValidationError", status=422)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error("Internal server error", code="internal_error", status=500)
