"""Exception handlers mapping domain errors to HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from biteswipe.domain.errors import DomainError, ErrorCode

logger = logging.getLogger(__name__)

_STATUS_BY_CODE = {
    ErrorCode.NOT_AUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.SESSION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.NOT_HOST: status.HTTP_403_FORBIDDEN,
    ErrorCode.INVALID_STATE_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.TRANSIENT_STORE_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.SUBSCRIPTION_LOST: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def register_error_handlers(app: FastAPI) -> None:
    """Register the domain error handler on the app."""

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        logger.warning(
            "Domain error on %s: %s", request.url.path, exc.code.value
        )
        return JSONResponse(
            status_code=_STATUS_BY_CODE.get(
                exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR
            ),
            content={"error": {"code": exc.code.value, "message": exc.message}},
        )
