"""
Error taxonomy raised by the service layer and its HTTP rendering.

Services raise the ``ConduitError`` subclasses below and never catch
them; the handlers registered by ``install_error_handlers`` turn them
into ``{"errors": {field: [messages]}}`` responses.  Persistence
failures that are not part of the taxonomy (a lost unique-constraint
race, a dropped connection) are reported as transient and are not
retried.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError

logger = logging.getLogger(__name__)


class ConduitError(Exception):
    status_code = 500
    default_field = "error"

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if errors is None:
            errors = {}
        elif isinstance(errors, str):
            errors = {self.default_field: [errors]}
        self.errors = errors
        super().__init__(errors)


class ValidationError(ConduitError):
    status_code = 422

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(errors)


class NotFoundError(ConduitError):
    status_code = 404
    default_field = "article"


class ForbiddenError(ConduitError):
    status_code = 403
    default_field = "article"


class UnauthorizedError(ConduitError):
    status_code = 401
    default_field = "user"


class ConflictError(ConduitError):
    """Raised when a one-shot transition (publishing) is requested twice."""

    status_code = 400
    default_field = "article"


class AlreadyExistsError(ConduitError):
    """A registration collided with an existing unique username or email."""

    status_code = 409
    default_field = "user"


class FieldErrors:
    """Accumulates per-field messages so every violation is reported at once."""

    def __init__(self) -> None:
        self._errors: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        self._errors.setdefault(field, []).append(message)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def raise_if_any(self) -> None:
        if self._errors:
            raise ValidationError(dict(self._errors))


# ---------------------------------------------------------------------------
# HTTP rendering
# ---------------------------------------------------------------------------

async def _conduit_error_handler(request: Request, exc: ConduitError) -> JSONResponse:
    logger.warning(
        "%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.errors
    )
    return JSONResponse(status_code=exc.status_code, content={"errors": exc.errors})


async def _transient_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Transient persistence failure on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=409,
        content={"errors": {"persistence": ["Concurrent update detected, please retry"]}},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ConduitError, _conduit_error_handler)
    app.add_exception_handler(IntegrityError, _transient_error_handler)
    app.add_exception_handler(OperationalError, _transient_error_handler)
