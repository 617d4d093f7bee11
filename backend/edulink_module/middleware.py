import logging

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .errors import AccessDenied, CollaboratorFailure, NotFound, PreconditionError, ValidationError
from .schemas import UserRecord
from .store import RecordStore, record_store


logger = logging.getLogger(__name__)


def get_store() -> RecordStore:
    return record_store


def get_current_user(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    store: RecordStore = Depends(get_store),
) -> UserRecord:
    # Identity arrives already authenticated; only resolve it against the user snapshot.
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    user = store.snapshot().users.get(x_user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user")
    return user


ERROR_STATUS = (
    (AccessDenied, status.HTTP_403_FORBIDDEN),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (PreconditionError, status.HTTP_409_CONFLICT),
)


def register_error_handlers(app: FastAPI) -> None:
    async def domain_error(request: Request, exc: Exception) -> JSONResponse:
        for error_type, status_code in ERROR_STATUS:
            if isinstance(exc, error_type):
                return JSONResponse(status_code=status_code, content={"detail": str(exc)})
        raise exc

    async def collaborator_failure(request: Request, exc: CollaboratorFailure) -> JSONResponse:
        logger.error(f"{request.method} {request.url.path} failed at persistence: {exc}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": str(exc), "payload": jsonable_encoder(exc.payload)},
        )

    for error_type in (ValidationError, NotFound, PreconditionError):
        app.add_exception_handler(error_type, domain_error)
    app.add_exception_handler(CollaboratorFailure, collaborator_failure)
