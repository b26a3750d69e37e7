"""FastAPI application exposing the Spendwise endpoints."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import schemas
from .auth import Authenticator
from .config import Settings
from .crud import ExpenseRepository
from .database import Database, get_db
from .errors import InternalError, InvalidInput, RouteNotFound, SpendwiseError
from .logging import setup_logger

LOG = logging.getLogger(__name__)

router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_authenticator(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Authenticator:
    return Authenticator(db, settings)


def get_repository(db: Session = Depends(get_db)) -> ExpenseRepository:
    return ExpenseRepository(db)


def current_user_id(
    authorization: Optional[str] = Header(default=None),
    authenticator: Authenticator = Depends(get_authenticator),
) -> str:
    """Gate for expense endpoints: resolve the caller from the bearer token."""
    return authenticator.authenticate(authorization)


@router.get("/health", response_model=schemas.HealthRead, tags=["system"])
def healthcheck() -> schemas.HealthRead:
    return schemas.HealthRead()


@router.post(
    "/register",
    response_model=schemas.RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["auth"],
)
def register(
    credentials: schemas.RegisterRequest,
    authenticator: Authenticator = Depends(get_authenticator),
) -> schemas.RegisterResponse:
    user = authenticator.register(credentials)
    return schemas.RegisterResponse(user=schemas.UserRead.model_validate(user))


@router.post("/login", response_model=schemas.LoginResponse, tags=["auth"])
def login(
    credentials: schemas.LoginRequest,
    authenticator: Authenticator = Depends(get_authenticator),
) -> schemas.LoginResponse:
    token, user = authenticator.login(credentials)
    return schemas.LoginResponse(token=token, user=schemas.UserRead.model_validate(user))


@router.post(
    "/expenses",
    response_model=schemas.ExpenseCreated,
    status_code=status.HTTP_201_CREATED,
    tags=["expenses"],
)
def create_expense(
    expense_in: schemas.ExpenseCreate,
    user_id: str = Depends(current_user_id),
    repository: ExpenseRepository = Depends(get_repository),
) -> schemas.ExpenseCreated:
    expense = repository.create_expense(user_id, expense_in)
    return schemas.ExpenseCreated(expense=schemas.ExpenseRead.model_validate(expense))


@router.get("/expenses", response_model=List[schemas.ExpenseRead], tags=["expenses"])
def list_expenses(
    user_id: str = Depends(current_user_id),
    repository: ExpenseRepository = Depends(get_repository),
) -> List[schemas.ExpenseRead]:
    return [schemas.ExpenseRead.model_validate(expense) for expense in repository.list_expenses(user_id)]


@router.get(
    "/expenses/analytics",
    response_model=schemas.AnalyticsRead,
    response_model_by_alias=True,
    tags=["expenses"],
)
def expense_analytics(
    user_id: str = Depends(current_user_id),
    repository: ExpenseRepository = Depends(get_repository),
) -> schemas.AnalyticsRead:
    return repository.analytics(user_id)


@router.get("/expenses/{expense_id}", response_model=schemas.ExpenseRead, tags=["expenses"])
def get_expense(
    expense_id: str,
    user_id: str = Depends(current_user_id),
    repository: ExpenseRepository = Depends(get_repository),
) -> schemas.ExpenseRead:
    return schemas.ExpenseRead.model_validate(repository.get_expense(user_id, expense_id))


@router.put("/expenses/{expense_id}", response_model=schemas.ExpenseRead, tags=["expenses"])
def update_expense(
    expense_id: str,
    update_in: schemas.ExpenseUpdate,
    user_id: str = Depends(current_user_id),
    repository: ExpenseRepository = Depends(get_repository),
) -> schemas.ExpenseRead:
    expense = repository.update_expense(user_id, expense_id, update_in)
    return schemas.ExpenseRead.model_validate(expense)


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["expenses"])
def delete_expense(
    expense_id: str,
    user_id: str = Depends(current_user_id),
    repository: ExpenseRepository = Depends(get_repository),
) -> None:
    repository.delete_expense(user_id, expense_id)


def _validation_details(exc: RequestValidationError) -> list[dict[str, str]]:
    details = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        details.append(
            {
                "field": ".".join(location) or "body",
                "message": str(error.get("msg", "")),
                "type": str(error.get("type", "")),
            }
        )
    return details


async def _spendwise_error_handler(_: Request, exc: SpendwiseError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def _validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    error = InvalidInput(details=_validation_details(exc))
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


async def _http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unknown paths and unsupported methods are both unmatched routes.
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        error = RouteNotFound()
        return JSONResponse(status_code=error.status_code, content=error.to_payload())
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = InternalError()
    LOG.error(
        "Unhandled error on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path, "status_code": error.status_code},
    )
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """Build the Spendwise application.

    Args:
      settings: Resolved settings; loaded from the environment when omitted.
      database: Store handle to use. When omitted one is opened from
        ``settings.database_url`` at startup and closed at shutdown.
    """

    settings = settings or Settings.from_env()
    setup_logger("spendwise")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.database is None
        if owned:
            app.state.database = Database(settings.database_url)
        app.state.database.init_db()
        try:
            yield
        finally:
            if owned:
                app.state.database.close()
                app.state.database = None

    app = FastAPI(title="Spendwise Expense API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(SpendwiseError, _spendwise_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
    app.include_router(router)
    return app


__all__ = ["create_app", "current_user_id", "get_authenticator", "get_repository", "router"]
