from fastapi import FastAPI, HTTPException, Request, Depends, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import logging
import structlog
import time
from contextlib import asynccontextmanager

from models import (
    Account,
    AccountCreateRequest,
    TransferRequest,
    TransferResponse,
    TransferStatus,
    ErrorResponse,
    HealthResponse,
)
from services import AccountsService, TransferService, get_accounts_service, get_transfer_service
from repositories import get_account_repository
from locking import get_lock_registry
from notifications import get_notification_dispatcher, shutdown_notification_dispatcher
from exceptions import LedgerError, AccountNotFoundError, InsufficientBalanceError, DuplicateAccountIdError
from config import Settings, get_settings


def configure_logging(settings: Settings) -> None:
    """Route structlog through stdlib logging at the configured level."""
    logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


settings = get_settings()
configure_logging(settings)

logger = structlog.get_logger()

# Rate limiting
limiter = Limiter(key_func=get_remote_address)


def transfer_rate_limit() -> str:
    return f"{get_settings().rate_limit_per_minute}/minute"


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Account Transfer API")
    yield
    # Shutdown
    shutdown_notification_dispatcher()
    logger.info("Shutting down Account Transfer API")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="In-memory account ledger with concurrent, deadlock-free money transfers",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)

# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    # Log request
    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None
    )

    response = await call_next(request)

    # Log response
    process_time = time.time() - start_time
    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time=round(process_time, 4)
    )

    return response

# Dependency injection
def get_account_service(account_repo=Depends(get_account_repository)) -> AccountsService:
    return get_accounts_service(account_repo)


def get_service(
    account_repo=Depends(get_account_repository),
    lock_registry=Depends(get_lock_registry),
    notification_dispatcher=Depends(get_notification_dispatcher)
) -> TransferService:
    return get_transfer_service(account_repo, lock_registry, notification_dispatcher)

# Health check endpoint
@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check API health and get system statistics"
)
def health_check(service: AccountsService = Depends(get_account_service)):
    try:
        return HealthResponse(
            status="healthy",
            accounts_count=service.get_accounts_count()
        )
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        raise HTTPException(
            status_code=500,
            detail="Health check failed"
        )

# Account endpoints
@app.post(
    "/accounts",
    response_model=Account,
    status_code=status.HTTP_201_CREATED,
    summary="Create Account",
    responses={
        201: {"description": "Account created"},
        400: {"description": "Validation error or duplicate account id"}
    }
)
def create_account(
    account_request: AccountCreateRequest,
    service: AccountsService = Depends(get_account_service)
):
    logger.info("Creating account", account_id=account_request.accountId)
    return service.create_account(
        Account(accountId=account_request.accountId, balance=account_request.balance)
    )


@app.get(
    "/accounts/{account_id}",
    response_model=Account,
    summary="Get Account",
    responses={404: {"description": "Account not found"}}
)
def get_account(account_id: str, service: AccountsService = Depends(get_account_service)):
    account = service.get_account(account_id)
    if account is None:
        logger.warning("Account lookup failed", account_id=account_id)
        raise HTTPException(status_code=404, detail="Account not found")
    return account

# Main transfer endpoint
@app.post(
    "/transfers",
    response_model=TransferResponse,
    summary="Transfer Money",
    description="Move an amount from one account to another",
    responses={
        200: {"description": "Transfer processed (transferred or failed)"},
        400: {"description": "Validation error or account not found"},
        422: {"description": "Insufficient balance"},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Internal server error"}
    }
)
@limiter.limit(transfer_rate_limit)
def create_transfer(
    request: Request,
    transfer_request: TransferRequest,
    service: TransferService = Depends(get_service)
):
    try:
        logger.info(
            "Transfer request received",
            sender_id=transfer_request.senderAccountId,
            receiver_id=transfer_request.receiverAccountId
        )

        result = service.transfer(
            transfer_request.senderAccountId,
            transfer_request.receiverAccountId,
            transfer_request.transferAmount
        )

        if result is TransferStatus.transferred:
            return TransferResponse(status=result, message="Money transferred successfully")
        return TransferResponse(status=result, message="Money transfer failed")

    except LedgerError as e:
        logger.warning(
            "Transfer request rejected",
            error=str(e),
            sender_id=transfer_request.senderAccountId,
            receiver_id=transfer_request.receiverAccountId
        )
        raise

    except Exception as e:
        logger.error(
            "Transfer request failed with unexpected error",
            error=str(e),
            sender_id=transfer_request.senderAccountId,
            receiver_id=transfer_request.receiverAccountId,
            exc_info=True
        )
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )

# Exception handlers
def _error_response(status_code: int, detail: str, error_code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(detail=detail, error_code=error_code).model_dump(mode="json")
    )


@app.exception_handler(InsufficientBalanceError)
async def insufficient_balance_handler(request: Request, exc: InsufficientBalanceError):
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc), "INSUFFICIENT_BALANCE")


@app.exception_handler(AccountNotFoundError)
async def account_not_found_handler(request: Request, exc: AccountNotFoundError):
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc), "ACCOUNT_NOT_FOUND")


@app.exception_handler(DuplicateAccountIdError)
async def duplicate_account_handler(request: Request, exc: DuplicateAccountIdError):
    logger.warning("Duplicate account id", account_id=exc.account_id)
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc), "DUPLICATE_ACCOUNT_ID")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    detail = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    logger.warning("Request validation failed", url=str(request.url), detail=detail)
    return _error_response(status.HTTP_400_BAD_REQUEST, detail, "VALIDATION_ERROR")


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _error_response(exc.status_code, exc.detail, f"HTTP_{exc.status_code}")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return _error_response(500, "Internal server error", "INTERNAL_ERROR")

# Root endpoint
@app.get("/", include_in_schema=False)
async def root():
    return {"message": settings.app_name, "docs": "/docs"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
