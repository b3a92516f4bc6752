import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import GatewayConfig
from .errors import (
    AuthorizationError, GatewayError, LedgerError, RequestError, RoutingError, ValidationError,
)
from .gas import GasBudgeter
from .health import HealthReporter
from .ledger import LedgerClient, build_ledger_client
from .logging_config import audit_log, configure_logging, set_request_id
from .models import (
    ErrorResponse, HashRequest, HealthResponse, RecordResponse, StampRequest,
    StampResponse, VerifyResponse,
)
from .reader import RecordReader
from .security import check_api_key, extract_client_id
from .submitter import TransactionSubmitter

logger = logging.getLogger("stampgate")

STAMP_PATH = "/stamp"
READ_PATHS = ("/verify", "/getRecord")

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _protected_paths(config: GatewayConfig):
    if not config.auth_enabled:
        return ()
    if config.protect_reads:
        return (STAMP_PATH,) + READ_PATHS
    return (STAMP_PATH,)


def _error_response(request: Request, err: GatewayError) -> JSONResponse:
    client_id = extract_client_id(dict(request.headers))
    audit_log.request_rejected(request.url.path, err.kind.value, err.detail, client_id)
    headers = getattr(err, "headers", None)
    return JSONResponse(err.to_dict(), status_code=err.status_code, headers=headers)


def create_app(config: Optional[GatewayConfig] = None, ledger: Optional[LedgerClient] = None) -> FastAPI:
    """
    Build the gateway application.

    Components are constructed once here and shared by all requests; none
    of them is mutated afterwards.
    """
    if config is None:
        config = GatewayConfig.from_env()
    if ledger is None:
        ledger = build_ledger_client(config)

    budgeter = GasBudgeter(config.gas_mode, config.fixed_gas_limit)
    submitter = TransactionSubmitter(ledger, budgeter, config.allow_duplicate_writes)
    reader = RecordReader(ledger)
    reporter = HealthReporter(config, ledger)
    protected = _protected_paths(config)

    app = FastAPI(title="Stamp Gateway", debug=config.is_debug())
    app.state.config = config
    app.state.ledger = ledger

    @app.on_event("startup")
    def _startup():
        configure_logging(config.log_level, config.log_json, config.log_file or None)
        logger.info("stamp gateway starting: %s", config.log_summary())

    # --------------------------------------------------------
    # Request context and API key
    # --------------------------------------------------------

    @app.middleware("http")
    async def _request_context(request: Request, call_next):
        request_id = set_request_id(request.headers.get("x-request-id") or None)
        # Checked before the body is read, so a bad key wins over a bad body
        if request.method == "POST" and request.url.path in protected \
                and not check_api_key(request.headers.get("x-api-key"), config.api_key):
            response = _error_response(request, AuthorizationError("missing or invalid API key"))
        else:
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    # --------------------------------------------------------
    # Error mapping
    # --------------------------------------------------------

    @app.exception_handler(GatewayError)
    async def _gateway_error(request: Request, exc: GatewayError):
        return _error_response(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            err = RoutingError(f"method {request.method} not allowed on {request.url.path}", 405)
        elif exc.status_code == 404:
            err = RoutingError(f"no route for {request.url.path}", 404)
        elif exc.status_code < 500:
            err = RequestError(str(exc.detail), exc.status_code)
        else:
            err = LedgerError(str(exc.detail))
        err.headers = exc.headers
        return _error_response(request, err)

    @app.exception_handler(RequestValidationError)
    async def _body_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors and errors[0].get("type") == "json_invalid":
            err = ValidationError("body", "must be valid JSON")
        elif errors:
            first = errors[0]
            field = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or "body"
            err = ValidationError(field, first.get("msg", "invalid request body"))
        else:
            err = ValidationError("body", "invalid request body")
        return _error_response(request, err)

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception):
        # Anything a ledger backend let escape is still a ledger failure
        logger.exception("unhandled error on %s", request.url.path)
        return _error_response(request, LedgerError(str(exc) or type(exc).__name__))

    # --------------------------------------------------------
    # Routes
    # --------------------------------------------------------

    @app.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
    def health():
        return reporter.health()

    @app.post(STAMP_PATH, response_model=StampResponse, responses=ERROR_RESPONSES)
    def stamp(req: StampRequest):
        receipt = submitter.stamp(req.documentHash, req.entity, req.docType, req.state)
        return receipt.to_dict()

    @app.post("/verify", response_model=VerifyResponse, responses=ERROR_RESPONSES)
    def verify(req: HashRequest):
        return {"ok": True, "exists": reader.verify(req.documentHash)}

    @app.post("/getRecord", response_model=RecordResponse, responses=ERROR_RESPONSES)
    def get_record(req: HashRequest):
        record = reader.get_record(req.documentHash)
        return {"ok": True, **record.to_dict()}

    return app


app = create_app()
