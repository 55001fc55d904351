"""
extipam FastAPI Application.

Exposes the adapter to a provisioning host over HTTP.

Responsibilities:
    - Group and subnet lookup
    - Next free address allocation and reservation release
    - Address record assignment and deletion in the provider
    - Mapping adapter errors to HTTP status codes
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from extipam import __version__
from extipam.adapter import IpamAdapter
from extipam.api.endpoints import ipam
from extipam.api.state import set_adapter
from extipam.config import AdapterConfig
from extipam.exceptions import (
    AuthenticationError,
    GroupNotFound,
    InvalidRequest,
    IpamError,
    MalformedSubnetData,
    ProviderRejected,
    SubnetExhausted,
    SubnetNotFound,
    TransportError,
)
from extipam.models.enums import LogLevel
from extipam.models.requests import ErrorResponse
from extipam.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


# =============================================================================
# Error Mapping
# =============================================================================

# Checked in order; subclasses before their bases
_STATUS_BY_ERROR: list[tuple[type[IpamError], int]] = [
    (InvalidRequest, 400),
    (GroupNotFound, 404),
    (SubnetNotFound, 404),
    (SubnetExhausted, 409),
    (MalformedSubnetData, 502),
    (ProviderRejected, 502),
    (AuthenticationError, 502),
    (TransportError, 503),
]


def status_for(error: IpamError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 500


async def ipam_error_handler(request: Request, exc: IpamError) -> JSONResponse:
    status = status_for(exc)
    log = logger.warning if status < 500 else logger.error
    log(f"{request.method} {request.url.path} -> {status} {exc.kind}: {exc.message}")

    body = ErrorResponse(
        error=exc.kind,
        message=exc.message,
        stage=exc.stage.value if exc.stage else None,
    )
    return JSONResponse(status_code=status, content=body.model_dump())


# =============================================================================
# Application Setup
# =============================================================================


def create_app(adapter: IpamAdapter) -> FastAPI:
    """
    Build the FastAPI application around an adapter.

    The adapter's background sweeper runs for the lifetime of the app and
    the adapter is closed on shutdown.
    """
    set_adapter(adapter)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        adapter.start()
        logger.info("IPAM API starting up")
        yield
        adapter.close()
        logger.info("IPAM API shut down complete")

    app = FastAPI(
        title="extipam",
        description="External IPAM adapter",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(ipam.router, prefix="/ipam", tags=["IPAM"])
    app.add_exception_handler(IpamError, ipam_error_handler)
    return app


def run(config: AdapterConfig) -> None:
    """Run the API server using uvicorn."""
    import uvicorn

    # Must be called before uvicorn.run
    configure_logging(config.LOG_LEVEL)

    match config.LOG_LEVEL:
        case LogLevel.FULL | LogLevel.DEBUG:
            uvicorn_level = "debug"
        case LogLevel.WARNING:
            uvicorn_level = "warning"
        case _:
            uvicorn_level = "info"

    adapter = IpamAdapter(config)
    logger.info(f"Starting IPAM API on {config.BIND_IP}:{config.PORT}")
    uvicorn.run(
        create_app(adapter),
        host=config.BIND_IP,
        port=config.PORT,
        log_level=uvicorn_level,
        log_config=None,  # Keep uvicorn from replacing the loguru setup
    )
