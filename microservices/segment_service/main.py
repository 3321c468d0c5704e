"""
Segment Microservice API

Dynamic user segmentation: segment catalog, user memberships with optional
expiration, random auto-enrollment and monthly membership history export.
"""

import csv
import io
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse

from core.config_manager import ConfigManager
from core.logger import setup_service_logger

from . import __service_name__, __version__
from .expiry_sweeper import ExpirySweeper
from .factory import create_expiry_sweeper, create_segment_repository, create_segment_service
from .models import (
    CreateUserRequest,
    HealthResponse,
    RemoveUserSegmentsRequest,
    SegmentListResponse,
    SegmentRequest,
    ServiceInfo,
    UserSegments,
    UserSegmentsRequest,
)
from .protocols import (
    AlreadyExistsError,
    InvalidArgumentError,
    NotFoundError,
    SegmentServiceError,
    TransientStoreError,
)
from .routes_registry import SERVICE_METADATA, get_route_summary
from .segment_service import SegmentService

# Initialize config manager
config_manager = ConfigManager(__service_name__)
config = config_manager.get_service_config()
logging_config = config_manager.get_logging_config()

# Configure logger
logger = setup_service_logger(
    __service_name__,
    level=logging_config.log_level.upper(),
    log_file=logging_config.log_file or None,
    structured=logging_config.enable_structured,
    log_format=logging_config.log_format,
)

# Print config info (development)
if config.debug:
    config_manager.print_config_summary(show_secrets=False)

# Global variables
segment_service: Optional[SegmentService] = None
expiry_sweeper: Optional[ExpirySweeper] = None
SERVICE_PORT = config.service_port or 8080

HISTORY_CSV_FIELDS = ["id", "segment", "time_in", "time_out"]
HISTORY_CSV_FILENAME = "test.csv"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    global segment_service, expiry_sweeper

    try:
        repository = create_segment_repository(config_manager)
        segment_service = create_segment_service(
            config=config_manager,
            repository=repository,
            service_logger=logger,
        )

        # Creates schema objects if missing
        await segment_service.initialize()

        if config.sweeper_enabled:
            expiry_sweeper = create_expiry_sweeper(
                repository, config=config_manager, sweeper_logger=logger
            )
            expiry_sweeper.start()

        logger.info(f"Segment service started on port {SERVICE_PORT}")
        yield

    except Exception as e:
        logger.error(f"Failed to initialize segment service: {e}")
        raise
    finally:
        if expiry_sweeper:
            await expiry_sweeper.stop()
            expiry_sweeper = None

        if segment_service:
            await segment_service.close()
            logger.info("Segment service database connections closed")


# Create FastAPI app
app = FastAPI(
    title="Segment Service",
    description="Dynamic user segmentation with expiring memberships and monthly history",
    version=__version__,
    lifespan=lifespan,
)


# ====================
# Dependency Injection
# ====================


async def get_segment_service() -> SegmentService:
    """Get segment service instance"""
    if not segment_service:
        raise HTTPException(status_code=503, detail="Segment service not initialized")
    return segment_service


def to_http_exception(error: SegmentServiceError) -> HTTPException:
    """Map a service error to its HTTP status"""
    if isinstance(error, (InvalidArgumentError, AlreadyExistsError)):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, TransientStoreError):
        return HTTPException(status_code=503, detail="Service temporarily unavailable, retry later")
    # Details were logged where the failure happened
    return HTTPException(status_code=500, detail="Internal server error")


# ====================
# Health Check and Service Info
# ====================


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check"""
    dependencies = {}

    if segment_service:
        is_healthy = await segment_service.health_check()
        dependencies["database"] = "healthy" if is_healthy else "unhealthy"
    else:
        dependencies["database"] = "unhealthy"

    if config.sweeper_enabled:
        dependencies["expiry_sweeper"] = "healthy" if expiry_sweeper and expiry_sweeper.running else "stopped"

    return HealthResponse(
        status="healthy" if all(v == "healthy" for v in dependencies.values()) else "degraded",
        service=__service_name__,
        port=SERVICE_PORT,
        version=__version__,
        dependencies=dependencies,
    )


@app.get("/info", response_model=ServiceInfo)
async def get_service_info():
    """Get service information"""
    return ServiceInfo(
        service=SERVICE_METADATA["service_name"],
        version=SERVICE_METADATA["version"],
        description="Dynamic user segmentation with expiring memberships and monthly history",
        capabilities=SERVICE_METADATA["capabilities"],
        sweep_interval_seconds=config.sweep_interval if config.sweeper_enabled else None,
        routes=get_route_summary(),
    )


# ====================
# Segments API
# ====================


@app.post("/segments", status_code=201)
async def create_segment(
    request: SegmentRequest,
    service: SegmentService = Depends(get_segment_service)
):
    """Create a segment, optionally auto-enrolling a percentage of users"""
    auto_percent = request.auto_percent or 0
    try:
        segment, enrolled = await service.create_segment(request.segment, auto_percent)
    except SegmentServiceError as e:
        raise to_http_exception(e)

    return {"segment": segment.name, "auto_percent": segment.auto_percent, "enrolled": enrolled}


@app.delete("/segments")
async def delete_segment(
    request: SegmentRequest,
    service: SegmentService = Depends(get_segment_service)
):
    """Delete a segment and all its memberships"""
    try:
        await service.delete_segment(request.segment)
    except SegmentServiceError as e:
        raise to_http_exception(e)

    return {"segment": request.segment}


@app.get("/segments", response_model=SegmentListResponse)
async def list_segments(service: SegmentService = Depends(get_segment_service)):
    """List the segment catalog"""
    try:
        segments = await service.list_segments()
    except SegmentServiceError as e:
        raise to_http_exception(e)

    return SegmentListResponse(segments=segments, total=len(segments))


# ====================
# Users API
# ====================


@app.post("/users", status_code=201)
async def create_user(
    request: CreateUserRequest,
    service: SegmentService = Depends(get_segment_service)
):
    """Create a user"""
    try:
        await service.create_user(request.id)
    except SegmentServiceError as e:
        raise to_http_exception(e)

    return {"id": request.id}


@app.patch("/users")
async def add_segments_to_user(
    request: UserSegmentsRequest,
    service: SegmentService = Depends(get_segment_service)
):
    """Add a user to segments, with an optional lifetime in seconds"""
    active_time = request.active_time or 0
    try:
        names = await service.add_segments_to_user(request.id, request.segments, active_time)
    except SegmentServiceError as e:
        raise to_http_exception(e)

    return {"id": request.id, "segments": names, "active_time": active_time}


@app.delete("/users")
async def delete_segments_from_user(
    request: RemoveUserSegmentsRequest,
    service: SegmentService = Depends(get_segment_service)
):
    """Remove a user from segments"""
    try:
        names = await service.delete_segments_from_user(request.id, request.segments)
    except SegmentServiceError as e:
        raise to_http_exception(e)

    return {"id": request.id, "segments": names}


@app.get("/users/{user_id}", response_model=UserSegments)
async def get_user(
    user_id: int,
    service: SegmentService = Depends(get_segment_service)
):
    """Get a user's active segments"""
    try:
        user = await service.get_user(user_id)
    except SegmentServiceError as e:
        raise to_http_exception(e)

    if user is None:
        raise HTTPException(status_code=404, detail=f"User not found: {user_id}")
    return user


@app.get("/users/{user_id}/history")
async def get_user_history(
    user_id: int,
    year: int = Query(..., description="Calendar year"),
    month: int = Query(..., description="Month 1-12"),
    service: SegmentService = Depends(get_segment_service)
):
    """Export a user's closed memberships for one month as CSV"""
    try:
        records = await service.get_user_history(user_id, year, month)
    except SegmentServiceError as e:
        raise to_http_exception(e)

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=HISTORY_CSV_FIELDS)
    writer.writeheader()
    for record in records:
        writer.writerow(record.model_dump())

    output.seek(0)
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={HISTORY_CSV_FILENAME}"},
    )


# ====================
# Error Handling
# ====================


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters are client errors (400)"""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Invalid request"
    logger.info(f"Rejected request to {request.url.path}: {message}")
    return JSONResponse(status_code=400, content={"detail": message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception in {request.url}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "microservices.segment_service.main:app",
        host=config.service_host,
        port=SERVICE_PORT,
        reload=config.debug,
        log_level=logging_config.log_level.lower(),
    )
