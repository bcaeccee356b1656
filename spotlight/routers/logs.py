# spotlight/routers/logs.py
# Log status + manual rotate/cleanup triggers over the AppLogger.
from __future__ import annotations

from fastapi import APIRouter, Request, status

from spotlight.errors import RotationError, http_error
from spotlight.logger import AppLogger
from spotlight.observability import LOG_ROTATIONS
from spotlight.rotation import format_age, format_size
from spotlight.schemas import ActionResponse, LogStatusResponse

router = APIRouter(prefix="/logs", tags=["logs"])


def _logger(request: Request) -> AppLogger:
    return request.app.state.logger


@router.get("/status", response_model=LogStatusResponse)
def log_status(request: Request):
    logger = _logger(request)
    try:
        stats = logger.get_stats()
    except OSError as e:
        logger.errorf("Error getting log stats: %s", e)
        raise http_error(
            f"Error getting log stats: {e}", status.HTTP_500_INTERNAL_SERVER_ERROR
        ) from e

    rot = logger.rotator
    payload = LogStatusResponse(
        **stats.to_dict(),
        maxSize=format_size(rot.max_size),
        maxAge=format_age(rot.max_age),
        maxFiles=rot.max_files,
    )
    logger.infof("Log status requested: %s", stats)
    return payload


@router.post("/rotate", response_model=ActionResponse)
def rotate(request: Request):
    logger = _logger(request)
    logger.info("Manual log rotation requested via API")
    try:
        logger.force_rotate()
    except (RotationError, OSError) as e:
        LOG_ROTATIONS.labels(action="rotate", outcome="error").inc()
        logger.errorf("Error rotating logs: %s", e)
        raise http_error(
            f"Error rotating logs: {e}", status.HTTP_500_INTERNAL_SERVER_ERROR
        ) from e
    LOG_ROTATIONS.labels(action="rotate", outcome="ok").inc()
    logger.info("Manual log rotation completed successfully")
    return ActionResponse(message="Log rotation completed")


@router.post("/cleanup", response_model=ActionResponse)
def cleanup(request: Request):
    logger = _logger(request)
    logger.info("Manual log cleanup requested via API")
    try:
        removed = logger.cleanup_old_logs()
    except OSError as e:
        LOG_ROTATIONS.labels(action="cleanup", outcome="error").inc()
        logger.errorf("Error cleaning up logs: %s", e)
        raise http_error(
            f"Error cleaning up logs: {e}", status.HTTP_500_INTERNAL_SERVER_ERROR
        ) from e
    LOG_ROTATIONS.labels(action="cleanup", outcome="ok").inc()
    logger.infof("Manual log cleanup completed successfully, removed %d files", len(removed))
    return ActionResponse(message="Log cleanup completed")
