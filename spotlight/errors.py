from fastapi import HTTPException, status


class SpotlightError(Exception):
    """Base class for errors raised by the dashboard core."""


class ConfigError(SpotlightError):
    """Config file missing, unreadable or incomplete."""


class RotationError(SpotlightError):
    """Renaming or recreating the active log file failed."""


class DataSourceError(SpotlightError):
    """The upstream market data provider failed or returned garbage."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def http_error(message: str, http_status=status.HTTP_400_BAD_REQUEST) -> HTTPException:
    return HTTPException(status_code=http_status, detail=message)
