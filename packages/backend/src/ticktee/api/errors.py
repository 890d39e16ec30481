"""Service error → HTTP translation shared by the routers."""

from fastapi import HTTPException

from ticktee.services.errors import ServiceError


def to_http(error: ServiceError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=str(error))
