from fastapi import HTTPException

from beestat.core.errors import BeestatError


def to_http_exception(exc: BeestatError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={"message": exc.message, "code": exc.code},
    )
