from fastapi.responses import JSONResponse

from mentor_booking.booking.schemas.results import ErrorResult


def as_response(result):
    """Send an ErrorResult with its own status code; anything else as-is"""
    if isinstance(result, ErrorResult):
        return JSONResponse(status_code=result.status_code, content=result.model_dump(mode="json"))
    return result
