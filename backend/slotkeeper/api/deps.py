"""
Shared route dependencies: caller identity and the typed error response.

Holder identity comes from X-User-Id (authenticated, set by the auth layer in front of us) or
X-Session-Token / ?session_token= (anonymous browser session). It is resolved per request.
"""
from fastapi import Header, Query, Request
from fastapi.responses import JSONResponse

from slotkeeper.core.errors import BookingError
from slotkeeper.core.holder import HolderIdentity


def holder_identity(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
    session_token: str | None = Query(None),
) -> HolderIdentity | None:
    return HolderIdentity.from_request(x_user_id, x_session_token or session_token)


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Render any BookingError as {"error": {"code", "message", "details"}} with its status code."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})
