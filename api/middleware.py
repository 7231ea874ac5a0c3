"""Request-scoped middleware for API requests."""

from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from utils.actor_context import clear_current_actor, set_current_actor


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class ActorMiddleware(BaseHTTPMiddleware):
    """
    Attributes mutations to the caller named in the X-Actor header.

    Requests without the header are attributed to the system actor. The
    header is trusted; authentication happens in front of this service.
    """

    HEADER = "X-Actor"

    async def dispatch(self, request: Request, call_next):
        actor = request.headers.get(self.HEADER, "").strip()
        if actor:
            set_current_actor(actor)
        request.state.actor = actor or None

        try:
            return await call_next(request)
        finally:
            clear_current_actor()
