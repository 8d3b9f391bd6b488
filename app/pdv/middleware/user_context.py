from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.pdv.core.security import decode_token


class UserContextMiddleware(BaseHTTPMiddleware):
    """Expose the caller's id and role to request logging.

    Authorization itself happens in the route dependencies; an unreadable
    token only leaves the context empty here.
    """

    async def dispatch(self, request: Request, call_next):
        request.state.user_id = None
        request.state.role = None

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.lower().startswith("bearer "):
            try:
                payload = decode_token(auth_header.split(" ", 1)[1])
            except JWTError:
                payload = {}
            request.state.user_id = payload.get("sub")
            request.state.role = payload.get("role")

        return await call_next(request)
