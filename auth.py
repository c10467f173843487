"""
Caller identity

Authentication happens upstream. The gateway forwards the authenticated user
id in a header; this module exposes it to handlers as `request.state.user`.
"""

import os
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from schemas import CurrentUser

USER_ID_HEADER = os.getenv("USER_ID_HEADER", "X-User-Id")


class GatewayIdentityMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, header_name: str = USER_ID_HEADER):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next):
        user_id = (request.headers.get(self.header_name) or "").strip()
        request.state.user = CurrentUser(id=user_id) if user_id else None
        return await call_next(request)


def get_current_user(request: Request) -> Optional[CurrentUser]:
    """The caller set by the gateway, or None for anonymous requests."""
    return getattr(request.state, "user", None)
