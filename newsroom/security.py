"""Permission guard protecting whole sub-applications."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Union

from fastapi import Request, status
from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Receive, Scope, Send
from starlette.websockets import WebSocketClose

from .context import SiteContext
from .models import Permission
from .web import SESSION_COOKIE_NAME, render_page

logger = logging.getLogger("newsroom.security")


@dataclass(frozen=True)
class Forward:
    """Let the request through to the wrapped application."""

    username: str


@dataclass(frozen=True)
class Respond:
    """Answer the request immediately without touching the wrapped application.

    ``response`` is any ASGI callable: an HTML page for HTTP requests, a
    close frame for websockets.
    """

    response: ASGIApp


Decision = Union[Forward, Respond]


class PermissionGuard:
    """ASGI middleware admitting only accounts holding one exact permission.

    Visitors without a live session and accounts with any other permission
    get the same "not authorized" page. Only the decision is made here; an
    admitted request reaches the wrapped app with the original ``receive``
    and ``send`` channels so streaming and flow control are unaffected.
    """

    def __init__(self, app: ASGIApp, *, context: SiteContext, permission: Permission) -> None:
        self.app = app
        self._context = context
        self._permission = permission

    @property
    def permission(self) -> Permission:
        return self._permission

    def decide(self, connection: HTTPConnection) -> Decision:
        token = connection.cookies.get(SESSION_COOKIE_NAME)
        username = self._context.sessions.touch_and_validate(token)
        if username is None:
            reason = "no live session"
        else:
            permission = self._context.accounts.permission_of(username)
            if permission == self._permission:
                return Forward(username)
            reason = f"{username} holds {permission.value if permission else 'no account'}"

        logger.info(
            "Rejected %s %s requiring %s: %s",
            connection.scope.get("method", "WEBSOCKET"),
            connection.url.path,
            self._permission.value,
            reason,
        )
        if connection.scope["type"] == "websocket":
            return Respond(WebSocketClose(code=1008))
        return Respond(self._not_authorized(Request(connection.scope)))

    def _not_authorized(self, request: Request) -> ASGIApp:
        return render_page(
            request,
            self._context,
            self._context.templates["errors/not_authorized"],
            status_code=status.HTTP_403_FORBIDDEN,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        decision = self.decide(HTTPConnection(scope))
        if isinstance(decision, Forward):
            await self.app(scope, receive, send)
        else:
            await decision.response(scope, receive, send)


def guard(required_permission: Permission, *, context: SiteContext) -> Callable[[ASGIApp], PermissionGuard]:
    """Return a middleware factory requiring ``required_permission``."""

    def wrap(app: ASGIApp) -> PermissionGuard:
        return PermissionGuard(app, context=context, permission=required_permission)

    return wrap


__all__ = ["Decision", "Forward", "PermissionGuard", "Respond", "guard"]
