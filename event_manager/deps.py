"""Shared FastAPI dependencies: the auth gate and the notification dispatcher."""
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from event_manager.errors import AuthenticationError
from event_manager.notifications.dispatcher import NotificationDispatcher
from event_manager.security import verify_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Verify the bearer token and return the caller's user id.

    Stateless: the token alone proves identity, no session lookup is made.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("No token provided")
    return verify_access_token(credentials.credentials)


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher
