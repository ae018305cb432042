"""
Authentication guard for protected routes.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dependencies import get_token_service, get_user_service
from errors import Unauthenticated
from security import TokenError, TokenService
from services import UserService

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
    users: UserService = Depends(get_user_service),
) -> dict:
    """
    Resolve the caller from the `Authorization: Bearer <token>` header.

    The user record (without its password hash) is attached to
    `request.state.user` and returned.

    Raises:
        Unauthenticated: no token, a token that fails verification, or a
            token whose user no longer exists
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Not authorized, no token provided")

    try:
        user_id = tokens.verify(credentials.credentials)
    except TokenError as exc:
        logger.warning("Rejected token on %s %s: %s", request.method, request.url.path, exc)
        raise Unauthenticated("Not authorized, token failed")

    user = users.get(user_id)
    if not user:
        logger.warning("Token for unknown user %s", user_id)
        raise Unauthenticated("User not found")

    request.state.user = user
    return user
