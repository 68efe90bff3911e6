"""
Delivery Manager Authentication

Bearer-token check for the delivery manager endpoints. Tokens map to manager
ids through the DELIVERY_API_TOKENS setting.
"""

from typing import Dict, Optional

from fastapi import HTTPException, Request

NO_TOKEN_MESSAGE = "No authentication token available. Please login again."
INVALID_TOKEN_MESSAGE = "Invalid authentication token"

# Used when demo/test mode starts without configured tokens
DEMO_TOKENS = {"demo-manager-token": "manager-1"}


class ManagerAuthError(HTTPException):
    """Raised when a request carries no valid delivery manager token."""

    def __init__(self, message: str = NO_TOKEN_MESSAGE):
        super().__init__(
            status_code=401,
            detail={
                "error": message,
                "code": "auth_required",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )
        self.message = message


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Pull the token out of an Authorization header value.

    Accepts "Bearer <token>" and "Token <token>" (the DRF form the mobile
    app also sends).
    """
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() not in ("bearer", "token"):
        return None
    token = token.strip()
    return token or None


def resolve_manager(token: Optional[str], tokens: Dict[str, str]) -> Optional[str]:
    """
    Map a token to its manager id.

    Returns:
        manager id, or None when the token is missing or unknown
    """
    if not token:
        return None
    return tokens.get(token)


def require_manager_id(authorization: Optional[str], tokens: Dict[str, str]) -> str:
    """
    Resolve the manager id for an Authorization header or raise.

    Usage:
        manager_id = require_manager_id(request.headers.get("Authorization"), tokens)
    """
    token = extract_bearer_token(authorization)
    if token is None:
        raise ManagerAuthError(NO_TOKEN_MESSAGE)
    manager_id = resolve_manager(token, tokens)
    if manager_id is None:
        raise ManagerAuthError(INVALID_TOKEN_MESSAGE)
    return manager_id


async def current_manager_id(request: Request) -> str:
    """FastAPI dependency returning the authenticated manager id."""
    tokens = request.app.state.settings.api_tokens
    return require_manager_id(request.headers.get("Authorization"), tokens)
